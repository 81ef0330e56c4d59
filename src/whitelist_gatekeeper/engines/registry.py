"""
Admission Registry for Whitelist Gatekeeper.

Holds the in-process copy of the whitelist document and answers the two
questions the server asks: "may this player join?" and "what does this
operator command change?". Every mutation persists through the injected
IdentityStore before returning.

One lock guards the whole document. Connection checks and
admin edits are serialized, so check-then-record and check-then-add
sequences cannot interleave.

Fail closed: when the store reports the last load as unhealthy, membership
checks raise WhitelistUnavailableError instead of answering from an empty
document, and mutations are refused so the damaged file is left for the
operator to repair.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum

from whitelist_gatekeeper.core.correlation import CorrelatedLogger
from whitelist_gatekeeper.core.models import WhitelistDocument, WhitelistUser
from whitelist_gatekeeper.core.store import IdentityStore

logger = CorrelatedLogger(logging.getLogger(__name__))


class WhitelistError(Exception):
    """Base error for whitelist operations."""


class WhitelistUnavailableError(WhitelistError):
    """The whitelist could not be loaded, so membership is unknown."""


class RegistryErrorCode(str, Enum):
    """Why an admin mutation was not applied."""

    NOT_FOUND = "not_found"
    ALREADY_WHITELISTED = "already_whitelisted"
    NOT_WHITELISTED = "not_whitelisted"
    MULTIPLE_MATCHES = "multiple_matches"
    STORE_UNAVAILABLE = "store_unavailable"


@dataclass
class RegistryResult:
    """
    Result of an add or remove.

    On success ``user`` is the affected entry. On failure ``user`` is the
    resolved entry when there was one (e.g. for ALREADY_WHITELISTED) and
    ``candidates`` lists every match for MULTIPLE_MATCHES.
    """

    success: bool
    search: str
    user: WhitelistUser | None = None
    error_code: RegistryErrorCode | None = None
    persisted: bool = True
    candidates: tuple[WhitelistUser, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class AdmissionCheck:
    """Membership answer for one connection, plus whether an attempt was recorded."""

    allowed: bool
    new_attempt: bool = False


@dataclass(frozen=True)
class WhitelistSnapshot:
    """Read-only view of both lists, in insertion order."""

    users: tuple[WhitelistUser, ...]
    attempts: tuple[WhitelistUser, ...]


class AdmissionRegistry:
    """
    Whitelist state shared by the admission gate and the admin commands.

    Construct once at startup and pass the instance to its collaborators.

    Usage:
        registry = AdmissionRegistry(JsonIdentityStore("whitelist.json"))

        if not registry.check_admission(uuid, username).allowed:
            disconnect(...)

        result = registry.add("Steve")
        if not result.success:
            reply(result.error_code)
    """

    def __init__(self, store: IdentityStore) -> None:
        """
        Initialize registry and load the persisted document.

        Args:
            store: Persistence backend
        """
        self._store = store
        self._lock = threading.RLock()
        self._document = WhitelistDocument()
        self._index: dict[str, WhitelistUser] = {}
        self._available = False
        self.reload()

    @property
    def available(self) -> bool:
        """False when the last load failed and membership is unknown."""
        with self._lock:
            return self._available

    @property
    def size(self) -> int:
        """Number of whitelisted users."""
        with self._lock:
            return len(self._document.users)

    def reload(self) -> None:
        """Discard in-memory state and load the document from the store."""
        with self._lock:
            document = self._store.load()
            self._document = document
            self._index = {user.uuid: user for user in document.users}
            available = self._available = self._store.healthy

        if available:
            logger.info(
                "Whitelist loaded: %d users, %d attempts",
                len(document.users),
                len(document.attempts),
            )
        else:
            logger.error("Whitelist unavailable; all connections will be rejected")

    def is_allowed(self, uuid: str) -> bool:
        """
        Check whether a UUID is whitelisted.

        Raises:
            WhitelistUnavailableError: If the last load failed
        """
        with self._lock:
            self._require_available()
            return uuid in self._index

    def record_attempt(self, uuid: str, username: str) -> bool:
        """
        Remember a rejected player for later promotion.

        The first-seen username is kept; repeats and whitelisted UUIDs
        are no-ops.

        Returns:
            True if a new attempt entry was added
        """
        with self._lock:
            if not self._available or uuid in self._index:
                return False
            return self._record_attempt(uuid, username)

    def check_admission(self, uuid: str, username: str) -> AdmissionCheck:
        """
        Check membership and record an attempt on rejection, atomically.

        Raises:
            WhitelistUnavailableError: If the last load failed
        """
        with self._lock:
            self._require_available()
            if uuid in self._index:
                return AdmissionCheck(allowed=True)
            return AdmissionCheck(allowed=False, new_attempt=self._record_attempt(uuid, username))

    def resolve(self, search: str) -> WhitelistUser | None:
        """
        Find a player by exact UUID or username.

        Attempts are searched before the allow-list; the first match wins.
        """
        with self._lock:
            for user in self._iter_candidates():
                if user.matches(search):
                    return user
            return None

    def add(self, search: str) -> RegistryResult:
        """
        Whitelist a player found by UUID or username.

        The matching attempt entries are removed.
        """
        with self._lock:
            if not self._available:
                return self._failure(search, RegistryErrorCode.STORE_UNAVAILABLE)

            matches = self._matches(search)
            if not matches:
                return self._failure(search, RegistryErrorCode.NOT_FOUND)
            if len({m.uuid for m in matches}) > 1:
                return self._failure(
                    search, RegistryErrorCode.MULTIPLE_MATCHES, candidates=tuple(matches)
                )

            user = matches[0]
            if user.uuid in self._index:
                return self._failure(
                    search, RegistryErrorCode.ALREADY_WHITELISTED, user=self._index[user.uuid]
                )

            self._document.users.append(user)
            self._index[user.uuid] = user
            self._document.attempts = [
                a for a in self._document.attempts if a.uuid != user.uuid
            ]
            persisted = self._save()

        logger.info("Whitelisted %s", user)
        return RegistryResult(success=True, search=search, user=user, persisted=persisted)

    def remove(self, search: str) -> RegistryResult:
        """Remove a player found by UUID or username from the allow-list."""
        with self._lock:
            if not self._available:
                return self._failure(search, RegistryErrorCode.STORE_UNAVAILABLE)

            matches = self._matches(search)
            if not matches:
                return self._failure(search, RegistryErrorCode.NOT_FOUND)
            if len({m.uuid for m in matches}) > 1:
                return self._failure(
                    search, RegistryErrorCode.MULTIPLE_MATCHES, candidates=tuple(matches)
                )

            user = matches[0]
            listed = self._index.pop(user.uuid, None)
            if listed is None:
                return self._failure(search, RegistryErrorCode.NOT_WHITELISTED, user=user)

            self._document.users = [u for u in self._document.users if u.uuid != user.uuid]
            persisted = self._save()

        logger.info("Removed %s from whitelist", listed)
        return RegistryResult(success=True, search=search, user=listed, persisted=persisted)

    def list_all(self) -> WhitelistSnapshot:
        """Snapshot of the allow-list and attempts."""
        with self._lock:
            return WhitelistSnapshot(
                users=tuple(self._document.users),
                attempts=tuple(self._document.attempts),
            )

    def _require_available(self) -> None:
        """Raise unless the document is known-good (must hold lock)."""
        if not self._available:
            raise WhitelistUnavailableError("Whitelist could not be loaded")

    def _record_attempt(self, uuid: str, username: str) -> bool:
        """Append an attempt unless one exists (must hold lock)."""
        if any(a.uuid == uuid for a in self._document.attempts):
            return False
        self._document.attempts.append(WhitelistUser(username=username, uuid=uuid))
        self._save()
        return True

    def _iter_candidates(self) -> list[WhitelistUser]:
        """Attempts first, then the allow-list (must hold lock)."""
        return [*self._document.attempts, *self._document.users]

    def _matches(self, search: str) -> list[WhitelistUser]:
        """Every entry matching the search term, in resolve order (must hold lock)."""
        return [user for user in self._iter_candidates() if user.matches(search)]

    def _save(self) -> bool:
        """Persist the document (must hold lock)."""
        saved = self._store.save(self._document)
        if not saved:
            logger.warning("Whitelist changed in memory but could not be saved")
        return saved

    @staticmethod
    def _failure(
        search: str,
        code: RegistryErrorCode,
        *,
        user: WhitelistUser | None = None,
        candidates: tuple[WhitelistUser, ...] = (),
    ) -> RegistryResult:
        return RegistryResult(
            success=False,
            search=search,
            user=user,
            error_code=code,
            candidates=candidates,
        )
