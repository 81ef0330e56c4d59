"""
Whitelist Persistence for Whitelist Gatekeeper.

Loads and saves the whole whitelist document. Supports a JSON file backend
(the production ``whitelist.json``) and an in-memory backend for tests and
embedded use.

Failures never propagate: a broken file degrades to an empty document and a
failed write keeps the previous file. Callers inspect ``healthy`` to tell
"empty whitelist" apart from "whitelist could not be read".
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import ValidationError

from whitelist_gatekeeper.core.correlation import CorrelatedLogger
from whitelist_gatekeeper.core.models import WhitelistDocument

logger = CorrelatedLogger(logging.getLogger(__name__))

DEFAULT_FILENAME = "whitelist.json"


@runtime_checkable
class IdentityStore(Protocol):
    """
    Protocol for whitelist persistence backends.

    Neither operation may raise.
    """

    @property
    def healthy(self) -> bool:
        """False when the last load found unreadable or malformed data."""
        ...

    def load(self) -> WhitelistDocument:
        """
        Read the persisted document.

        Returns:
            The stored document, or an empty one if missing or malformed
        """
        ...

    def save(self, document: WhitelistDocument) -> bool:
        """
        Replace the persisted document.

        Args:
            document: Full document to write

        Returns:
            True if written, False if the write failed
        """
        ...


def _parse(raw: str) -> WhitelistDocument:
    """Parse stored text; blank or ``null`` content is an empty whitelist."""
    if not raw.strip() or raw.strip() == "null":
        return WhitelistDocument()
    return WhitelistDocument.from_json(raw)


class JsonIdentityStore:
    """
    File-backed whitelist store.

    Writes go to a temporary file in the target directory and are moved
    into place with ``os.replace``, so readers see either the old or the
    new document.

    Usage:
        store = JsonIdentityStore(Path("data/whitelist.json"))
        document = store.load()
        document.users.append(WhitelistUser(username="Steve", uuid="abc-123"))
        store.save(document)
    """

    def __init__(self, path: Path | str) -> None:
        """
        Initialize store.

        Args:
            path: Location of the whitelist JSON file
        """
        self._path = Path(path)
        self._healthy = True
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        """Location of the whitelist file."""
        return self._path

    @property
    def healthy(self) -> bool:
        """False when the last load failed."""
        return self._healthy

    def load(self) -> WhitelistDocument:
        """Load the document, creating a default file when none exists."""
        try:
            raw = self._path.read_text(encoding="utf-8")
            document = _parse(raw)
        except FileNotFoundError:
            logger.info("No whitelist at %s, creating an empty one", self._path)
            document = WhitelistDocument()
            self._healthy = True
            self.save(document)
            return document
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            logger.error("Error loading whitelist from %s: %s", self._path, e)
            self._healthy = False
            return WhitelistDocument()

        self._healthy = True
        logger.debug(
            "Loaded whitelist: %d users, %d attempts",
            len(document.users),
            len(document.attempts),
        )
        return document

    def save(self, document: WhitelistDocument) -> bool:
        """Atomically overwrite the whitelist file."""
        payload = document.to_json()

        with self._lock:
            tmp: str | None = None
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp = tempfile.mkstemp(
                    prefix=f".{self._path.name}.",
                    suffix=".tmp",
                    dir=self._path.parent,
                )
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp, self._path)
                tmp = None
            except OSError as e:
                logger.error("Error saving whitelist to %s: %s", self._path, e)
                return False
            finally:
                if tmp is not None and os.path.exists(tmp):
                    try:
                        os.remove(tmp)
                    except OSError:
                        pass

        self._healthy = True
        return True


class InMemoryIdentityStore:
    """
    In-memory whitelist store.

    Keeps the serialized JSON text, so tests can simulate an operator
    editing the file by assigning to ``raw`` and exercise the same parse
    and failure paths as the file backend.

    Usage:
        store = InMemoryIdentityStore()
        store.raw = '{"Users": [{"Username": "Steve", "UUID": "abc-123"}]}'
        registry.reload()
    """

    def __init__(self, raw: str | None = None, *, fail_writes: bool = False) -> None:
        """
        Initialize store.

        Args:
            raw: Initial stored text (None = nothing stored yet)
            fail_writes: Make every save fail, for failure-path tests
        """
        self.raw = raw
        self.fail_writes = fail_writes
        self.save_count = 0
        self._healthy = True

    @property
    def healthy(self) -> bool:
        return self._healthy

    def load(self) -> WhitelistDocument:
        if self.raw is None:
            document = WhitelistDocument()
            self._healthy = True
            self.save(document)
            return document

        try:
            document = _parse(self.raw)
        except ValidationError as e:
            logger.error("Error loading whitelist: %s", e)
            self._healthy = False
            return WhitelistDocument()

        self._healthy = True
        return document

    def save(self, document: WhitelistDocument) -> bool:
        if self.fail_writes:
            logger.error("Error saving whitelist: writes disabled")
            return False
        self.raw = document.to_json()
        self.save_count += 1
        self._healthy = True
        return True
