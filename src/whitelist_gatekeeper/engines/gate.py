"""
Admission Gate for Whitelist Gatekeeper.

The "May you join?" logic. Receives the identity established by the game
server's login step, asks the registry, and either lets the player through
or disconnects them and announces the attempt.

Fail closed: if membership cannot be determined, the player is rejected.
Nothing raised here reaches the network layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from whitelist_gatekeeper.audit import AdmissionAuditor
from whitelist_gatekeeper.core.correlation import (
    CorrelatedLogger,
    correlation_context,
    get_correlation_id,
)
from whitelist_gatekeeper.engines.registry import AdmissionRegistry, WhitelistUnavailableError

logger = CorrelatedLogger(logging.getLogger(__name__))

DISCONNECT_REASON = "You are not whitelisted on this server.\n\n{username} ({uuid})"
BROADCAST_MESSAGE = "Non-Whitelist player attempted to connect: {username} ({uuid})"


class ConnectionEvent(BaseModel):
    """
    A player finished logging in and is about to enter gameplay.

    Delivered once per connection by the network layer.
    """

    model_config = ConfigDict(frozen=True)

    uuid: str = Field(..., min_length=1, description="Identity asserted by the login step")
    username: str = Field(..., description="Display name for this connection")
    player_index: int | None = Field(default=None, description="Server slot, if known")
    address: str | None = Field(default=None, description="Remote address, if known")


class AdmissionOutcome(str, Enum):
    """Terminal state of a connection attempt."""

    ADMITTED = "admitted"
    REJECTED = "rejected"


@dataclass
class AdmissionDecision:
    """Result of evaluating one connection attempt."""

    outcome: AdmissionOutcome
    uuid: str
    username: str
    reason: str | None = None
    fail_closed: bool = False
    correlation_id: str | None = None
    new_attempt: bool = False

    @property
    def admitted(self) -> bool:
        return self.outcome is AdmissionOutcome.ADMITTED


@runtime_checkable
class ConnectionSink(Protocol):
    """
    Outbound side effects of a rejection, provided by the game server.
    """

    def disconnect(self, event: ConnectionEvent, reason: str) -> None:
        """Terminate the player's connection with a reason shown to them."""
        ...

    def broadcast(self, message: str) -> None:
        """Announce a message server-wide."""
        ...


class NullConnectionSink:
    """
    Sink that does nothing.

    WARNING: Rejected players are NOT disconnected.
    Only use for testing or when the caller acts on the returned decision.
    """

    def disconnect(self, event: ConnectionEvent, reason: str) -> None:
        """No-op disconnect."""

    def broadcast(self, message: str) -> None:
        """No-op broadcast."""


@dataclass
class RecordingConnectionSink:
    """Sink that records every directive, for tests and HTTP bridging."""

    disconnects: list[tuple[ConnectionEvent, str]] = field(default_factory=list)
    broadcasts: list[str] = field(default_factory=list)

    def disconnect(self, event: ConnectionEvent, reason: str) -> None:
        self.disconnects.append((event, reason))

    def broadcast(self, message: str) -> None:
        self.broadcasts.append(message)


class AdmissionGate:
    """
    Per-connection admission check.

    Usage:
        gate = AdmissionGate(registry, server_sink, auditor=auditor)

        # From the network layer's post-login hook
        decision = gate.handle_event(ConnectionEvent(uuid=..., username=...))
        if not decision.admitted:
            return  # already disconnected through the sink
    """

    def __init__(
        self,
        registry: AdmissionRegistry,
        sink: ConnectionSink | None = None,
        *,
        auditor: AdmissionAuditor | None = None,
        broadcast_rejections: bool = True,
    ) -> None:
        """
        Initialize gate.

        Args:
            registry: Shared whitelist registry
            sink: Server hooks for disconnect and broadcast
            auditor: Optional audit logger
            broadcast_rejections: Announce rejected attempts server-wide
        """
        self._registry = registry
        self._sink = sink or NullConnectionSink()
        self._auditor = auditor
        self._broadcast_rejections = broadcast_rejections

    def evaluate(self, uuid: str, username: str) -> AdmissionDecision:
        """
        Decide whether a player may join.

        Args:
            uuid: Identity from the login step
            username: Display name for this connection

        Returns:
            AdmissionDecision (never raises)
        """
        return self.handle_event(ConnectionEvent.model_construct(uuid=uuid, username=username))

    def handle_event(self, event: ConnectionEvent) -> AdmissionDecision:
        """Evaluate a connection event and apply the side effects of a rejection."""
        with correlation_context(
            get_correlation_id(), uuid=event.uuid, username=event.username
        ) as cid:
            try:
                check = self._registry.check_admission(event.uuid, event.username)
            except WhitelistUnavailableError as e:
                logger.error(
                    "Whitelist unavailable, rejecting %s (%s)", event.username, event.uuid
                )
                return self._fail_closed(event, cid, str(e))
            except Exception as e:
                logger.exception(
                    "Whitelist check failed, rejecting %s (%s)", event.username, event.uuid
                )
                return self._fail_closed(event, cid, repr(e))

            if check.allowed:
                logger.debug("Admitted %s (%s)", event.username, event.uuid)
                if self._auditor:
                    self._safe_audit(
                        self._auditor.log_admitted, uuid=event.uuid, username=event.username
                    )
                return AdmissionDecision(
                    outcome=AdmissionOutcome.ADMITTED,
                    uuid=event.uuid,
                    username=event.username,
                    correlation_id=cid,
                )

            decision = self._reject(event, cid, new_attempt=check.new_attempt)
            message = BROADCAST_MESSAGE.format(username=event.username, uuid=event.uuid)
            logger.warning(message)
            if self._auditor:
                self._safe_audit(
                    self._auditor.log_rejected,
                    uuid=event.uuid,
                    username=event.username,
                    new_attempt=decision.new_attempt,
                )
            if self._broadcast_rejections:
                self._safe_broadcast(message)
            return decision

    def _reject(self, event: ConnectionEvent, cid: str, *, new_attempt: bool) -> AdmissionDecision:
        reason = DISCONNECT_REASON.format(username=event.username, uuid=event.uuid)
        self._safe_disconnect(event, reason)
        return AdmissionDecision(
            outcome=AdmissionOutcome.REJECTED,
            uuid=event.uuid,
            username=event.username,
            reason=reason,
            correlation_id=cid,
            new_attempt=new_attempt,
        )

    def _fail_closed(self, event: ConnectionEvent, cid: str, error: str) -> AdmissionDecision:
        reason = DISCONNECT_REASON.format(username=event.username, uuid=event.uuid)
        self._safe_disconnect(event, reason)
        if self._auditor:
            self._safe_audit(
                self._auditor.log_fail_closed,
                uuid=event.uuid,
                username=event.username,
                error=error,
            )
        return AdmissionDecision(
            outcome=AdmissionOutcome.REJECTED,
            uuid=event.uuid,
            username=event.username,
            reason=reason,
            fail_closed=True,
            correlation_id=cid,
        )

    def _safe_audit(self, log: Callable[..., str], **fields: Any) -> None:
        try:
            log(**fields)
        except Exception:
            logger.exception("Failed to write audit event")

    def _safe_disconnect(self, event: ConnectionEvent, reason: str) -> None:
        try:
            self._sink.disconnect(event, reason)
        except Exception:
            logger.exception("Failed to disconnect %s (%s)", event.username, event.uuid)

    def _safe_broadcast(self, message: str) -> None:
        try:
            self._sink.broadcast(message)
        except Exception:
            logger.exception("Failed to broadcast rejection notice")
