"""
Operator Commands for Whitelist Gatekeeper.

Implements the ``/wl`` command surface:

    /wl add <Username/UUID>
    /wl remove <Username/UUID>
    /wl reload
    /wl list

The chat front-end hands over the text after the command name; replies are
returned as lines and, when a reply sink is given, sent to it as they are
produced.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from whitelist_gatekeeper.audit import AdmissionAuditor, AuditEventType
from whitelist_gatekeeper.core.correlation import (
    CorrelatedLogger,
    correlation_context,
    get_correlation_id,
)
from whitelist_gatekeeper.engines.registry import (
    AdmissionRegistry,
    RegistryErrorCode,
    RegistryResult,
)

logger = CorrelatedLogger(logging.getLogger(__name__))

COMMAND_NAME = "wl"

HELP_LINES = (
    "Whitelist commands:",
    "/wl add <Username/UUID>",
    "/wl remove <Username/UUID>",
    "/wl reload",
    "/wl list",
)


class ReplyKind(str, Enum):
    """How the chat front-end should present a reply line."""

    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class ReplyLine:
    """One line of command output."""

    kind: ReplyKind
    text: str


ReplySink = Callable[[ReplyLine], None]


def split_command(arguments: str) -> tuple[str, str]:
    """
    Split command text into the lower-cased subcommand and the search term.

    A leading ``wl`` or ``/wl`` is dropped. The search term is the rest of
    the line after the subcommand, kept verbatim so names with spaces match.

    Returns:
        (subcommand, search)
    """
    parts = arguments.lstrip().split(None, 1)
    if parts and parts[0].lstrip("/").lower() == COMMAND_NAME:
        parts = parts[1].lstrip().split(None, 1) if len(parts) > 1 else []

    if not parts:
        return "", ""
    subcommand = parts[0].lower()
    search = parts[1] if len(parts) > 1 else ""
    return subcommand, search


class AdminCommandHandler:
    """
    Translates operator commands into registry changes.

    Usage:
        handler = AdminCommandHandler(registry, auditor=auditor)

        for line in handler.handle("add Steve", operator="admin"):
            player.send_message(line.kind, line.text)
    """

    def __init__(
        self,
        registry: AdmissionRegistry,
        *,
        auditor: AdmissionAuditor | None = None,
    ) -> None:
        """
        Initialize handler.

        Args:
            registry: Shared whitelist registry
            auditor: Optional audit logger for changes
        """
        self._registry = registry
        self._auditor = auditor

    def handle(
        self,
        arguments: str,
        reply: ReplySink | None = None,
        *,
        operator: str | None = None,
    ) -> list[ReplyLine]:
        """
        Run one ``/wl`` command.

        Args:
            arguments: Command text after ``/wl``
            reply: Optional sink receiving each reply line
            operator: Who issued the command (for audit)

        Returns:
            All reply lines, in order
        """
        subcommand, search = split_command(arguments)
        lines: list[ReplyLine] = []

        def send(kind: ReplyKind, text: str) -> None:
            line = ReplyLine(kind, text)
            lines.append(line)
            if reply is not None:
                reply(line)

        with correlation_context(get_correlation_id(), operator=operator, subcommand=subcommand):
            if subcommand == "add":
                self._add(search, send, operator)
            elif subcommand == "remove":
                self._remove(search, send, operator)
            elif subcommand == "reload":
                self._reload(send, operator)
            elif subcommand == "list":
                self._list(send)
            else:
                for text in HELP_LINES:
                    send(ReplyKind.INFO, text)

        return lines

    def _add(self, search: str, send: Callable[[ReplyKind, str], None], operator: str | None) -> None:
        if not search.strip():
            send(ReplyKind.ERROR, "Usage: /wl add <Username/UUID>")
            return

        result = self._registry.add(search)
        self._audit(AuditEventType.WHITELIST_ADD, result, operator)
        if result.success:
            send(ReplyKind.SUCCESS, f"Added {result.user.username} to the whitelist.")
        elif result.error_code is RegistryErrorCode.ALREADY_WHITELISTED:
            send(ReplyKind.ERROR, f"{result.user.username} is already whitelisted.")
        else:
            send(ReplyKind.ERROR, self._describe_failure(result))

    def _remove(self, search: str, send: Callable[[ReplyKind, str], None], operator: str | None) -> None:
        if not search.strip():
            send(ReplyKind.ERROR, "Usage: /wl remove <Username/UUID>")
            return

        result = self._registry.remove(search)
        self._audit(AuditEventType.WHITELIST_REMOVE, result, operator)
        if result.success:
            send(ReplyKind.SUCCESS, f"Removed {result.user.username} from the whitelist.")
        elif result.error_code is RegistryErrorCode.NOT_WHITELISTED:
            send(ReplyKind.ERROR, f"{result.user.username} is not whitelisted.")
        else:
            send(ReplyKind.ERROR, self._describe_failure(result))

    def _reload(self, send: Callable[[ReplyKind, str], None], operator: str | None) -> None:
        self._registry.reload()
        available = self._registry.available
        self._log_change(
            AuditEventType.WHITELIST_RELOAD,
            operator=operator,
            result="success" if available else "unavailable",
        )
        send(ReplyKind.SUCCESS, "Whitelist reloaded from file.")
        if not available:
            send(
                ReplyKind.ERROR,
                "The whitelist file could not be read. All players will be rejected until it is fixed.",
            )

    def _list(self, send: Callable[[ReplyKind, str], None]) -> None:
        snapshot = self._registry.list_all()
        if not snapshot.users:
            send(ReplyKind.INFO, "The whitelist is currently empty.")
            return

        send(ReplyKind.INFO, "Whitelisted:")
        for user in snapshot.users:
            send(ReplyKind.INFO, f"{user.username} ({user.uuid})")
        send(ReplyKind.INFO, "Attempted:")
        for user in snapshot.attempts:
            send(ReplyKind.INFO, f"{user.username} ({user.uuid})")

    @staticmethod
    def _describe_failure(result: RegistryResult) -> str:
        if result.error_code is RegistryErrorCode.MULTIPLE_MATCHES:
            names = ", ".join(str(user) for user in result.candidates)
            return f"{result.search} matches multiple players: {names}. Use the UUID instead."
        if result.error_code is RegistryErrorCode.STORE_UNAVAILABLE:
            return "The whitelist file could not be loaded. Fix it and run /wl reload."
        return f"{result.search} not found."

    def _audit(self, event_type: AuditEventType, result: RegistryResult, operator: str | None) -> None:
        if not result.persisted:
            logger.error("Whitelist change for %r was not saved to disk", result.search)
        self._log_change(
            event_type,
            result.user,
            operator=operator,
            result="success" if result.success else result.error_code.value,
            details={"search": result.search, "persisted": result.persisted},
        )

    def _log_change(self, event_type: AuditEventType, *args: Any, **kwargs: Any) -> None:
        """Record a change; the change itself already happened, so audit errors stop here."""
        if self._auditor is None:
            return
        try:
            self._auditor.log_change(event_type, *args, **kwargs)
        except Exception:
            logger.exception("Failed to write audit event for %s", event_type.value)
