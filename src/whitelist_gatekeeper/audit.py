"""
Structured Admission Audit Logging for Whitelist Gatekeeper.

Every admission decision and every whitelist change is recorded as a JSON
event, so an operator can review who tried to join and who changed the
list.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, TextIO

from whitelist_gatekeeper.core.correlation import get_correlation_id
from whitelist_gatekeeper.core.models import WhitelistUser


class AuditEventType(str, Enum):
    """Types of admission audit events."""

    CONNECTION_ADMITTED = "connection.admitted"
    CONNECTION_REJECTED = "connection.rejected"
    CONNECTION_FAIL_CLOSED = "connection.fail_closed"
    WHITELIST_ADD = "whitelist.add"
    WHITELIST_REMOVE = "whitelist.remove"
    WHITELIST_RELOAD = "whitelist.reload"


@dataclass
class AuditEvent:
    """Structured audit event."""

    event_type: AuditEventType
    timestamp: float = field(default_factory=time.time)
    uuid: str | None = None
    username: str | None = None
    operator: str | None = None
    result: str = "unknown"
    correlation_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["event_type"] = self.event_type.value
        data["timestamp_iso"] = datetime.fromtimestamp(self.timestamp).isoformat()
        return data

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)


class AdmissionAuditor:
    """
    Admission event auditor with structured logging.

    Logs events to:
    1. Python logging (rejections at WARNING, the rest at INFO)
    2. Optional JSONL file for later review

    Usage:
        auditor = AdmissionAuditor(log_path=Path("whitelist_audit.jsonl"))

        auditor.log_rejected(uuid="abc-123", username="Steve", new_attempt=True)
        auditor.log_change(AuditEventType.WHITELIST_ADD, user, operator="admin")
    """

    def __init__(
        self,
        *,
        log_path: Path | None = None,
        log_level: int = logging.INFO,
        logger_name: str = "whitelist_gatekeeper.audit",
    ) -> None:
        """
        Initialize auditor.

        Args:
            log_path: Path to JSONL audit log file (optional)
            log_level: Python logging level
            logger_name: Name for the Python logger
        """
        self._logger = logging.getLogger(logger_name)
        self._logger.setLevel(log_level)
        self._log_file: TextIO | None = None
        self._lock = threading.Lock()

        if log_path:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            self._log_file = open(log_path, "a", encoding="utf-8")

    def close(self) -> None:
        """Close the audit log file."""
        with self._lock:
            if self._log_file:
                self._log_file.close()
                self._log_file = None

    def _emit(self, event: AuditEvent) -> str:
        """Emit an event and return its JSON line."""
        if event.correlation_id is None:
            event.correlation_id = get_correlation_id()
        json_line = event.to_json()

        self._logger.log(
            logging.WARNING if event.result in ("rejected", "fail_closed") else logging.INFO,
            json_line,
        )

        with self._lock:
            if self._log_file:
                try:
                    self._log_file.write(json_line + "\n")
                    self._log_file.flush()
                except (OSError, ValueError) as e:
                    # ValueError: write to a closed file
                    self._logger.error("Failed to write audit log: %s", e)

        return json_line

    def log_admitted(self, *, uuid: str, username: str) -> str:
        """Log an admitted connection."""
        return self._emit(
            AuditEvent(
                event_type=AuditEventType.CONNECTION_ADMITTED,
                uuid=uuid,
                username=username,
                result="admitted",
            )
        )

    def log_rejected(self, *, uuid: str, username: str, new_attempt: bool) -> str:
        """
        Log a connection rejected because the UUID is not whitelisted.

        Args:
            uuid: Rejected identity
            username: Display name at connect time
            new_attempt: Whether this created a new attempt entry
        """
        return self._emit(
            AuditEvent(
                event_type=AuditEventType.CONNECTION_REJECTED,
                uuid=uuid,
                username=username,
                result="rejected",
                details={"new_attempt": new_attempt},
            )
        )

    def log_fail_closed(self, *, uuid: str, username: str, error: str) -> str:
        """Log a connection rejected because membership could not be checked."""
        return self._emit(
            AuditEvent(
                event_type=AuditEventType.CONNECTION_FAIL_CLOSED,
                uuid=uuid,
                username=username,
                result="fail_closed",
                details={"error": error},
            )
        )

    def log_change(
        self,
        event_type: AuditEventType,
        user: WhitelistUser | None = None,
        *,
        operator: str | None = None,
        result: str = "success",
        details: dict[str, Any] | None = None,
    ) -> str:
        """
        Log an operator change to the whitelist.

        Args:
            event_type: WHITELIST_ADD, WHITELIST_REMOVE or WHITELIST_RELOAD
            user: Affected entry, if any
            operator: Who issued the command
            result: Outcome, e.g. "success" or an error code
            details: Additional details
        """
        return self._emit(
            AuditEvent(
                event_type=event_type,
                uuid=user.uuid if user else None,
                username=user.username if user else None,
                operator=operator,
                result=result,
                details=details or {},
            )
        )
