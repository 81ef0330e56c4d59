"""
Configuration and wiring for Whitelist Gatekeeper.

Settings come from environment variables:

    WHITELIST_PATH                 whitelist file (default: whitelist.json)
    WHITELIST_AUDIT_LOG            JSONL audit log (default: disabled)
    WHITELIST_BROADCAST_REJECTIONS announce rejected players (default: true)
    WHITELIST_ADMIN_TOKEN          token for the HTTP bridge (default: unset)

``build_whitelist`` creates the single registry and hands it to the gate and
the command handler. Keep the returned runtime for the life of the server.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from whitelist_gatekeeper.audit import AdmissionAuditor
from whitelist_gatekeeper.commands import AdminCommandHandler
from whitelist_gatekeeper.core.store import DEFAULT_FILENAME, IdentityStore, JsonIdentityStore
from whitelist_gatekeeper.engines.gate import AdmissionGate, ConnectionSink
from whitelist_gatekeeper.engines.registry import AdmissionRegistry

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass
class WhitelistSettings:
    """Whitelist Gatekeeper settings."""

    whitelist_path: Path = field(default_factory=lambda: Path(DEFAULT_FILENAME))
    audit_log_path: Path | None = None
    broadcast_rejections: bool = True
    admin_token: str | None = None

    @classmethod
    def from_env(cls) -> WhitelistSettings:
        """
        Load settings from environment variables.

        Raises:
            ValueError: If a flag variable is not a boolean
        """
        audit_log = os.environ.get("WHITELIST_AUDIT_LOG")
        return cls(
            whitelist_path=Path(os.environ.get("WHITELIST_PATH") or DEFAULT_FILENAME),
            audit_log_path=Path(audit_log) if audit_log else None,
            broadcast_rejections=_env_flag("WHITELIST_BROADCAST_REJECTIONS", True),
            admin_token=os.environ.get("WHITELIST_ADMIN_TOKEN") or None,
        )


@dataclass
class WhitelistRuntime:
    """The wired-up whitelist components sharing one registry."""

    settings: WhitelistSettings
    registry: AdmissionRegistry
    gate: AdmissionGate
    commands: AdminCommandHandler
    auditor: AdmissionAuditor | None = None

    def close(self) -> None:
        """Release the audit log file."""
        if self.auditor:
            self.auditor.close()


def build_whitelist(
    settings: WhitelistSettings | None = None,
    sink: ConnectionSink | None = None,
    *,
    store: IdentityStore | None = None,
) -> WhitelistRuntime:
    """
    Construct the whitelist components.

    Args:
        settings: Settings (defaults to WhitelistSettings.from_env())
        sink: Server hooks for disconnect and broadcast
        store: Persistence override (defaults to a JSON file at whitelist_path)

    Returns:
        WhitelistRuntime
    """
    settings = settings or WhitelistSettings.from_env()
    auditor = AdmissionAuditor(log_path=settings.audit_log_path) if settings.audit_log_path else None
    registry = AdmissionRegistry(store or JsonIdentityStore(settings.whitelist_path))

    return WhitelistRuntime(
        settings=settings,
        registry=registry,
        gate=AdmissionGate(
            registry,
            sink,
            auditor=auditor,
            broadcast_rejections=settings.broadcast_rejections,
        ),
        commands=AdminCommandHandler(registry, auditor=auditor),
        auditor=auditor,
    )
