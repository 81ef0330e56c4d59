"""
Whitelist Gatekeeper - Player Admission Control.

Admits players whose server-asserted UUID is on the whitelist, disconnects
everyone else, and remembers rejected players so an operator can approve
them with ``/wl add``.
"""

from whitelist_gatekeeper.audit import AdmissionAuditor, AuditEvent, AuditEventType
from whitelist_gatekeeper.commands import (
    AdminCommandHandler,
    ReplyKind,
    ReplyLine,
    ReplySink,
    split_command,
)
from whitelist_gatekeeper.config import WhitelistRuntime, WhitelistSettings, build_whitelist
from whitelist_gatekeeper.core.correlation import (
    CorrelatedLogger,
    correlation_context,
    generate_correlation_id,
    get_correlation_id,
    get_trace_context,
)
from whitelist_gatekeeper.core.models import WhitelistDocument, WhitelistUser
from whitelist_gatekeeper.core.store import IdentityStore, InMemoryIdentityStore, JsonIdentityStore
from whitelist_gatekeeper.engines.gate import (
    AdmissionDecision,
    AdmissionGate,
    AdmissionOutcome,
    ConnectionEvent,
    ConnectionSink,
    NullConnectionSink,
    RecordingConnectionSink,
)
from whitelist_gatekeeper.engines.registry import (
    AdmissionCheck,
    AdmissionRegistry,
    RegistryErrorCode,
    RegistryResult,
    WhitelistError,
    WhitelistSnapshot,
    WhitelistUnavailableError,
)

__version__ = "0.1.0"

__all__ = [
    # Models
    "WhitelistUser",
    "WhitelistDocument",
    # Persistence
    "IdentityStore",
    "JsonIdentityStore",
    "InMemoryIdentityStore",
    # Registry
    "AdmissionRegistry",
    "AdmissionCheck",
    "RegistryResult",
    "RegistryErrorCode",
    "WhitelistSnapshot",
    "WhitelistError",
    "WhitelistUnavailableError",
    # Gate
    "AdmissionGate",
    "AdmissionDecision",
    "AdmissionOutcome",
    "ConnectionEvent",
    "ConnectionSink",
    "NullConnectionSink",
    "RecordingConnectionSink",
    # Commands
    "AdminCommandHandler",
    "ReplyKind",
    "ReplyLine",
    "ReplySink",
    "split_command",
    # Audit
    "AdmissionAuditor",
    "AuditEvent",
    "AuditEventType",
    # Correlation
    "correlation_context",
    "get_correlation_id",
    "generate_correlation_id",
    "get_trace_context",
    "CorrelatedLogger",
    # Configuration
    "WhitelistSettings",
    "WhitelistRuntime",
    "build_whitelist",
]
