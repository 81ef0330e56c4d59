"""Admission registry and gate."""

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

__all__ = [
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
]
