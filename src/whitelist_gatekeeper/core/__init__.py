"""Whitelist data models, persistence and correlation."""

from whitelist_gatekeeper.core.correlation import (
    CorrelatedLogger,
    correlation_context,
    generate_correlation_id,
    get_correlation_id,
    get_trace_context,
)
from whitelist_gatekeeper.core.models import WhitelistDocument, WhitelistUser
from whitelist_gatekeeper.core.store import IdentityStore, InMemoryIdentityStore, JsonIdentityStore

__all__ = [
    "WhitelistUser",
    "WhitelistDocument",
    "IdentityStore",
    "JsonIdentityStore",
    "InMemoryIdentityStore",
    # Correlation
    "correlation_context",
    "get_correlation_id",
    "generate_correlation_id",
    "get_trace_context",
    "CorrelatedLogger",
]
