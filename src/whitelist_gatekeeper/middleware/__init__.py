"""FastAPI integration."""

from whitelist_gatekeeper.middleware.fastapi import (
    CorrelationMiddleware,
    create_whitelist_router,
    require_admin_token,
)

__all__ = [
    "CorrelationMiddleware",
    "create_whitelist_router",
    "require_admin_token",
]
