"""
FastAPI Integration for Whitelist Gatekeeper.

Exposes the gate and the operator commands over HTTP, for game servers or
proxies that report logins through a webhook and for remote admin tools.

Usage:
    from fastapi import FastAPI
    from whitelist_gatekeeper.config import build_whitelist
    from whitelist_gatekeeper.middleware.fastapi import (
        CorrelationMiddleware,
        create_whitelist_router,
    )

    runtime = build_whitelist()
    app = FastAPI()
    app.add_middleware(CorrelationMiddleware)
    app.include_router(create_whitelist_router(runtime))

Every endpoint requires the ``X-Whitelist-Token`` header to match the
configured admin token. Without a configured token the endpoints answer 503.
"""

from __future__ import annotations

import hmac
from typing import Annotated, Any, Callable

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response, status
from pydantic import BaseModel, Field
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from whitelist_gatekeeper.config import WhitelistRuntime
from whitelist_gatekeeper.core.correlation import (
    CORRELATION_HEADER,
    correlation_context,
    extract_correlation_id,
)
from whitelist_gatekeeper.engines.gate import ConnectionEvent

TOKEN_HEADER = "X-Whitelist-Token"


class CommandRequest(BaseModel):
    """Body of ``POST /whitelist/commands``."""

    command: str = Field(..., description="Text after /wl, e.g. 'add Steve'")
    operator: str | None = Field(default=None, description="Who issued the command")


class ReplyLineModel(BaseModel):
    kind: str
    text: str


class CommandResponse(BaseModel):
    lines: list[ReplyLineModel]


class DecisionResponse(BaseModel):
    admitted: bool
    uuid: str
    username: str
    reason: str | None = None
    fail_closed: bool = False
    correlation_id: str | None = None


def require_admin_token(admin_token: str | None) -> Callable[..., None]:
    """
    Factory for the token-checking dependency.

    Args:
        admin_token: Expected token (None = bridge disabled)

    Returns:
        Dependency function
    """

    async def check_token(
        token: Annotated[str | None, Header(alias=TOKEN_HEADER)] = None,
    ) -> None:
        if not admin_token:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Whitelist admin token not configured",
            )
        if not token or not hmac.compare_digest(token.encode(), admin_token.encode()):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or missing whitelist token",
            )

    return check_token


def create_whitelist_router(
    runtime: WhitelistRuntime,
    *,
    admin_token: str | None = None,
    prefix: str = "/whitelist",
) -> APIRouter:
    """
    Build the whitelist HTTP endpoints.

    Args:
        runtime: Wired whitelist components
        admin_token: Token override (defaults to runtime.settings.admin_token)
        prefix: URL prefix

    Returns:
        APIRouter to include in the application
    """
    token = admin_token if admin_token is not None else runtime.settings.admin_token
    router = APIRouter(prefix=prefix, dependencies=[Depends(require_admin_token(token))])

    @router.post("/connections", response_model=DecisionResponse)
    def evaluate_connection(event: ConnectionEvent) -> DecisionResponse:
        decision = runtime.gate.handle_event(event)
        return DecisionResponse(
            admitted=decision.admitted,
            uuid=decision.uuid,
            username=decision.username,
            reason=decision.reason,
            fail_closed=decision.fail_closed,
            correlation_id=decision.correlation_id,
        )

    @router.post("/commands", response_model=CommandResponse)
    def run_command(body: CommandRequest) -> CommandResponse:
        lines = runtime.commands.handle(body.command, operator=body.operator)
        return CommandResponse(
            lines=[ReplyLineModel(kind=line.kind.value, text=line.text) for line in lines]
        )

    @router.get("")
    def list_whitelist() -> dict[str, Any]:
        snapshot = runtime.registry.list_all()
        return {
            "Users": [u.model_dump(by_alias=True) for u in snapshot.users],
            "Attempts": [u.model_dump(by_alias=True) for u in snapshot.attempts],
        }

    return router


class CorrelationMiddleware(BaseHTTPMiddleware):
    """
    Middleware that propagates correlation IDs through requests.

    Uses the incoming X-Correlation-ID header or generates a new ID, and
    echoes it on the response.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        correlation_id = extract_correlation_id(dict(request.headers))

        with correlation_context(
            correlation_id=correlation_id,
            path=str(request.url.path),
            client_ip=request.client.host if request.client else None,
        ) as cid:
            request.state.correlation_id = cid
            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = cid
            return response
