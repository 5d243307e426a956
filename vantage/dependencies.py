"""
vantage/dependencies.py

Reusable FastAPI dependencies: request context resolution, permission
enforcement, and translation of core errors into HTTP responses.

This is the only module that turns core outcomes into HTTP status codes.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from vantage import rbac
from vantage.config import IS_DEV
from vantage.context import ContextResolver
from vantage.errors import VantageError
from vantage.models import RequestContext
from vantage.rbac import has_permission


def get_resolver(request: Request) -> ContextResolver:
    """Resolver installed on the app by create_app (app.state.context_resolver)."""
    return request.app.state.context_resolver


def require_request_context(
    request: Request,
    resolver: ContextResolver = Depends(get_resolver),
) -> RequestContext:
    """
    Resolve the immutable RequestContext for this request.

    Usage:
        @app.get("/protected")
        def protected_route(ctx: RequestContext = Depends(require_request_context)):
            ...

    Raises:
        AuthenticationError: missing or invalid identity (401)
        AccessError: identity known but no usable tenant (403)
    """
    return resolver.resolve(request.headers)


def require_permission(action: str, resource: str) -> Callable:
    """
    FastAPI dependency factory for coarse role gating.

    Usage in routes:
        @app.post("/investors", dependencies=[Depends(require_permission("write", "investors"))])

    Record-level checks (vantage.access) are still required inside the route.
    """
    def _check_permission(ctx: RequestContext = Depends(require_request_context)) -> RequestContext:
        if IS_DEV and not has_permission(ctx, action, resource):
            print(f"[ACCESS] Permission denied: {action} on {resource}, "
                  f"role={ctx.role.value}, user_id={ctx.user_id}")
        rbac.require_permission(ctx, action, resource)
        return ctx

    return _check_permission


async def vantage_error_handler(request: Request, exc: VantageError) -> JSONResponse:
    if IS_DEV:
        print(f"[API] {exc.kind} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "kind": exc.kind})


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(VantageError, vantage_error_handler)
