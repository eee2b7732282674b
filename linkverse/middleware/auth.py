"""Authentication middleware for route protection."""

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from linkverse.core.container import container
from linkverse.core.logging import get_logger

logger = get_logger(__name__)

# Public routes that don't require a signed-in session
PUBLIC_PATHS = frozenset([
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/api/auth/status",
    "/api/auth/login",
    "/api/auth/register",
    "/api/auth/logout",
])


class AuthMiddleware(BaseHTTPMiddleware):
    """Reject data routes with 401 until the owner has signed in."""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        if path in PUBLIC_PATHS or not path.startswith("/api/"):
            return await call_next(request)

        session = container.session()
        if not session.is_authenticated:
            logger.debug("Rejected unauthenticated request", path=path)
            return JSONResponse(
                status_code=401,
                content={"success": False, "error": "Sign in required"}
            )

        request.state.user_id = session.user.id
        with structlog.contextvars.bound_contextvars(user_id=session.user.id):
            return await call_next(request)
