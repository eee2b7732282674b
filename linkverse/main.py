"""
FastAPI backend for the Linkverse bookmark manager.

Serves the link, collection, profile and export views over a shared,
dependency-injected data cache backed by the remote BaaS.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, ORJSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from linkverse.core.config import Settings
from linkverse.core.container import container
from linkverse.core.errors import AuthRequired, NetworkOrServiceError, NotFound, ValidationError
from linkverse.core.logging import configure_logging, get_logger
from linkverse.middleware.auth import AuthMiddleware
from linkverse.routers import account, auth, collections, links

# Initialize settings and logging
settings = Settings()
configure_logging(settings)
logger = get_logger(__name__)

# Suppress noisy loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("watchfiles").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    logger.info("Starting Linkverse",
               baas_url=settings.baas_url,
               enrichment_enabled=settings.enrichment_enabled,
               ai_provider=settings.ai_provider)
    yield

    await container.gateway().shutdown()
    await container.session().shutdown()
    logger.info("Services shutdown complete")


app = FastAPI(
    title="Linkverse",
    version="1.0.0",
    description="Bookmark manager with shared data cache and AI link enrichment",
    lifespan=lifespan,
    default_response_class=ORJSONResponse
)


def _error_response(status_code: int, exc: Exception, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": str(exc), **extra}
    )


@app.exception_handler(AuthRequired)
async def auth_required_handler(request: Request, exc: AuthRequired):
    return _error_response(status.HTTP_401_UNAUTHORIZED, exc)


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return _error_response(status.HTTP_404_NOT_FOUND, exc, kind=exc.kind)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, exc, field=exc.field)


@app.exception_handler(NetworkOrServiceError)
async def service_error_handler(request: Request, exc: NetworkOrServiceError):
    logger.warning("Upstream failure", service=exc.service,
                  status_code=exc.status_code, error=str(exc))
    return _error_response(status.HTTP_502_BAD_GATEWAY, exc, service=exc.service)


class CatchAllExceptionsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled exception: {type(e).__name__}: {str(e)}", exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "success": False,
                    "error": f"{type(e).__name__}: {str(e)}",
                    "detail": "Internal server error"
                }
            )


app.add_middleware(CatchAllExceptionsMiddleware)
app.add_middleware(AuthMiddleware)

logger.info("Configuring CORS middleware",
           origins_count=len(settings.cors_origins),
           origins=settings.cors_origins)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(links.router)
app.include_router(collections.router)
app.include_router(account.router)


@app.get("/health")
async def health_check():
    cache = container.cache()
    return {
        "status": "OK",
        "service": "linkverse",
        "version": app.version,
        "environment": "development" if settings.debug else "production",
        "authenticated": container.session().is_authenticated,
        "cache_generation": cache.generation,
        "enrichment_enabled": settings.enrichment_enabled,
        "timestamp": datetime.now().isoformat()
    }


def main():
    import uvicorn
    logger.info("Starting Linkverse",
               host=settings.host, port=settings.port, debug=settings.debug)
    uvicorn.run(
        "linkverse.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
