"""FastAPI application for the multi-tenant QR menu.

Stateless handlers for menu editing and account management. All state lives
as JSON files in a GitHub repository accessed through the Contents API, so the
service can scale to zero between requests.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import get_settings
from app.errors import ApiError
from app.routes import health, menu, users
from app.security import require_admin_secret
from app.services.github_store import (
    MissingGithubConfig,
    StoreError,
    StoreUnavailable,
    StoreWriteConflict,
)

logger = logging.getLogger(__name__)

_HTTP_ERROR_KINDS = {
    404: "not-found",
    405: "method-not-allowed",
}


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Application lifespan context manager for startup and shutdown events.

    Args:
        fastapi_app: FastAPI application instance.

    Yields:
        Control back to FastAPI during application lifetime.
    """
    # Startup
    logger.info("Starting QR menu API...")

    # Load app
    _ = fastapi_app

    # Load settings
    settings = get_settings()

    if not settings.github.is_configured:
        logger.warning(
            "GitHub storage is not fully configured: %s",
            settings.github.presence(),
        )
    if not settings.app.admin_secret:
        logger.warning("ADMIN_SECRET is not set; privileged endpoints will refuse")

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Application shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="QR Menu API",
    description="Menu editing and account management for tenant menus",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().app.cors_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", get_settings().app.admin_secret_header],
)


@app.middleware("http")
async def no_store(request: Request, call_next):
    """Stop browsers and CDNs from caching account and menu responses."""
    response = await call_next(request)
    response.headers.setdefault("Cache-Control", "no-store")
    return response


def _error_response(error: ApiError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_body())


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    """Render domain errors as ``{ok: false, error, details?}``."""
    _ = request
    return _error_response(exc)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    """Translate document store failures into API errors.

    Args:
        request: FastAPI request object.
        exc: Store exception that was raised.

    Returns:
        JSON response; credentials are never included.
    """
    if isinstance(exc, MissingGithubConfig):
        logger.error("Refusing %s: GitHub storage not configured", request.url.path)
        return _error_response(ApiError(500, "missing-github-config", exc.presence))

    if isinstance(exc, StoreWriteConflict):
        return _error_response(
            ApiError(409, "conflict", {"message": "Data changed, please retry"})
        )

    status_code = exc.status_code if isinstance(exc, StoreUnavailable) else None
    logger.error("GitHub storage error for %s: %s", request.url.path, exc)
    return _error_response(
        ApiError(
            502,
            "github-error",
            {"status": status_code, "message": "Storage backend unavailable"},
        )
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Report malformed bodies without echoing submitted values."""
    _ = request
    details = [
        {
            "loc": list(err.get("loc", ())),
            "msg": err.get("msg"),
            "type": err.get("type"),
        }
        for err in exc.errors()
    ]
    return _error_response(ApiError(400, "bad-request", details))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    _ = request
    kind = _HTTP_ERROR_KINDS.get(exc.status_code, "http-error")
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": kind},
        headers=getattr(exc, "headers", None),
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions globally.

    Args:
        request: FastAPI request object.
        exc: Exception that was raised.

    Returns:
        JSON response without internal details.
    """
    logger.error(
        "Unhandled exception for %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={"ok": False, "error": "internal-error"},
    )


# Register routers
app.include_router(health.router)
app.include_router(users.router)
app.include_router(menu.router)


# Root endpoint
@app.get("/", dependencies=[Depends(require_admin_secret)])
def root():
    """Root endpoint with API information.

    Returns:
        Dictionary with API details and links.
    """
    return {
        "service": "QR Menu API",
        "version": "0.1.0",
        "status": "running",
        "endpoints": {
            "health": "/health",
            "readiness": "/health/ready",
            "register": "POST /api/users-register",
            "approve": "POST /api/users-approve",
            "reject": "POST /api/users-reject",
            "delete": "POST /api/users-delete",
            "set_password": "POST /api/users-set-password",
            "login": "POST /api/users-login",
            "list_users": "GET /api/users",
            "save_menu": "POST /api/save-menu",
            "menu": "GET /api/menu",
            "docs": "/docs",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
