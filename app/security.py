"""Security dependencies for the FastAPI application."""

import hmac
import logging

from fastapi import Request, Security, status
from fastapi.security import APIKeyHeader

from app.config import get_settings
from app.errors import ApiError

logger = logging.getLogger(__name__)

# Default header name used for OpenAPI docs; runtime config may override.
DEFAULT_ADMIN_SECRET_HEADER = "x-admin-secret"
admin_secret_header = APIKeyHeader(
    name=DEFAULT_ADMIN_SECRET_HEADER,
    description="Shared admin secret required for privileged endpoints",
    auto_error=False,
)


def secret_matches(provided: str | None) -> bool:
    """Compare ``provided`` with the configured admin secret.

    Fails closed: with no secret configured nothing matches.
    """
    expected = get_settings().app.admin_secret
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def _provided_secret(request: Request, provided: str | None) -> str | None:
    header_name = get_settings().app.admin_secret_header or DEFAULT_ADMIN_SECRET_HEADER

    # Allow dynamic header name from settings if different to default
    if not provided and request:
        provided = request.headers.get(header_name)
    return provided


def has_admin_secret(
    request: Request,
    provided: str | None = Security(admin_secret_header),
) -> bool:
    """Report whether the request carries a valid admin secret, never raising."""
    return secret_matches(_provided_secret(request, provided))


def require_admin_secret(
    request: Request,
    provided: str | None = Security(admin_secret_header),
) -> None:
    """Reject the request unless it carries the configured admin secret."""
    if not secret_matches(_provided_secret(request, provided)):
        logger.warning(
            "Rejected %s %s: missing or invalid admin secret",
            request.method,
            request.url.path,
        )
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "unauthorized")
