"""Tenant resolution from request bodies, query strings and hostnames."""

import logging
import re

from fastapi import Request

from app.config import get_settings

logger = logging.getLogger(__name__)

_INVALID_TENANT_CHARS = re.compile(r"[^a-z0-9._-]")


def sanitize_tenant(raw: object, default: str) -> str:
    """Lowercase ``raw`` and strip everything outside ``[a-z0-9._-]``.

    Leading and trailing dots are removed so a tenant can never be ``..``.

    Args:
        raw: Candidate tenant value, possibly None.
        default: Tenant returned when nothing usable remains.

    Returns:
        Sanitised tenant slug.
    """
    clean = _INVALID_TENANT_CHARS.sub("", str(raw or "").strip().lower())
    return clean.strip(".") or default


def tenant_from_host(host: str | None) -> str | None:
    """Derive a tenant from the first DNS label of ``host``.

    Returns None for empty hosts, generic labels such as ``www`` and
    subdomains of hosting-platform domains.
    """
    settings = get_settings()
    hostname = (host or "").split(",")[0].strip().lower().split(":")[0]
    if not hostname:
        return None

    for domain in settings.app.platform_domains:
        if hostname == domain or hostname.endswith("." + domain):
            return None

    label = hostname.split(".")[0]
    if not label or label in settings.app.platform_labels:
        return None
    return label


def resolve_tenant(request: Request, explicit: str | None = None) -> str:
    """Resolve the tenant for a request.

    Precedence: explicit body value, ``?tenant=`` query parameter, then the
    forwarded or direct ``Host`` header.

    Args:
        request: Incoming request.
        explicit: Tenant supplied in the request body, if any.

    Returns:
        Sanitised tenant slug, falling back to the configured default.
    """
    default = get_settings().app.default_tenant
    candidate = explicit or request.query_params.get("tenant")
    if not candidate:
        candidate = tenant_from_host(
            request.headers.get("x-forwarded-host") or request.headers.get("host")
        )

    tenant = sanitize_tenant(candidate, default)
    logger.debug("Resolved tenant %s for %s", tenant, request.url.path)
    return tenant
