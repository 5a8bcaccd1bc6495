"""Health check endpoints for monitoring and readiness probes.

Provides endpoints to verify the API is running and that the GitHub data
repository is configured and reachable.
"""

import logging
from contextlib import closing
from datetime import datetime

from fastapi import APIRouter, Depends

from app.config import get_settings
from app.errors import ApiError
from app.security import has_admin_secret
from app.services.github_store import GitHubStore, StoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["health"])


@router.get("/health")
def health_check() -> dict:
    """Basic liveness check.

    Returns:
        Dictionary with status and timestamp.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now().astimezone().isoformat(),
    }


@router.get("/health/ready")
def readiness_check(is_admin: bool = Depends(has_admin_secret)) -> dict:
    """Readiness check verifying configuration and GitHub accessibility.

    Only booleans are reported for secrets, never their values.

    Returns:
        Dictionary with status and individual check results.

    Raises:
        ApiError: If any dependency check fails.
    """
    settings = get_settings()
    checks = {}

    checks["config"] = {
        **settings.github.presence(),
        "ADMIN_SECRET": bool(settings.app.admin_secret),
        "admin_secret_provided": is_admin,
    }

    # Check GitHub repository accessibility
    if not settings.github.is_configured:
        checks["github"] = "error: missing configuration"
    else:
        try:
            with closing(GitHubStore(settings.github)) as store:
                store.ping()
            checks["github"] = "ok"
        except StoreError as e:
            logger.error("GitHub readiness check failed: %s", e)
            checks["github"] = f"error: {e}"

    if checks["github"] != "ok":
        raise ApiError(503, "not-ready", {"checks": checks})

    return {
        "status": "ready",
        "checks": checks,
    }
