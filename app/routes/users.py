"""Account endpoints: registration, approval, login and user administration.

Each handler resolves the tenant, delegates to ``user_service`` and wraps the
result in ``{"ok": true, ...}``. Failures are raised as ApiError or store
errors and rendered by the application's exception handlers.
"""

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from app.security import has_admin_secret, require_admin_secret
from app.services import user_service
from app.services.github_store import GitHubStore, get_store
from app.services.tenants import resolve_tenant

router = APIRouter(prefix="/api", tags=["users"])


class UsernameRequest(BaseModel):
    """Request body naming a user within a tenant."""

    tenant: str | None = Field(default=None, description="Tenant (defaults to host)")
    username: str = Field(default="", description="Username to act on")


class CredentialsRequest(UsernameRequest):
    """Request body carrying a username and password."""

    password: str = Field(default="", description="Plaintext password")


class SetPasswordRequest(CredentialsRequest):
    """Request body for set-password."""

    model_config = ConfigDict(populate_by_name=True)

    current_password: str | None = Field(
        default=None,
        alias="currentPassword",
        description="Current password, required without the admin secret",
    )


@router.post("/users-register")
def register_user(
    body: CredentialsRequest,
    request: Request,
    store: GitHubStore = Depends(get_store),
) -> dict:
    """Submit a registration request for admin approval."""
    tenant = resolve_tenant(request, body.tenant)
    result = user_service.register(store, tenant, body.username, body.password)
    return {"ok": True, **result}


@router.post("/users-approve", dependencies=[Depends(require_admin_secret)])
def approve_user(
    body: UsernameRequest,
    request: Request,
    store: GitHubStore = Depends(get_store),
) -> dict:
    """Approve a pending registration."""
    tenant = resolve_tenant(request, body.tenant)
    result = user_service.approve(store, tenant, body.username)
    return {"ok": True, **result}


@router.post("/users-reject", dependencies=[Depends(require_admin_secret)])
def reject_user(
    body: UsernameRequest,
    request: Request,
    store: GitHubStore = Depends(get_store),
) -> dict:
    tenant = resolve_tenant(request, body.tenant)
    result = user_service.reject(store, tenant, body.username)
    return {"ok": True, **result}


@router.post("/users-delete", dependencies=[Depends(require_admin_secret)])
def delete_user(
    body: UsernameRequest,
    request: Request,
    store: GitHubStore = Depends(get_store),
) -> dict:
    tenant = resolve_tenant(request, body.tenant)
    result = user_service.delete_user(store, tenant, body.username)
    return {"ok": True, **result}


@router.post("/users-set-password")
def set_password(
    body: SetPasswordRequest,
    request: Request,
    is_admin: bool = Depends(has_admin_secret),
    store: GitHubStore = Depends(get_store),
) -> dict:
    """Reset (admin secret) or change (current password) a user's password."""
    tenant = resolve_tenant(request, body.tenant)
    result = user_service.set_password(
        store,
        tenant,
        body.username,
        body.password,
        is_admin=is_admin,
        current_password=body.current_password,
    )
    return {"ok": True, **result}


@router.post("/users-login")
def login_user(
    body: CredentialsRequest,
    request: Request,
    store: GitHubStore = Depends(get_store),
) -> dict:
    """Verify a username and password. No token or hash is returned."""
    tenant = resolve_tenant(request, body.tenant)
    result = user_service.login(store, tenant, body.username, body.password)
    return {"ok": True, **result}


@router.get("/users")
def list_users(
    request: Request,
    is_admin: bool = Depends(has_admin_secret),
    store: GitHubStore = Depends(get_store),
) -> dict:
    """List approved and pending usernames for a tenant.

    With the admin secret the response also names the users that have a
    password set.
    """
    tenant = resolve_tenant(request)
    result = user_service.list_users(store, tenant, include_passwords=is_admin)
    return {"ok": True, **result}
