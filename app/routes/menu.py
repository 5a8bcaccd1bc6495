"""Menu endpoints used by the admin editor and the public viewer."""

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from app.models.menu import MenuItem
from app.security import require_admin_secret
from app.services import menu_service
from app.services.github_store import GitHubStore, get_store
from app.services.tenants import resolve_tenant

router = APIRouter(prefix="/api", tags=["menu"])


class SaveMenuRequest(BaseModel):
    """Request body for save-menu."""

    tenant: str | None = Field(default=None, description="Tenant (defaults to host)")
    items: list[MenuItem] = Field(description="Complete menu in display order")


@router.post("/save-menu", dependencies=[Depends(require_admin_secret)])
def save_menu(
    body: SaveMenuRequest,
    request: Request,
    store: GitHubStore = Depends(get_store),
) -> dict:
    """Replace a tenant's menu with the submitted items.

    Returns:
        Dictionary with the repository path that was written.
    """
    tenant = resolve_tenant(request, body.tenant)
    path = menu_service.save_menu(store, tenant, body.items)
    return {"ok": True, "tenant": tenant, "path": path}


@router.get("/menu")
def get_menu(request: Request, store: GitHubStore = Depends(get_store)) -> dict:
    """Return a tenant's menu for the public viewer."""
    tenant = resolve_tenant(request)
    items = menu_service.load_menu(store, tenant)
    return {"ok": True, "tenant": tenant, "items": items}
