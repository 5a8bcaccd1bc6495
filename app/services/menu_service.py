"""Menu persistence for the public viewer and the admin editor."""

import logging

from pydantic import ValidationError

from app.models.menu import MenuItem
from app.services.github_store import GitHubStore

logger = logging.getLogger(__name__)


def menu_path(tenant: str) -> str:
    return f"public/menus/{tenant}.json"


def save_menu(store: GitHubStore, tenant: str, items: list[MenuItem]) -> str:
    """Write the full item list for ``tenant``, replacing the previous menu.

    The current revision is looked up right before writing. Two editors
    saving at the same moment can still overwrite each other; the loser of a
    race between lookup and write gets a StoreWriteConflict.

    Args:
        store: Document store.
        tenant: Tenant slug.
        items: Items in display order.

    Returns:
        Repository path of the written menu.
    """
    path = menu_path(tenant)
    documents = [item.to_document() for item in items]
    store.put(path, documents, f"update menu {tenant}.json ({len(items)} items)")
    logger.info("Saved %d menu items for tenant %s", len(items), tenant)
    return path


def load_menu(store: GitHubStore, tenant: str) -> list[dict]:
    """Return the stored items for ``tenant``; unreadable entries are skipped."""
    doc = store.read_json(menu_path(tenant), [])
    items = []
    for raw in doc.data:
        try:
            items.append(MenuItem.model_validate(raw).to_document())
        except ValidationError:
            logger.warning("Skipping malformed menu item in %s", menu_path(tenant))
    return items
