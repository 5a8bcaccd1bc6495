"""CLI to fold a legacy passwords.json into a tenant's users.json.

Older deployments kept bcrypt hashes (or plaintext) in a separate
``data/<tenant>/passwords.json``. The API only reads hashes inline from
``users.json`` (layout version 2). The legacy file is left in place so it can
be removed by hand once the migration is checked.
"""

import sys
from contextlib import closing
from pathlib import Path

import click

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.models.records import (  # noqa: E402  # pylint: disable=wrong-import-position
    USERS_LAYOUT_VERSION,
    UsersRecord,
)
from app.services import (  # noqa: E402  # pylint: disable=wrong-import-position
    passwords,
)
from app.services.github_store import (  # noqa: E402  # pylint: disable=wrong-import-position
    GitHubStore,
    build_store,
)
from app.services.user_service import (  # noqa: E402  # pylint: disable=wrong-import-position
    users_path,
)


def legacy_passwords_path(tenant: str) -> str:
    return f"data/{tenant}/passwords.json"


def merge_legacy_passwords(data: dict, legacy: dict) -> tuple[dict, list[str]]:
    """Merge legacy password entries into a users document.

    Existing inline hashes win over legacy ones. Plaintext legacy values are
    hashed. Entries for users that are not approved are dropped.

    Returns:
        Tuple of (new users document, usernames whose hash was added).
    """
    record = UsersRecord.model_validate(data)
    legacy_record = UsersRecord.model_validate({"passwords": legacy})

    added = []
    for name, value in legacy_record.passwords.items():
        if name not in record.allowed or name in record.passwords:
            continue
        if not passwords.looks_like_bcrypt(value):
            value = passwords.hash_password(value)
        record.passwords[name] = value
        added.append(name)

    record.version = USERS_LAYOUT_VERSION
    return record.model_dump(), added


def migrate_tenant(
    store: GitHubStore, tenant: str, dry_run: bool
) -> tuple[list[str], bool] | None:
    """Merge one tenant's legacy file.

    Returns:
        Tuple of (usernames added, whether users.json was written), or None
        when the tenant has no legacy file.
    """
    legacy = store.read_json(legacy_passwords_path(tenant), {})
    if legacy.sha is None:
        return None

    result: dict = {}

    def mutate(data: dict) -> bool:
        merged, added = merge_legacy_passwords(data, legacy.data)
        result["added"] = added
        if dry_run or merged == data:
            return False
        data.clear()
        data.update(merged)
        return True

    _, written = store.update_json(
        users_path(tenant),
        {},
        mutate,
        f"migrate passwords.json into users.json (tenant: {tenant})",
    )
    return result.get("added", []), written


@click.command()
@click.option("--tenant", prompt="Tenant", help="Tenant slug to migrate")
@click.option("--dry-run", is_flag=True, help="Show what would change only")
def migrate(tenant: str, dry_run: bool) -> None:
    """Copy hashes from passwords.json into users.json for one tenant."""
    with closing(build_store()) as store:
        outcome = migrate_tenant(store, tenant, dry_run)

    if outcome is None:
        click.echo(f"No legacy passwords.json for tenant {tenant}; nothing to do.")
        return

    added, written = outcome
    action = "would add" if dry_run else "added"
    click.echo(f"\nTenant : {tenant}")
    click.echo(f"Hashes : {action} {len(added)} ({', '.join(added) or '-'})")
    click.echo(f"Written: {'yes' if written else 'no'}")
    if written:
        click.echo(
            f"Remove {legacy_passwords_path(tenant)} "
            "once you have checked the result.\n"
        )


if __name__ == "__main__":
    migrate()  # pylint: disable=no-value-for-parameter
