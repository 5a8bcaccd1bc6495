"""Account registration, approval and login for tenants.

A username moves from unregistered to pending (``register``), then either to
approved (``approve``) or back to unregistered (``reject``). Approved users can
be removed again with ``delete_user``. Each transition is a read-modify-write
of one or two JSON documents in the store; there is no cross-document
transaction, so two-document flows write the access grant first and are safe
to re-run.
"""

import logging
from collections.abc import Callable

from fastapi import status

from app.errors import ApiError
from app.models.records import (
    ADMIN_USERNAME,
    PendingRecord,
    UsersRecord,
    is_valid_username,
    normalize_username,
)
from app.services import passwords
from app.services.github_store import GitHubStore, StoreError

logger = logging.getLogger(__name__)


def users_path(tenant: str) -> str:
    return f"data/{tenant}/users.json"


def pending_path(tenant: str) -> str:
    return f"data/{tenant}/pending.json"


def _edit_users(edit: Callable[[UsersRecord], None]) -> Callable[[dict], bool]:
    """Wrap an edit of a UsersRecord as a raw-document mutation."""

    def mutate(data: dict) -> bool:
        record = UsersRecord.model_validate(data)
        before = record.model_dump()
        edit(record)
        after = record.model_dump()
        if after == before:
            return False
        data.clear()
        data.update(after)
        return True

    return mutate


def _edit_pending(edit: Callable[[PendingRecord], None]) -> Callable[[dict], bool]:
    """Wrap an edit of a PendingRecord as a raw-document mutation."""

    def mutate(data: dict) -> bool:
        record = PendingRecord.from_document(data)
        before = record.to_document()
        edit(record)
        after = record.to_document()
        if after == before:
            return False
        data.clear()
        data.update(after)
        return True

    return mutate


def load_users(store: GitHubStore, tenant: str) -> UsersRecord:
    doc = store.read_json(users_path(tenant), {})
    return UsersRecord.model_validate(doc.data)


def load_pending(store: GitHubStore, tenant: str) -> PendingRecord:
    doc = store.read_json(pending_path(tenant), {})
    return PendingRecord.from_document(doc.data)


def _require_username(raw: object) -> str:
    username = normalize_username(raw)
    if not username:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "username-required")
    return username


def _check_strength(password: str, username: str) -> None:
    problems = passwords.password_problems(password, username)
    if problems:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST, "weak-password", {"rules": problems}
        )


def register(store: GitHubStore, tenant: str, username: str, password: str) -> dict:
    """Record a registration request awaiting admin approval.

    Args:
        store: Document store.
        tenant: Tenant slug.
        username: Requested username.
        password: Plaintext password; only its hash is stored.

    Returns:
        Dictionary with the pending username.

    Raises:
        ApiError: ``invalid``, ``weak-password``, ``exists`` or ``pending``.
    """
    name = normalize_username(username)
    if (
        not name
        or not password
        or name == ADMIN_USERNAME
        or not is_valid_username(name)
    ):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "invalid")
    _check_strength(password, name)

    if load_users(store, tenant).is_allowed(name):
        raise ApiError(status.HTTP_409_CONFLICT, "exists")

    hashed = passwords.hash_password(password)

    def add(record: PendingRecord) -> None:
        if name in record.entries:
            raise ApiError(status.HTTP_409_CONFLICT, "pending")
        record.entries[name] = hashed

    store.update_json(
        pending_path(tenant),
        {},
        _edit_pending(add),
        f"register pending user {name} (tenant: {tenant})",
    )
    logger.info("Registered pending user %s for tenant %s", name, tenant)
    return {"pendingUser": name}


def approve(store: GitHubStore, tenant: str, username: str) -> dict:
    """Move a pending registration into the approved accounts.

    users.json is written before pending.json. If the second write fails the
    user can already log in and still shows as pending; calling approve again
    finishes the move.

    Raises:
        ApiError: ``username-required``, ``not-pending`` or
            ``approve-incomplete``.
    """
    name = _require_username(username)
    pending = load_pending(store, tenant)
    stored = pending.entries.get(name)

    if stored is None:
        if load_users(store, tenant).is_allowed(name):
            logger.info("User %s already approved for tenant %s", name, tenant)
            return {"tenant": tenant, "username": name, "changed": False}
        raise ApiError(status.HTTP_404_NOT_FOUND, "not-pending")

    if passwords.looks_like_bcrypt(stored):
        hashed = stored
    else:
        logger.warning("Hashing legacy plaintext pending entry for %s", name)
        hashed = passwords.hash_password(stored)

    # A re-run after a partial approve must not undo a password set since.
    def grant(record: UsersRecord) -> None:
        if name not in record.allowed:
            record.allowed.append(name)
        record.passwords.setdefault(name, hashed)

    store.update_json(
        users_path(tenant),
        {},
        _edit_users(grant),
        f"approve user {name} (tenant: {tenant})",
    )

    def remove(record: PendingRecord) -> None:
        record.entries.pop(name, None)

    try:
        store.update_json(
            pending_path(tenant),
            {},
            _edit_pending(remove),
            f"remove pending {name} (tenant: {tenant})",
        )
    except StoreError as e:
        logger.error(
            "Approved %s for tenant %s but could not clear pending entry: %s",
            name,
            tenant,
            e,
        )
        raise ApiError(
            status.HTTP_502_BAD_GATEWAY,
            "approve-incomplete",
            {"step": "pending", "approved": True, "message": str(e)},
        ) from e

    logger.info("Approved user %s for tenant %s", name, tenant)
    return {"tenant": tenant, "username": name, "changed": True}


def reject(store: GitHubStore, tenant: str, username: str) -> dict:
    """Drop a pending registration. Rejecting twice is not an error."""
    name = _require_username(username)

    def remove(record: PendingRecord) -> None:
        record.entries.pop(name, None)

    _, changed = store.update_json(
        pending_path(tenant),
        {},
        _edit_pending(remove),
        f"reject pending user {name} (tenant: {tenant})",
    )

    # Never-approved users must not keep a password hash around.
    def purge(record: UsersRecord) -> None:
        if name not in record.allowed:
            record.passwords.pop(name, None)

    if name != ADMIN_USERNAME:
        store.update_json(
            users_path(tenant),
            {},
            _edit_users(purge),
            f"purge stray password for {name} (tenant: {tenant})",
        )

    logger.info("Rejected %s for tenant %s (changed=%s)", name, tenant, changed)
    return {"tenant": tenant, "username": name, "changed": changed}


def delete_user(store: GitHubStore, tenant: str, username: str) -> dict:
    """Remove an approved user and their password hash.

    Raises:
        ApiError: ``username-required`` or ``no-admin-delete``.
    """
    name = _require_username(username)
    if name == ADMIN_USERNAME:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "no-admin-delete")

    def remove(record: UsersRecord) -> None:
        if name in record.allowed:
            record.allowed.remove(name)
        record.passwords.pop(name, None)

    _, changed = store.update_json(
        users_path(tenant),
        {},
        _edit_users(remove),
        f"delete user {name} (tenant: {tenant})",
    )
    logger.info("Deleted %s for tenant %s (changed=%s)", name, tenant, changed)
    return {"tenant": tenant, "username": name, "changed": changed}


def set_password(
    store: GitHubStore,
    tenant: str,
    username: str,
    password: str,
    is_admin: bool,
    current_password: str | None = None,
) -> dict:
    """Set a new password for an approved user.

    Admins may reset any approved user's password. Without the admin secret
    the caller must prove the current password of ``username``.

    Raises:
        ApiError: ``invalid``, ``weak-password``, ``not-allowed`` or
            ``unauthorized``.
    """
    name = normalize_username(username)
    if not name or not password:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "invalid")

    users = load_users(store, tenant)
    if not is_admin:
        # Unknown users get the same answer as a wrong password.
        stored = users.passwords.get(name) if users.is_allowed(name) else None
        if not (
            current_password
            and stored
            and passwords.verify_password(current_password, stored)
        ):
            raise ApiError(status.HTTP_401_UNAUTHORIZED, "unauthorized")

    if not users.is_allowed(name):
        raise ApiError(status.HTTP_403_FORBIDDEN, "not-allowed")

    _check_strength(password, name)
    hashed = passwords.hash_password(password)

    def update(record: UsersRecord) -> None:
        if name not in record.allowed:
            raise ApiError(status.HTTP_403_FORBIDDEN, "not-allowed")
        record.passwords[name] = hashed

    store.update_json(
        users_path(tenant),
        {},
        _edit_users(update),
        f"set password for {name} (tenant: {tenant})",
    )
    logger.info("Password updated for %s on tenant %s", name, tenant)
    return {"tenant": tenant, "username": name}


def login(store: GitHubStore, tenant: str, username: str, password: str) -> dict:
    """Check credentials of an approved user.

    Raises:
        ApiError: ``missing-credentials``, ``unauthorized``, ``no-password``
            or ``invalid-password``.
    """
    name = normalize_username(username)
    if not name or not password:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "missing-credentials")

    users = load_users(store, tenant)
    if not users.is_allowed(name):
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "unauthorized")

    stored = users.passwords.get(name)
    if not stored:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "no-password")

    if not passwords.verify_password(password, stored):
        logger.info("Failed login for %s on tenant %s", name, tenant)
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "invalid-password")

    return {"username": name, "tenant": tenant}


def list_users(store: GitHubStore, tenant: str, include_passwords: bool) -> dict:
    """Summarise approved and pending users. Hashes are never included."""
    users = load_users(store, tenant)
    pending = load_pending(store, tenant)

    result = {
        "tenant": tenant,
        "allowed": users.allowed,
        "pending": sorted(pending.entries),
    }
    if include_passwords:
        result["passwords"] = sorted(users.passwords)
    return result
