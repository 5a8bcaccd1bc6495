"""Pydantic models for the per-tenant account documents.

``data/<tenant>/users.json`` holds the approved usernames and their bcrypt
hashes inline; ``data/<tenant>/pending.json`` maps usernames awaiting approval
to the hash they registered with.
"""

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

ADMIN_USERNAME = "admin"
USERS_LAYOUT_VERSION = 2
USERNAME_PATTERN = re.compile(r"^[a-z0-9._-]{1,64}$")


def normalize_username(raw: object) -> str:
    """Trim and lowercase a username for storage and comparison."""
    return str(raw or "").strip().lower()


def is_valid_username(username: str) -> bool:
    return bool(USERNAME_PATTERN.match(username))


class UsersRecord(BaseModel):
    """Approved accounts for one tenant.

    ``admin`` is always present in ``allowed``, even when the stored file
    omits it.
    """

    model_config = ConfigDict(extra="ignore")

    version: int = USERS_LAYOUT_VERSION
    allowed: list[str] = Field(default_factory=lambda: [ADMIN_USERNAME])
    passwords: dict[str, str] = Field(default_factory=dict)

    @field_validator("allowed", mode="before")
    @classmethod
    def _normalize_allowed(cls, value: object) -> list[str]:
        names = [ADMIN_USERNAME]
        for item in value if isinstance(value, list) else []:
            name = normalize_username(item)
            if name and name not in names:
                names.append(name)
        return names

    @field_validator("passwords", mode="before")
    @classmethod
    def _normalize_passwords(cls, value: object) -> dict[str, str]:
        if not isinstance(value, dict):
            return {}
        return {
            normalize_username(name): hashed
            for name, hashed in value.items()
            if normalize_username(name) and isinstance(hashed, str) and hashed
        }

    def is_allowed(self, username: str) -> bool:
        return username in self.allowed


class PendingRecord(BaseModel):
    """Registrations awaiting admin approval, keyed by username."""

    entries: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_document(cls, data: dict) -> "PendingRecord":
        entries = {}
        for name, value in data.items():
            key = normalize_username(name)
            if key and isinstance(value, str) and value:
                entries[key] = value
        return cls(entries=entries)

    def to_document(self) -> dict[str, str]:
        return dict(self.entries)
