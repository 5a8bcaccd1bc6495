"""Password hashing and strength policy shared by every account endpoint."""

import logging
import re

import bcrypt

from app.config import get_settings

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
# bcrypt's input limit; longer passwords would be silently truncated.
MAX_PASSWORD_BYTES = 72

_BCRYPT_HASH = re.compile(r"^\$2[aby]\$\d{2}\$[./A-Za-z0-9]{53}$")

COMMON_PASSWORDS = frozenset(
    {
        "123456",
        "123456789",
        "12345678",
        "password",
        "password1",
        "password123",
        "passwort",
        "passwort1",
        "qwerty",
        "qwertz",
        "qwerty123",
        "abc123",
        "111111",
        "letmein",
        "welcome",
        "welcome1",
        "iloveyou",
        "admin",
        "admin123",
        "administrator",
        "changeme",
        "hallo123",
        "sommer2024",
        "winter2024",
        "p@ssw0rd",
        "p@ssword1",
        "passw0rd!",
        "password1!",
        "password!1",
        "qwerty1!",
        "welcome1!",
        "admin123!",
    }
)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt with the configured cost factor."""
    rounds = get_settings().app.bcrypt_rounds
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash.

    Malformed or legacy non-bcrypt hashes never verify.
    """
    if not looks_like_bcrypt(password_hash):
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash could not be checked")
        return False


def looks_like_bcrypt(value: str) -> bool:
    return bool(_BCRYPT_HASH.match(value or ""))


def password_problems(password: str, username: str = "") -> list[str]:
    """List the strength rules ``password`` fails.

    Args:
        password: Candidate password.
        username: Owner of the password, which it must not equal.

    Returns:
        Rule identifiers; empty when the password is acceptable.
    """
    problems = []
    if len(password) < MIN_PASSWORD_LENGTH:
        problems.append("too-short")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        problems.append("too-long")
    if not re.search(r"[A-Z]", password):
        problems.append("missing-uppercase")
    if not re.search(r"[a-z]", password):
        problems.append("missing-lowercase")
    if not re.search(r"\d", password):
        problems.append("missing-digit")
    if not re.search(r"[^A-Za-z0-9]", password):
        problems.append("missing-special")
    if password.lower() in COMMON_PASSWORDS:
        problems.append("common-password")
    if username and password.lower() == username.lower():
        problems.append("same-as-username")
    return problems
