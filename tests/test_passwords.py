"""Tests for password hashing and the strength policy."""

import pytest

from app.services import passwords


def test_hash_and_verify():
    hashed = passwords.hash_password("Str0ng!Pass")

    assert passwords.looks_like_bcrypt(hashed)
    assert hashed.startswith("$2b$04$")
    assert passwords.verify_password("Str0ng!Pass", hashed)
    assert not passwords.verify_password("str0ng!pass", hashed)


def test_hashes_are_salted():
    assert passwords.hash_password("Str0ng!Pass") != passwords.hash_password(
        "Str0ng!Pass"
    )


@pytest.mark.parametrize("stored", ["", "Str0ng!Pass", "$2b$04$tooshort"])
def test_non_bcrypt_values_never_verify(stored):
    assert passwords.verify_password("Str0ng!Pass", stored) is False


def test_strong_password_has_no_problems():
    assert passwords.password_problems("Str0ng!Pass", "alice") == []


@pytest.mark.parametrize(
    "password, rule",
    [
        ("S0!a", "too-short"),
        ("str0ng!pass", "missing-uppercase"),
        ("STR0NG!PASS", "missing-lowercase"),
        ("Strong!Pass", "missing-digit"),
        ("Str0ngPass1", "missing-special"),
        ("P@ssw0rd", "common-password"),
        ("S" + "tr0ng!" * 20, "too-long"),
    ],
)
def test_password_rules(password, rule):
    assert rule in passwords.password_problems(password)


def test_password_must_differ_from_username():
    problems = passwords.password_problems("Alice!2024", "alice!2024")
    assert problems == ["same-as-username"]
