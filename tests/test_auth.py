from __future__ import annotations

import pytest

from cable_erp.db import ensure_schema
from cable_erp.services.auth import AuthService


@pytest.fixture
def auth(conn):
    ensure_schema(conn)
    return AuthService(conn)


def test_create_and_login(auth):
    assert auth.has_users() is False
    user = auth.create_user(username="admin", password="secret1", full_name="Owner", role="admin")

    assert "password_hash" not in user
    logged_in = auth.login("admin", "secret1")
    assert logged_in["id"] == user["id"]
    assert logged_in["role"] == "admin"
    assert auth.get_current_user(user["id"])["username"] == "admin"


def test_login_failures_return_none(auth):
    user = auth.create_user(username="clerk", password="secret1")

    assert auth.login("clerk", "wrong") is None
    assert auth.login("nobody", "secret1") is None

    auth.set_active(user["id"], False)
    assert auth.login("clerk", "secret1") is None


def test_duplicate_username(auth):
    auth.create_user(username="clerk", password="secret1")
    with pytest.raises(ValueError, match="already exists"):
        auth.create_user(username="clerk", password="another")


def test_unknown_user_id(auth):
    assert auth.get_current_user(404) is None
