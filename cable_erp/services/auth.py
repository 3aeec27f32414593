from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from passlib.context import CryptContext

from cable_erp.db import q, x
from cable_erp.utils import iso_now

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ROLES = ("admin", "user")


def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def _public(row: sqlite3.Row) -> dict:
    user = dict(row)
    user.pop("password_hash", None)
    user["is_active"] = bool(user.get("is_active"))
    return user


class AuthService:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def has_users(self) -> bool:
        return bool(q(self.conn, "SELECT 1 FROM users LIMIT 1"))

    def create_user(self, *, username: str, password: str, full_name: Optional[str] = None, role: str = "user") -> dict:
        username = str(username or "").strip()
        if not username:
            raise ValueError("Username is required.")
        if len(password or "") < 4:
            raise ValueError("Password must be at least 4 characters.")
        if role not in ROLES:
            raise ValueError("Role must be admin or user.")
        if q(self.conn, "SELECT 1 FROM users WHERE username=?", (username,)):
            raise ValueError("Username already exists.")

        user_id = x(
            self.conn,
            """
            INSERT INTO users(username, password_hash, full_name, role, is_active, created_at)
            VALUES (?, ?, ?, ?, 1, ?)
            """,
            (username, hash_password(password), (full_name or "").strip() or None, role, iso_now()),
        )
        logger.info("User created: %s", username)
        return self.get_current_user(user_id)

    def login(self, username: str, password: str) -> Optional[dict]:
        rows = q(self.conn, "SELECT * FROM users WHERE username=?", (str(username or "").strip(),))
        if not rows or not rows[0]["is_active"]:
            logger.warning("Login attempt failed for user: %s", username)
            return None
        if not verify_password(password or "", rows[0]["password_hash"]):
            logger.warning("Invalid password for user: %s", username)
            return None
        logger.info("User logged in: %s", username)
        return _public(rows[0])

    def get_current_user(self, user_id) -> Optional[dict]:
        rows = q(self.conn, "SELECT * FROM users WHERE id=?", (user_id,))
        return _public(rows[0]) if rows else None

    def set_active(self, user_id, active: bool) -> None:
        x(self.conn, "UPDATE users SET is_active=? WHERE id=?", (1 if active else 0, user_id))
