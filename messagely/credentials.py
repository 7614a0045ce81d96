"""Credential storage: password hashing and user profile access."""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Callable, List, Optional

from passlib.context import CryptContext

from .config import DEFAULT_PASSWORD_ROUNDS
from .database import Database, current_timestamp
from .errors import DuplicateUsername, InvalidInput, NotFound
from .models import User, UserSummary

logger = logging.getLogger("messagely.credentials")


def build_password_context(rounds: int = DEFAULT_PASSWORD_ROUNDS) -> CryptContext:
    """Return a salted PBKDF2 context whose work factor is ``rounds``."""

    return CryptContext(
        schemes=["pbkdf2_sha256"],
        deprecated="auto",
        pbkdf2_sha256__default_rounds=rounds,
    )


def _require(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidInput(f"{field} is required")
    return str(value)


class CredentialStore:
    """Register users, check their passwords and expose their profiles."""

    def __init__(
        self,
        database: Database,
        *,
        password_rounds: int = DEFAULT_PASSWORD_ROUNDS,
        clock: Callable[[], datetime] = current_timestamp,
    ) -> None:
        self._database = database
        self._pwd_context = build_password_context(password_rounds)
        self._clock = clock

    def hash_password(self, password: str) -> str:
        return self._pwd_context.hash(password)

    def verify_password(self, password: str, hashed: str) -> bool:
        try:
            return self._pwd_context.verify(password, hashed)
        except ValueError:
            return False

    def register(
        self,
        username: str,
        password: str,
        first_name: str,
        last_name: str,
        phone: str,
    ) -> User:
        """Create a new user; ``join_at`` and ``last_login_at`` share one instant."""

        username = _require(username, "username").strip()
        password = _require(password, "password")
        first_name = _require(first_name, "first_name").strip()
        last_name = _require(last_name, "last_name").strip()
        phone = _require(phone, "phone").strip()

        password_hash = self.hash_password(password)
        try:
            user = self._database.insert_user(
                username=username,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
                phone=phone,
                joined_at=self._clock(),
            )
        except sqlite3.IntegrityError as exc:
            logger.info("Rejected registration for existing username %s", username)
            raise DuplicateUsername() from exc

        logger.info("Registered user %s", username)
        return user

    def authenticate(self, username: Optional[str], password: Optional[str]) -> bool:
        """Return ``True`` when ``password`` matches the stored hash for ``username``.

        Unknown usernames yield ``False`` rather than an error.
        """

        if not username or not password:
            raise InvalidInput("Username and password required")

        stored_hash = self._database.get_password_hash(username)
        if stored_hash is None:
            logger.info("Failed login for unknown user %s", username)
            return False

        if not self.verify_password(password, stored_hash):
            logger.info("Failed login for user %s", username)
            return False
        return True

    def update_last_login(self, username: str) -> None:
        self._database.set_last_login(username, self._clock())

    def get(self, username: str) -> User:
        user = self._database.get_user(username)
        if user is None:
            raise NotFound(f"User {username!r} not found")
        return user

    def exists(self, username: str) -> bool:
        return self._database.user_exists(username)

    def list(self) -> List[UserSummary]:
        return self._database.list_users()


__all__ = ["CredentialStore", "build_password_context"]
