"""Domain models for users and the messages they exchange."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class UserSummary:
    """Public subset of a user embedded alongside messages and listings."""

    username: str
    first_name: str
    last_name: str
    phone: str


@dataclass(frozen=True)
class User:
    """A registered user's profile. The password hash is never part of it."""

    username: str
    first_name: str
    last_name: str
    phone: str
    join_at: datetime
    last_login_at: Optional[datetime]


@dataclass(frozen=True)
class Message:
    """A directed message between two users.

    ``from_user`` and ``to_user`` are populated only by queries that join the
    users table; a freshly created message carries the bare usernames.
    """

    id: int
    from_username: str
    to_username: str
    body: str
    sent_at: datetime
    read_at: Optional[datetime] = None
    from_user: Optional[UserSummary] = None
    to_user: Optional[UserSummary] = None

    @property
    def is_read(self) -> bool:
        return self.read_at is not None


@dataclass(frozen=True)
class ReadReceipt:
    id: int
    read_at: datetime


__all__ = ["Message", "ReadReceipt", "User", "UserSummary"]
