"""SQLite-backed persistence for users and messages."""
from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .models import Message, ReadReceipt, User, UserSummary


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


# SQLite INTEGER is a signed 64-bit value; larger ids cannot exist.
_MAX_ROW_ID = 2**63 - 1


def _valid_row_id(value: int) -> bool:
    return 1 <= value <= _MAX_ROW_ID


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


_MESSAGE_WITH_USERS = """
    SELECT m.id, m.from_username, m.to_username, m.body, m.sent_at, m.read_at,
           f.first_name AS from_first_name, f.last_name AS from_last_name, f.phone AS from_phone,
           t.first_name AS to_first_name, t.last_name AS to_last_name, t.phone AS to_phone
      FROM messages AS m
      LEFT JOIN users AS f ON f.username = m.from_username
      LEFT JOIN users AS t ON t.username = m.to_username
"""


class Database:
    """Simple wrapper around SQLite for persisting users and messages.

    Every operation opens its own connection, so each write is a single
    atomic statement and the instance can be shared between requests.
    """

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    username TEXT PRIMARY KEY,
                    password TEXT NOT NULL,
                    first_name TEXT NOT NULL,
                    last_name TEXT NOT NULL,
                    phone TEXT NOT NULL,
                    join_at TEXT NOT NULL,
                    last_login_at TEXT
                );

                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    from_username TEXT NOT NULL REFERENCES users(username),
                    to_username TEXT NOT NULL REFERENCES users(username),
                    body TEXT NOT NULL,
                    sent_at TEXT NOT NULL,
                    read_at TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_messages_from_username ON messages(from_username);
                CREATE INDEX IF NOT EXISTS idx_messages_to_username ON messages(to_username);
                """
            )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def insert_user(
        self,
        *,
        username: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        phone: str,
        joined_at: datetime,
    ) -> User:
        """Insert a user row.

        Raises :class:`sqlite3.IntegrityError` when the username is taken.
        """

        stamp = _serialize_datetime(joined_at)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO users (username, password, first_name, last_name, phone, join_at, last_login_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (username, password_hash, first_name, last_name, phone, stamp, stamp),
            )

        return User(
            username=username,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            join_at=joined_at,
            last_login_at=joined_at,
        )

    def get_user(self, username: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT username, first_name, last_name, phone, join_at, last_login_at
                  FROM users
                 WHERE username = ?
                """,
                (username,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_password_hash(self, username: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT password FROM users WHERE username = ?",
                (username,),
            ).fetchone()
        if row is None:
            return None
        return str(row["password"])

    def user_exists(self, username: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM users WHERE username = ?",
                (username,),
            ).fetchone()
        return row is not None

    def list_users(self) -> List[UserSummary]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT username, first_name, last_name, phone FROM users ORDER BY username"
            ).fetchall()
        return [
            UserSummary(
                username=str(row["username"]),
                first_name=str(row["first_name"]),
                last_name=str(row["last_name"]),
                phone=str(row["phone"]),
            )
            for row in rows
        ]

    def set_last_login(self, username: str, when: datetime) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE users SET last_login_at = ? WHERE username = ?",
                (_serialize_datetime(when), username),
            )
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------
    def insert_message(
        self,
        *,
        from_username: str,
        to_username: str,
        body: str,
        sent_at: datetime,
    ) -> Message:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO messages (from_username, to_username, body, sent_at, read_at)
                VALUES (?, ?, ?, ?, NULL)
                """,
                (from_username, to_username, body, _serialize_datetime(sent_at)),
            )
            message_id = cursor.lastrowid

        if message_id is None:
            raise RuntimeError("Failed to determine id of inserted message")

        return Message(
            id=int(message_id),
            from_username=from_username,
            to_username=to_username,
            body=body,
            sent_at=sent_at,
            read_at=None,
        )

    def get_message(self, message_id: int) -> Optional[Message]:
        if not _valid_row_id(message_id):
            return None
        with self._connect() as conn:
            row = conn.execute(
                _MESSAGE_WITH_USERS + " WHERE m.id = ?",
                (message_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_message(row, include_from=True, include_to=True)

    def list_messages_from(self, username: str) -> List[Message]:
        with self._connect() as conn:
            rows = conn.execute(
                _MESSAGE_WITH_USERS + " WHERE m.from_username = ? ORDER BY m.id",
                (username,),
            ).fetchall()
        return [self._row_to_message(row, include_from=False, include_to=True) for row in rows]

    def list_messages_to(self, username: str) -> List[Message]:
        with self._connect() as conn:
            rows = conn.execute(
                _MESSAGE_WITH_USERS + " WHERE m.to_username = ? ORDER BY m.id",
                (username,),
            ).fetchall()
        return [self._row_to_message(row, include_from=True, include_to=False) for row in rows]

    def mark_message_read(self, message_id: int, when: datetime) -> Optional[ReadReceipt]:
        """Stamp ``read_at`` unless it is already set and return the stored value."""

        if not _valid_row_id(message_id):
            return None
        with self._connect() as conn:
            conn.execute(
                "UPDATE messages SET read_at = ? WHERE id = ? AND read_at IS NULL",
                (_serialize_datetime(when), message_id),
            )
            row = conn.execute(
                "SELECT id, read_at FROM messages WHERE id = ?",
                (message_id,),
            ).fetchone()

        if row is None:
            return None
        read_at = _parse_datetime(row["read_at"])
        if read_at is None:  # pragma: no cover - the update above guarantees a value
            raise RuntimeError(f"Message {message_id} has no read timestamp after update")
        return ReadReceipt(id=int(row["id"]), read_at=read_at)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_user(self, row: sqlite3.Row) -> User:
        join_at = _parse_datetime(row["join_at"])
        if join_at is None:  # pragma: no cover - column is NOT NULL
            raise RuntimeError(f"User {row['username']} has no join timestamp")
        return User(
            username=str(row["username"]),
            first_name=str(row["first_name"]),
            last_name=str(row["last_name"]),
            phone=str(row["phone"]),
            join_at=join_at,
            last_login_at=_parse_datetime(row["last_login_at"]),
        )

    def _row_to_message(self, row: sqlite3.Row, *, include_from: bool, include_to: bool) -> Message:
        from_user = None
        if include_from:
            from_user = UserSummary(
                username=str(row["from_username"]),
                first_name=str(row["from_first_name"] or ""),
                last_name=str(row["from_last_name"] or ""),
                phone=str(row["from_phone"] or ""),
            )
        to_user = None
        if include_to:
            to_user = UserSummary(
                username=str(row["to_username"]),
                first_name=str(row["to_first_name"] or ""),
                last_name=str(row["to_last_name"] or ""),
                phone=str(row["to_phone"] or ""),
            )

        sent_at = _parse_datetime(row["sent_at"])
        if sent_at is None:  # pragma: no cover - column is NOT NULL
            raise RuntimeError(f"Message {row['id']} has no sent timestamp")

        return Message(
            id=int(row["id"]),
            from_username=str(row["from_username"]),
            to_username=str(row["to_username"]),
            body=str(row["body"]),
            sent_at=sent_at,
            read_at=_parse_datetime(row["read_at"]),
            from_user=from_user,
            to_user=to_user,
        )


__all__ = ["Database", "current_timestamp"]
