"""Message ledger: sending, retrieving and reading messages."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List

from .database import Database, current_timestamp
from .errors import InvalidInput, NotFound, UnknownUser
from .models import Message, ReadReceipt

logger = logging.getLogger("messagely.messages")


class MessageLedger:
    """Persist messages and answer directional queries about them."""

    def __init__(
        self,
        database: Database,
        *,
        clock: Callable[[], datetime] = current_timestamp,
    ) -> None:
        self._database = database
        self._clock = clock

    def create(self, *, from_username: str, to_username: str, body: str) -> Message:
        if not body or not body.strip():
            raise InvalidInput("Message body must not be empty")
        for username in (from_username, to_username):
            if not username or not self._database.user_exists(username):
                raise UnknownUser(f"User {username!r} not found")

        message = self._database.insert_message(
            from_username=from_username,
            to_username=to_username,
            body=body,
            sent_at=self._clock(),
        )
        logger.info("Message %s sent from %s to %s", message.id, from_username, to_username)
        return message

    def get(self, message_id: int) -> Message:
        """Return the message with both user summaries embedded."""

        message = self._database.get_message(message_id)
        if message is None:
            raise NotFound(f"No such message: {message_id}")
        return message

    def list_sent_by(self, username: str) -> List[Message]:
        return self._database.list_messages_from(username)

    def list_received_by(self, username: str) -> List[Message]:
        return self._database.list_messages_to(username)

    def mark_read(self, message_id: int) -> ReadReceipt:
        """Record the first read of a message.

        Once set, ``read_at`` is never moved; repeated calls return the
        original timestamp.
        """

        receipt = self._database.mark_message_read(message_id, self._clock())
        if receipt is None:
            raise NotFound(f"No such message: {message_id}")
        logger.info("Message %s read at %s", receipt.id, receipt.read_at.isoformat())
        return receipt


__all__ = ["MessageLedger"]
