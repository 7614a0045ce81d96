"""Authorization checks applied before message operations."""
from __future__ import annotations

import logging
from typing import List

from .errors import Forbidden
from .messages import MessageLedger
from .models import Message, ReadReceipt

logger = logging.getLogger("messagely.access")


class AccessGate:
    """Wrap the ledger so every call is made on behalf of a verified caller."""

    def __init__(self, ledger: MessageLedger) -> None:
        self._ledger = ledger

    def view_message(self, caller: str, message_id: int) -> Message:
        message = self._ledger.get(message_id)
        if caller not in (message.from_username, message.to_username):
            logger.warning("User %s denied access to message %s", caller, message_id)
            raise Forbidden()
        return message

    def send_message(self, caller: str, *, to_username: str, body: str) -> Message:
        # The sender is always the authenticated caller.
        return self._ledger.create(from_username=caller, to_username=to_username, body=body)

    def mark_read(self, caller: str, message_id: int) -> ReadReceipt:
        message = self._ledger.get(message_id)
        if caller != message.to_username:
            logger.warning("User %s may not mark message %s as read", caller, message_id)
            raise Forbidden("Only the recipient may mark a message as read")
        return self._ledger.mark_read(message_id)

    def sent_by(self, caller: str, username: str) -> List[Message]:
        self.require_same_user(caller, username)
        return self._ledger.list_sent_by(username)

    def received_by(self, caller: str, username: str) -> List[Message]:
        self.require_same_user(caller, username)
        return self._ledger.list_received_by(username)

    def require_same_user(self, caller: str, username: str) -> None:
        if caller != username:
            logger.warning("User %s denied access to data of %s", caller, username)
            raise Forbidden()


__all__ = ["AccessGate"]
