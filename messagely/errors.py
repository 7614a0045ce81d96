"""Domain errors raised by the messaging core."""
from __future__ import annotations

from enum import Enum
from typing import Dict


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    DUPLICATE_USERNAME = "duplicate_username"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"


# Forbidden keeps the 401 the original service answered with.
_STATUS_CODES: Dict[ErrorKind, int] = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.DUPLICATE_USERNAME: 400,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.FORBIDDEN: 401,
    ErrorKind.NOT_FOUND: 404,
}


class MessagelyError(Exception):
    """Base class for every error the core reports to its callers."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return status_code_for(self.kind)

    def to_response(self) -> Dict[str, Dict[str, str]]:
        return {"error": {"code": self.kind.value, "message": self.message}}


class InvalidInput(MessagelyError):
    kind = ErrorKind.INVALID_INPUT
    default_message = "Invalid or missing input"


class DuplicateUsername(MessagelyError):
    kind = ErrorKind.DUPLICATE_USERNAME
    default_message = "Username taken. Please pick another"


class Unauthenticated(MessagelyError):
    kind = ErrorKind.UNAUTHENTICATED
    default_message = "Authentication required"


class Forbidden(MessagelyError):
    kind = ErrorKind.FORBIDDEN
    default_message = "Not authorized"


class NotFound(MessagelyError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Not found"


class UnknownUser(NotFound):
    """A message referenced a username that is not registered."""

    default_message = "User not found"


def status_code_for(kind: ErrorKind) -> int:
    return _STATUS_CODES[kind]


__all__ = [
    "DuplicateUsername",
    "ErrorKind",
    "Forbidden",
    "InvalidInput",
    "MessagelyError",
    "NotFound",
    "Unauthenticated",
    "UnknownUser",
    "status_code_for",
]
