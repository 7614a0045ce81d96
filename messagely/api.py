"""HTTP routes for authentication, users and messages."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .access import AccessGate
from .credentials import CredentialStore
from .errors import ErrorKind, InvalidInput, MessagelyError, Unauthenticated
from .models import Message, User, UserSummary
from .security import SessionIssuer

logger = logging.getLogger("messagely.api")


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be empty")
    return value.strip()


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=1)

    @field_validator("username")
    @classmethod
    def _normalize_username(cls, value: str) -> str:
        return _not_blank(value)


class RegisterRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    username: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=1)
    first_name: str = Field(
        ..., min_length=1, max_length=100, validation_alias=AliasChoices("first_name", "firstName")
    )
    last_name: str = Field(
        ..., min_length=1, max_length=100, validation_alias=AliasChoices("last_name", "lastName")
    )
    phone: str = Field(..., min_length=1, max_length=32)

    @field_validator("username", "first_name", "last_name", "phone")
    @classmethod
    def _strip(cls, value: str) -> str:
        return _not_blank(value)


class TokenResponse(BaseModel):
    message: str
    token: str


class SendMessageRequest(BaseModel):
    # Only the recipient and body are accepted; a sender in the body is ignored.
    model_config = ConfigDict(extra="ignore")

    to_username: str = Field(
        ..., min_length=1, max_length=64, validation_alias=AliasChoices("to_username", "toUsername")
    )
    body: str = Field(..., min_length=1)

    @field_validator("to_username")
    @classmethod
    def _normalize_recipient(cls, value: str) -> str:
        return _not_blank(value)

    @field_validator("body")
    @classmethod
    def _check_body(cls, value: str) -> str:
        _not_blank(value)
        return value


class UserSummaryView(BaseModel):
    username: str
    first_name: str
    last_name: str
    phone: str


class UserView(UserSummaryView):
    join_at: datetime
    last_login_at: Optional[datetime]


class UserListResponse(BaseModel):
    users: List[UserSummaryView]


class UserDetailResponse(BaseModel):
    user: UserView


class MessageDetail(BaseModel):
    id: int
    body: str
    sent_at: datetime
    read_at: Optional[datetime]
    from_user: UserSummaryView
    to_user: UserSummaryView


class MessageDetailResponse(BaseModel):
    message: MessageDetail


class SentMessage(BaseModel):
    id: int
    from_username: str
    to_username: str
    body: str
    sent_at: datetime
    read_at: Optional[datetime]


class SentMessageResponse(BaseModel):
    message: SentMessage


class OutgoingMessage(BaseModel):
    id: int
    to_user: UserSummaryView
    body: str
    sent_at: datetime
    read_at: Optional[datetime]


class IncomingMessage(BaseModel):
    id: int
    from_user: UserSummaryView
    body: str
    sent_at: datetime
    read_at: Optional[datetime]


class OutgoingMessageListResponse(BaseModel):
    messages: List[OutgoingMessage]


class IncomingMessageListResponse(BaseModel):
    messages: List[IncomingMessage]


class ReadReceiptView(BaseModel):
    id: int
    read_at: datetime


class ReadReceiptResponse(BaseModel):
    message: ReadReceiptView


def _summary_view(summary: Optional[UserSummary]) -> UserSummaryView:
    if summary is None:  # pragma: no cover - joined queries always populate it
        raise RuntimeError("Message is missing its embedded user summary")
    return UserSummaryView(
        username=summary.username,
        first_name=summary.first_name,
        last_name=summary.last_name,
        phone=summary.phone,
    )


def _user_view(user: User) -> UserView:
    return UserView(
        username=user.username,
        first_name=user.first_name,
        last_name=user.last_name,
        phone=user.phone,
        join_at=user.join_at,
        last_login_at=user.last_login_at,
    )


def _message_detail(message: Message) -> MessageDetail:
    return MessageDetail(
        id=message.id,
        body=message.body,
        sent_at=message.sent_at,
        read_at=message.read_at,
        from_user=_summary_view(message.from_user),
        to_user=_summary_view(message.to_user),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Map domain errors and request validation failures onto HTTP responses."""

    @app.exception_handler(MessagelyError)
    async def messagely_error_handler(request: Request, exc: MessagelyError) -> JSONResponse:
        logger.info(
            "%s %s failed with %s: %s",
            request.method,
            request.url.path,
            exc.kind.value,
            exc.message,
        )
        headers = None
        if exc.kind is ErrorKind.UNAUTHENTICATED:
            headers = {"WWW-Authenticate": "Bearer"}
        return JSONResponse(status_code=exc.status_code, content=exc.to_response(), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = sorted(
            {".".join(str(part) for part in error["loc"] if part != "body") for error in exc.errors()}
        )
        message = "Please provide all required information"
        if fields:
            message = f"{message}: {', '.join(field for field in fields if field)}"
        error = InvalidInput(message)
        logger.info("Rejected request to %s: %s", request.url.path, error.message)
        return JSONResponse(status_code=error.status_code, content=error.to_response())


def register_api_routes(
    app: FastAPI,
    *,
    credentials: CredentialStore,
    issuer: SessionIssuer,
    gate: AccessGate,
    current_user: Callable[..., object],
) -> None:
    """Expose the JSON API endpoints on the provided FastAPI application."""

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    @app.post("/auth/login", response_model=TokenResponse)
    def login(request: LoginRequest) -> TokenResponse:
        if not credentials.authenticate(request.username, request.password):
            raise Unauthenticated("Invalid username/password")
        credentials.update_last_login(request.username)
        logger.info("User %s logged in", request.username)
        return TokenResponse(message="Logged in!", token=issuer.issue(request.username))

    @app.post("/auth/register", response_model=TokenResponse)
    def register(request: RegisterRequest) -> TokenResponse:
        user = credentials.register(
            request.username,
            request.password,
            request.first_name,
            request.last_name,
            request.phone,
        )
        credentials.update_last_login(user.username)
        return TokenResponse(message="Registered!", token=issuer.issue(user.username))

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    @app.get("/users", response_model=UserListResponse)
    def list_users(caller: str = Depends(current_user)) -> UserListResponse:
        return UserListResponse(users=[_summary_view(user) for user in credentials.list()])

    @app.get("/users/{username}", response_model=UserDetailResponse)
    def get_user(username: str, caller: str = Depends(current_user)) -> UserDetailResponse:
        gate.require_same_user(caller, username)
        return UserDetailResponse(user=_user_view(credentials.get(username)))

    @app.get("/users/{username}/to", response_model=IncomingMessageListResponse)
    def messages_to(username: str, caller: str = Depends(current_user)) -> IncomingMessageListResponse:
        messages = gate.received_by(caller, username)
        return IncomingMessageListResponse(
            messages=[
                IncomingMessage(
                    id=message.id,
                    from_user=_summary_view(message.from_user),
                    body=message.body,
                    sent_at=message.sent_at,
                    read_at=message.read_at,
                )
                for message in messages
            ]
        )

    @app.get("/users/{username}/from", response_model=OutgoingMessageListResponse)
    def messages_from(username: str, caller: str = Depends(current_user)) -> OutgoingMessageListResponse:
        messages = gate.sent_by(caller, username)
        return OutgoingMessageListResponse(
            messages=[
                OutgoingMessage(
                    id=message.id,
                    to_user=_summary_view(message.to_user),
                    body=message.body,
                    sent_at=message.sent_at,
                    read_at=message.read_at,
                )
                for message in messages
            ]
        )

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------
    @app.get("/messages/{message_id}", response_model=MessageDetailResponse)
    def get_message(message_id: int, caller: str = Depends(current_user)) -> MessageDetailResponse:
        message = gate.view_message(caller, message_id)
        return MessageDetailResponse(message=_message_detail(message))

    @app.post("/messages", response_model=SentMessageResponse, status_code=status.HTTP_201_CREATED)
    def send_message(
        request: SendMessageRequest,
        caller: str = Depends(current_user),
    ) -> SentMessageResponse:
        message = gate.send_message(caller, to_username=request.to_username, body=request.body)
        return SentMessageResponse(
            message=SentMessage(
                id=message.id,
                from_username=message.from_username,
                to_username=message.to_username,
                body=message.body,
                sent_at=message.sent_at,
                read_at=message.read_at,
            )
        )

    @app.post("/messages/{message_id}/read", response_model=ReadReceiptResponse)
    def mark_read(message_id: int, caller: str = Depends(current_user)) -> ReadReceiptResponse:
        receipt = gate.mark_read(caller, message_id)
        return ReadReceiptResponse(message=ReadReceiptView(id=receipt.id, read_at=receipt.read_at))


__all__ = ["register_api_routes", "register_error_handlers"]
