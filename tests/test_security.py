from __future__ import annotations

import threading
from datetime import timedelta

import anyio
import jwt
import pytest
from starlette.requests import Request

from messagely.errors import Unauthenticated
from messagely.security import ALG, BearerAuth, SessionIssuer


def test_issued_token_round_trips_username() -> None:
    issuer = SessionIssuer("secret")

    token = issuer.issue("alice")

    assert issuer.verify(token) == "alice"
    claims = jwt.decode(token, "secret", algorithms=[ALG])
    assert claims["username"] == "alice"
    assert "exp" not in claims


def test_token_signed_with_other_secret_is_rejected() -> None:
    token = SessionIssuer("other-secret").issue("alice")

    with pytest.raises(Unauthenticated):
        SessionIssuer("secret").verify(token)


def test_tampered_token_is_rejected() -> None:
    issuer = SessionIssuer("secret")
    header, payload, signature = issuer.issue("alice").split(".")
    forged = jwt.encode({"username": "mallory"}, "guess", algorithm=ALG).split(".")[1]

    with pytest.raises(Unauthenticated):
        issuer.verify(".".join([header, forged, signature]))


def test_garbage_token_is_rejected() -> None:
    with pytest.raises(Unauthenticated):
        SessionIssuer("secret").verify("not-a-token")


def test_token_without_username_claim_is_rejected() -> None:
    token = jwt.encode({"sub": "alice"}, "secret", algorithm=ALG)

    with pytest.raises(Unauthenticated):
        SessionIssuer("secret").verify(token)


def test_expired_token_is_rejected(clock) -> None:
    issuer = SessionIssuer("secret", ttl=timedelta(minutes=5), clock=clock)

    token = issuer.issue("alice")

    with pytest.raises(Unauthenticated, match="expired"):
        issuer.verify(token)


def test_token_with_ttl_carries_expiry() -> None:
    issuer = SessionIssuer("secret", ttl=timedelta(hours=1))

    claims = jwt.decode(issuer.issue("alice"), "secret", algorithms=[ALG])

    assert claims["exp"] - claims["iat"] == 3600


def test_empty_secret_is_refused() -> None:
    with pytest.raises(ValueError):
        SessionIssuer("")


class _RecordingCredentials:
    def __init__(self, known: set[str]) -> None:
        self.known = known
        self.threads: list[int] = []

    def exists(self, username: str) -> bool:
        self.threads.append(threading.get_ident())
        return username in self.known


def _request_with_token(token: str) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/users",
        "headers": [(b"authorization", f"Bearer {token}".encode("ascii"))],
    }
    return Request(scope)


def test_bearer_auth_checks_user_off_the_event_loop() -> None:
    issuer = SessionIssuer("secret")
    credentials = _RecordingCredentials({"alice"})
    auth = BearerAuth(issuer, credentials)  # type: ignore[arg-type]

    async def resolve() -> tuple[str, int]:
        username = await auth(_request_with_token(issuer.issue("alice")))
        return username, threading.get_ident()

    username, loop_thread = anyio.run(resolve)

    assert username == "alice"
    assert credentials.threads
    assert loop_thread not in credentials.threads


def test_bearer_auth_rejects_unknown_user() -> None:
    issuer = SessionIssuer("secret")
    auth = BearerAuth(issuer, _RecordingCredentials(set()))  # type: ignore[arg-type]

    async def resolve() -> str:
        return await auth(_request_with_token(issuer.issue("ghost")))

    with pytest.raises(Unauthenticated):
        anyio.run(resolve)
