"""Bearer token issuance and verification."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

import anyio
import jwt
from fastapi import Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .credentials import CredentialStore
from .database import current_timestamp
from .errors import Unauthenticated

logger = logging.getLogger("messagely.security")

ALG = "HS256"


class SessionIssuer:
    """Mint and verify signed tokens whose identity claim is a username."""

    def __init__(
        self,
        secret_key: str,
        *,
        ttl: Optional[timedelta] = None,
        clock: Callable[[], datetime] = current_timestamp,
    ) -> None:
        if not secret_key:
            raise ValueError("A signing secret must be provided")
        self._secret_key = secret_key
        self._ttl = ttl
        self._clock = clock

    @property
    def ttl(self) -> Optional[timedelta]:
        return self._ttl

    def issue(self, username: str) -> str:
        issued_at = self._clock()
        claims: Dict[str, object] = {"username": username, "iat": int(issued_at.timestamp())}
        if self._ttl is not None:
            claims["exp"] = int((issued_at + self._ttl).timestamp())
        return jwt.encode(claims, self._secret_key, algorithm=ALG)

    def verify(self, token: str) -> str:
        """Return the username asserted by ``token``."""

        try:
            claims = jwt.decode(
                token,
                self._secret_key,
                algorithms=[ALG],
                options={"require": ["username"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise Unauthenticated("Token has expired") from exc
        except jwt.InvalidTokenError as exc:
            raise Unauthenticated("Invalid token") from exc

        username = claims.get("username")
        if not isinstance(username, str) or not username:
            raise Unauthenticated("Invalid token")
        return username


class BearerAuth:
    """FastAPI dependency resolving the bearer token to a known username."""

    def __init__(self, issuer: SessionIssuer, credentials: CredentialStore) -> None:
        self._issuer = issuer
        self._credentials = credentials
        self._bearer = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> str:
        provided: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        if provided is None or provided.scheme.lower() != "bearer":
            raise Unauthenticated("Missing bearer token")

        username = self._issuer.verify(provided.credentials)
        if not await anyio.to_thread.run_sync(self._credentials.exists, username):
            logger.warning("Rejected token for unknown user %s", username)
            raise Unauthenticated("Unknown user")
        return username


__all__ = ["ALG", "BearerAuth", "SessionIssuer"]
