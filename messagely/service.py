"""Application factory wiring the messaging core into FastAPI."""

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import FastAPI

from .access import AccessGate
from .api import register_api_routes, register_error_handlers
from .config import Settings, load_settings
from .credentials import CredentialStore
from .database import Database
from .messages import MessageLedger
from .security import BearerAuth, SessionIssuer

logger = logging.getLogger("messagely.service")


def _initialise_database(database: Database) -> Database:
    database.initialize()
    return database


def create_app(
    *,
    settings: Settings | None = None,
    database: Database | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application for the messaging service."""

    resolved = settings or load_settings()
    db = database or Database(resolved.database_path)
    _initialise_database(db)

    credentials = CredentialStore(db, password_rounds=resolved.password_rounds)
    ttl = timedelta(seconds=resolved.token_ttl_seconds) if resolved.token_ttl_seconds else None
    if ttl is None:
        logger.warning("Issuing session tokens without expiry")
    issuer = SessionIssuer(resolved.secret_key, ttl=ttl)
    gate = AccessGate(MessageLedger(db))

    app = FastAPI(
        title="Messagely",
        version="0.1.0",
        description="Person-to-person messaging with read receipts.",
    )
    app.state.settings = resolved
    app.state.database = db
    app.state.credentials = credentials
    app.state.issuer = issuer
    app.state.gate = gate

    register_error_handlers(app)
    register_api_routes(
        app,
        credentials=credentials,
        issuer=issuer,
        gate=gate,
        current_user=BearerAuth(issuer, credentials),
    )

    return app


__all__ = ["create_app"]
