"""Core package for the messagely messaging service."""

from __future__ import annotations

from typing import Any

from .database import Database
from .config import Settings, load_settings, resolve_database_path


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the HTTP application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "Database",
    "Settings",
    "create_app",
    "load_settings",
    "resolve_database_path",
]
