"""Configuration management for the messaging service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

DEFAULT_PASSWORD_ROUNDS = 29_000

_ENV_KEYS = {
    "secret_key": "MESSAGELY_SECRET_KEY",
    "database_path": "MESSAGELY_DB_PATH",
    "password_rounds": "MESSAGELY_PASSWORD_ROUNDS",
    "token_ttl_seconds": "MESSAGELY_TOKEN_TTL",
}


class ConfigurationError(ValueError):
    """Raised when the service configuration is missing or malformed."""


@dataclass(frozen=True)
class Settings:
    """Process-wide settings, resolved once at start-up."""

    secret_key: str
    database_path: Path
    password_rounds: int = DEFAULT_PASSWORD_ROUNDS
    token_ttl_seconds: Optional[int] = None

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw dictionary data."""

        secret_key = str(data.get("secret_key") or "").strip()
        if not secret_key:
            raise ConfigurationError(
                "A token signing secret is required. Set MESSAGELY_SECRET_KEY or 'secret_key'."
            )

        raw_db_path = data.get("database_path")
        if raw_db_path:
            candidate = Path(str(raw_db_path)).expanduser()
            if not candidate.is_absolute() and base_path is not None:
                candidate = base_path / candidate
            database_path = candidate.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        password_rounds = _parse_positive_int(
            data.get("password_rounds"), "password_rounds", DEFAULT_PASSWORD_ROUNDS
        )
        ttl_raw = data.get("token_ttl_seconds")
        token_ttl = _parse_positive_int(ttl_raw, "token_ttl_seconds", None) if ttl_raw not in (None, "") else None

        return Settings(
            secret_key=secret_key,
            database_path=database_path,
            password_rounds=password_rounds,
            token_ttl_seconds=token_ttl,
        )


def _parse_positive_int(value: object, name: str, default: Optional[int]) -> Optional[int]:
    if value is None or value == "":
        return default
    try:
        parsed = int(str(value).strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc
    if parsed <= 0:
        raise ConfigurationError(f"{name} must be positive, got {parsed}")
    return parsed


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "messagely.sqlite3").resolve(strict=False)


def load_config_file(config_path: Path) -> Dict[str, object]:
    """Load raw settings from a YAML file."""

    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration file {config_path} must contain a mapping")
    return raw


def load_settings(
    environ: Mapping[str, str] | None = None,
    *,
    config_path: Path | None = None,
) -> Settings:
    """Build :class:`Settings` from an optional YAML file and the environment.

    Environment variables take precedence over values from the file.
    """

    env = os.environ if environ is None else environ
    data: Dict[str, object] = {}
    base_path: Path | None = None

    file_value = config_path or (Path(env["MESSAGELY_CONFIG"]) if env.get("MESSAGELY_CONFIG") else None)
    if file_value is not None:
        resolved = file_value.expanduser().resolve(strict=False)
        data.update(load_config_file(resolved))
        base_path = resolved.parent

    for key, env_name in _ENV_KEYS.items():
        value = env.get(env_name)
        if value is not None and value.strip():
            data[key] = value.strip()

    return Settings.from_dict(data, base_path=base_path)


__all__ = [
    "ConfigurationError",
    "DEFAULT_PASSWORD_ROUNDS",
    "Settings",
    "load_config_file",
    "load_settings",
    "resolve_database_path",
]
