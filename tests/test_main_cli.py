from datetime import datetime

import pytest

from main import _parse_args, main
from messagely.database import Database


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "0.0.0.0", "--port", "8080"])
    assert args.command == "serve"
    assert args.host == "0.0.0.0"
    assert args.port == 8080


def test_maintenance_subcommands_available() -> None:
    assert _parse_args(["init-db"]).command == "init-db"
    assert _parse_args(["list-users"]).command == "list-users"


def test_init_db_runs_without_signing_secret(tmp_path, monkeypatch, capsys) -> None:
    db_path = tmp_path / "cli.sqlite3"
    monkeypatch.delenv("MESSAGELY_SECRET_KEY", raising=False)
    monkeypatch.setenv("MESSAGELY_DB_PATH", str(db_path))

    main(["init-db"])

    assert db_path.exists()
    assert "Database initialisation complete." in capsys.readouterr().out


def test_list_users_runs_without_signing_secret(tmp_path, monkeypatch, capsys) -> None:
    db_path = tmp_path / "cli.sqlite3"
    monkeypatch.delenv("MESSAGELY_SECRET_KEY", raising=False)
    monkeypatch.setenv("MESSAGELY_DB_PATH", str(db_path))

    main(["list-users"])
    assert "No users are currently registered." in capsys.readouterr().out

    Database(db_path).insert_user(
        username="alice",
        password_hash="$pbkdf2-sha256$1$salt$hash",
        first_name="Alice",
        last_name="Anderson",
        phone="555-0101",
        joined_at=datetime(2024, 1, 1),
    )
    main(["list-users"])
    assert "alice" in capsys.readouterr().out


def test_serve_requires_signing_secret(monkeypatch) -> None:
    monkeypatch.delenv("MESSAGELY_SECRET_KEY", raising=False)
    monkeypatch.delenv("MESSAGELY_CONFIG", raising=False)

    with pytest.raises(SystemExit, match="signing secret"):
        main(["serve"])
