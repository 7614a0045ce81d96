"""Command-line interface for the messagely service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

from messagely.config import ConfigurationError, Settings, load_settings, resolve_database_path
from messagely.credentials import CredentialStore
from messagely.database import Database

logger = logging.getLogger("messagely.main")

_KNOWN_COMMANDS = {"serve", "init-db", "list-users"}


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="messagely service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the message database")
    subparsers.add_parser("list-users", help="Print every registered user")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the HTTP API (default: 8000)",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in _KNOWN_COMMANDS:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_database(db_path: Path) -> Database:
    database = Database(db_path)
    database.initialize()
    logger.info("Database initialised at %s", db_path)
    return database


def _serve(*, settings: Settings, database: Database, host: str, port: int) -> None:
    from messagely.service import create_app
    import uvicorn

    logger.info("Starting messagely API on http://%s:%s", host, port)
    app = create_app(settings=settings, database=database)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _list_users(database: Database) -> None:
    store = CredentialStore(database)
    users = store.list()
    if not users:
        print("No users are currently registered.")
        return

    print(f"{len(users)} user(s) found:")
    print(f"{'Username':<20}  {'Name':<32}  Phone")
    print("-" * 72)
    for user in users:
        name = f"{user.first_name} {user.last_name}"
        print(f"{user.username:<20}  {name:<32}  {user.phone}")


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)

    if args.command == "serve":
        try:
            settings = load_settings()
        except ConfigurationError as exc:
            raise SystemExit(f"Invalid configuration: {exc}") from exc
        database = _initialise_database(settings.database_path)
        _serve(settings=settings, database=database, host=args.host, port=args.port)
        return

    # Maintenance commands never sign tokens and only need the database.
    database = _initialise_database(resolve_database_path(os.getenv("MESSAGELY_DB_PATH")))
    if args.command == "list-users":
        _list_users(database)
    elif args.command == "init-db":
        print("Database initialisation complete.")


if __name__ == "__main__":
    main()
