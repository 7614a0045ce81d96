import argparse
import getpass
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from messagely.config import DEFAULT_PASSWORD_ROUNDS, resolve_database_path
from messagely.credentials import CredentialStore
from messagely.database import Database
from messagely.errors import MessagelyError


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Register a messagely user")
    parser.add_argument("username", help="Unique username for login")
    parser.add_argument("first_name", help="Given name")
    parser.add_argument("last_name", help="Family name")
    parser.add_argument("phone", help="Contact phone number")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to MESSAGELY_DB_PATH or data/messagely.sqlite3)",
    )
    return parser.parse_args()


def prompt_for_password() -> str:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if not password:
            print("Password must not be empty.", file=sys.stderr)
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


def main() -> int:
    args = parse_args()
    password = prompt_for_password()

    db_env = args.db_path or os.getenv("MESSAGELY_DB_PATH")
    db_path = resolve_database_path(db_env)

    database = Database(db_path)
    database.initialize()

    rounds = int(os.getenv("MESSAGELY_PASSWORD_ROUNDS") or DEFAULT_PASSWORD_ROUNDS)
    store = CredentialStore(database, password_rounds=rounds)
    try:
        user = store.register(args.username, password, args.first_name, args.last_name, args.phone)
    except MessagelyError as exc:  # duplicates, empty fields
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1

    print(f"Created user {user.username}: {user.first_name} {user.last_name} <{user.phone}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
