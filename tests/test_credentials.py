from __future__ import annotations

import pytest

from messagely.credentials import CredentialStore
from messagely.database import Database
from messagely.errors import DuplicateUsername, InvalidInput, NotFound


def test_register_returns_profile_without_hash(store: CredentialStore) -> None:
    user = store.register("alice", "pw1", "Alice", "Anderson", "555-0101")

    assert user.username == "alice"
    assert user.join_at == user.last_login_at
    assert not hasattr(user, "password")
    assert not hasattr(user, "password_hash")


def test_password_is_stored_hashed(store: CredentialStore, database: Database) -> None:
    store.register("alice", "pw1", "Alice", "Anderson", "555-0101")

    stored = database.get_password_hash("alice")
    assert stored is not None
    assert stored != "pw1"
    assert stored.startswith("$pbkdf2-sha256$")


def test_duplicate_username_is_reported(store: CredentialStore) -> None:
    original = store.register("alice", "pw1", "Alice", "Anderson", "555-0101")

    with pytest.raises(DuplicateUsername):
        store.register("alice", "other", "Imposter", "Person", "555-9999")

    assert store.get("alice") == original
    assert store.authenticate("alice", "pw1")
    assert not store.authenticate("alice", "other")


@pytest.mark.parametrize("field", ["username", "password", "first_name", "last_name", "phone"])
def test_register_requires_every_field(store: CredentialStore, field: str) -> None:
    values = {
        "username": "alice",
        "password": "pw1",
        "first_name": "Alice",
        "last_name": "Anderson",
        "phone": "555-0101",
    }
    values[field] = "  " if field != "password" else ""

    with pytest.raises(InvalidInput):
        store.register(**values)

    assert store.list() == []


def test_authenticate_matches_only_registration_password(store: CredentialStore) -> None:
    store.register("bob", "correct horse", "Bob", "Brown", "555-0102")

    assert store.authenticate("bob", "correct horse") is True
    assert store.authenticate("bob", "correct horse ") is False
    assert store.authenticate("bob", "pw") is False


def test_authenticate_unknown_user_returns_false(store: CredentialStore) -> None:
    assert store.authenticate("nouser", "x") is False


@pytest.mark.parametrize("username, password", [("", "pw"), ("alice", ""), (None, "pw"), ("alice", None)])
def test_authenticate_requires_both_arguments(store: CredentialStore, username, password) -> None:
    with pytest.raises(InvalidInput):
        store.authenticate(username, password)


def test_corrupt_hash_never_verifies(store: CredentialStore) -> None:
    assert store.verify_password("pw", "not-a-hash") is False


def test_update_last_login_moves_forward(store: CredentialStore) -> None:
    registered = store.register("alice", "pw1", "Alice", "Anderson", "555-0101")

    assert store.authenticate("alice", "pw1")
    store.update_last_login("alice")

    refreshed = store.get("alice")
    assert refreshed.join_at == registered.join_at
    assert refreshed.last_login_at is not None
    assert refreshed.last_login_at > refreshed.join_at


def test_get_unknown_user_raises_not_found(store: CredentialStore) -> None:
    with pytest.raises(NotFound):
        store.get("ghost")


def test_list_returns_summaries(store: CredentialStore, people: None) -> None:
    users = store.list()

    assert [user.username for user in users] == ["alice", "bob", "carol"]
    assert users[1].first_name == "Bob"
    assert not hasattr(users[0], "password_hash")
