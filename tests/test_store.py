"""Unit tests for auth/store.py -- SqlUserStore.

Covers:
- Default roles seeded once (idempotent across store instances on one DB)
- save() inserts when id is None (id written back) and updates otherwise
- Email lookups are case-insensitive and include the joined role
- Duplicate email insert raises DuplicateEmailError, not IntegrityError
- assign_role() keeps at most one role per user
- Reset token fields round-trip as an aware datetime pair
"""

from datetime import datetime, timedelta, timezone

import pytest

from auth.errors import DuplicateEmailError, StorageError
from auth.models import Role, User
from auth.store import DEFAULT_ROLES, SqlUserStore


def _user(email: str = "a@x.com") -> User:
    return User(email=email, password_hash="$2b$04$placeholderplaceholderplaceholderplaceholderplace", display_name="A")


def test_default_roles_seeded(store):
    assert [r.name for r in store.list_roles()] == [r.name for r in DEFAULT_ROLES]
    assert store.get_role(2).name == "restaurant_admin"


def test_role_seeding_is_idempotent():
    url = "sqlite:///file:test_store_seed?mode=memory&cache=shared&uri=true"
    first = SqlUserStore(url)
    second = SqlUserStore(url)
    try:
        assert len(second.list_roles()) == len(DEFAULT_ROLES)
    finally:
        second.close()
        first.close()


def test_save_inserts_and_assigns_id(store):
    user = _user()
    store.save(user)
    assert user.id is not None
    assert store.find_id_by_email("a@x.com") == user.id


def test_find_by_email_is_case_insensitive(store):
    store.save(_user("a@x.com"))
    found = store.find_by_email("A@X.COM")
    assert found is not None
    assert found.email == "a@x.com"
    assert found.role is None


def test_find_by_email_unknown_returns_none(store):
    assert store.find_by_email("nobody@x.com") is None
    assert store.find_id_by_email("nobody@x.com") is None


def test_duplicate_email_raises_domain_error(store):
    store.save(_user())
    with pytest.raises(DuplicateEmailError):
        store.save(_user())


def test_save_updates_existing_user(store):
    user = _user()
    store.save(user)
    user.display_name = "Renamed"
    user.password_hash = "$2b$04$otherhash"
    store.save(user)
    found = store.find_by_email("a@x.com")
    assert found.display_name == "Renamed"
    assert found.password_hash == "$2b$04$otherhash"


def test_reset_token_round_trip(store):
    user = _user()
    store.save(user)
    expires = datetime(2026, 1, 15, 13, 0, tzinfo=timezone.utc)
    user.set_reset_token("d" * 64, expires)
    store.save(user)

    found = store.find_by_reset_token("d" * 64)
    assert found.id == user.id
    assert found.reset_token_expires_at == expires

    found.clear_reset_token()
    store.save(found)
    assert store.find_by_reset_token("d" * 64) is None
    assert store.find_by_email("a@x.com").reset_token_expires_at is None


def test_assign_role_joins_on_lookup(store):
    user = _user()
    store.save(user)
    store.assign_role(user.id, 3)
    role = store.find_by_email("a@x.com").role
    assert role == Role(id=3, name="staff", permissions="orders.read, orders.write")


def test_assign_role_replaces_previous_role(store):
    user = _user()
    store.save(user)
    store.assign_role(user.id, 2)
    store.assign_role(user.id, 1)
    assert store.find_by_email("a@x.com").role.name == "superadmin"


def test_delete_user_frees_email(store):
    user = _user()
    store.save(user)
    store.assign_role(user.id, 2)
    store.delete_user(user.id)
    assert store.find_by_email("a@x.com") is None
    store.save(_user())
    assert store.find_by_email("a@x.com").role is None


def test_create_role(store):
    role_id = store.create_role(Role(name="cashier", permissions="payments.take"))
    assert store.get_role(role_id) == Role(id=role_id, name="cashier", permissions="payments.take")
    assert store.get_role(9999) is None


def test_create_duplicate_role_raises_storage_error(store):
    with pytest.raises(StorageError):
        store.create_role(Role(name="staff"))


def test_user_rejects_half_set_reset_fields():
    with pytest.raises(ValueError):
        User(email="a@x.com", password_hash="h", reset_token="abc")
    with pytest.raises(ValueError):
        User(email="a@x.com", password_hash="h", reset_token_expires_at=datetime.now(timezone.utc) + timedelta(hours=1))


def test_user_repr_hides_secrets():
    user = User(email="a@x.com", password_hash="$2b$04$secret", id=1)
    user.set_reset_token("f" * 64, datetime.now(timezone.utc))
    text = repr(user)
    assert "$2b$" not in text
    assert "f" * 64 not in text
