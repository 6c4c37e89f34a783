"""Unit tests for auth/store.py -- UserStore and UserUnitOfWork.

Covers:
- insert + find round-trips every field, including aware datetimes
- UNIQUE(email) raises IntegrityError on a second insert
- update() replaces mutable fields; writes without commit() roll back
- single-statement helpers: get_by_id, get_by_email, set_active, count_users
- in-memory SQLite URLs are refused
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.store import UserStore

NOW = datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)


def _new_user(email: str = "alice@example.com") -> User:
    return User(email=email, password_hash="$2b$04$fakehash", created_at=NOW, updated_at=NOW)


def _insert(store: UserStore, user: User) -> User:
    with store.unit_of_work() as uow:
        uow.insert(user)
        uow.commit()
    return user


class TestInsertAndFind:
    def test_insert_assigns_id(self, store: UserStore) -> None:
        user = _insert(store, _new_user())
        assert user.id is not None
        assert len(user.id) == 36

    def test_find_round_trips_fields(self, store: UserStore) -> None:
        _insert(store, _new_user())
        with store.unit_of_work() as uow:
            found = uow.find_by_normalized_email("alice@example.com")
        assert found is not None
        assert found.email == "alice@example.com"
        assert found.password_hash == "$2b$04$fakehash"
        assert found.is_active is True
        assert found.login_attempts == 0
        assert found.locked_until is None
        assert found.last_login_at is None
        assert found.created_at == NOW
        assert found.created_at.tzinfo is not None

    def test_find_missing_returns_none(self, store: UserStore) -> None:
        with store.unit_of_work() as uow:
            assert uow.find_by_normalized_email("nobody@example.com") is None

    def test_duplicate_email_raises_integrity_error(self, store: UserStore) -> None:
        _insert(store, _new_user())
        with pytest.raises(IntegrityError):
            _insert(store, _new_user())
        assert store.count_users() == 1


class TestUpdate:
    def test_update_replaces_mutable_fields(self, store: UserStore) -> None:
        user = _insert(store, _new_user())
        locked = NOW + timedelta(minutes=15)
        user.login_attempts = 3
        user.locked_until = locked
        user.updated_at = NOW + timedelta(seconds=1)
        with store.unit_of_work() as uow:
            assert uow.update(user) is True
            uow.commit()

        reloaded = store.get_by_id(user.id)
        assert reloaded.login_attempts == 3
        assert reloaded.locked_until == locked
        assert reloaded.updated_at == NOW + timedelta(seconds=1)

    def test_update_unknown_id_returns_false(self, store: UserStore) -> None:
        ghost = _new_user()
        ghost.id = "00000000-0000-0000-0000-000000000000"
        with store.unit_of_work() as uow:
            assert uow.update(ghost) is False

    def test_uncommitted_update_rolls_back(self, store: UserStore) -> None:
        user = _insert(store, _new_user())
        user.login_attempts = 4
        with store.unit_of_work() as uow:
            uow.update(user)
            # no commit
        assert store.get_by_id(user.id).login_attempts == 0

    def test_uncommitted_insert_rolls_back(self, store: UserStore) -> None:
        with store.unit_of_work() as uow:
            uow.insert(_new_user("temp@example.com"))
        assert store.get_by_email("temp@example.com") is None


class TestHelpers:
    def test_get_by_email_and_id(self, store: UserStore) -> None:
        user = _insert(store, _new_user())
        assert store.get_by_email("alice@example.com").id == user.id
        assert store.get_by_id(user.id).email == "alice@example.com"
        assert store.get_by_id("missing") is None

    def test_set_active_toggles_flag_and_audit(self, store: UserStore) -> None:
        user = _insert(store, _new_user())
        assert store.set_active(user.id, False, updated_by="cli") is True
        reloaded = store.get_by_id(user.id)
        assert reloaded.is_active is False
        assert reloaded.updated_by == "cli"
        assert reloaded.updated_at > NOW

        store.set_active(user.id, True)
        assert store.get_by_id(user.id).is_active is True

    def test_set_active_unknown_user(self, store: UserStore) -> None:
        assert store.set_active("missing", False) is False

    def test_count_users(self, store: UserStore) -> None:
        assert store.count_users() == 0
        _insert(store, _new_user("a@example.com"))
        _insert(store, _new_user("b@example.com"))
        assert store.count_users() == 2

    def test_file_url_is_usable(self, tmp_path) -> None:
        s = UserStore(f"sqlite:///{tmp_path / 'other.db'}")
        try:
            _insert(s, _new_user())
            assert s.count_users() == 1
            assert s.ping() is True
        finally:
            s.close()


class TestInMemoryUrls:
    @pytest.mark.parametrize(
        "url",
        [
            "sqlite://",
            "sqlite:///:memory:",
            "sqlite:///file:shared?mode=memory&cache=shared&uri=true",
        ],
    )
    def test_in_memory_url_is_refused(self, url: str) -> None:
        """Units of work must not share one connection, so memory URLs are rejected."""
        with pytest.raises(ValueError, match="In-memory SQLite"):
            UserStore(url)
