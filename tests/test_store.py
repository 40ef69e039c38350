"""Unit tests for auth/store.py -- UserStore reads, writes, and failure mapping.

Covers:
- create() assigns id/created_at and never returns the password hash
- find_by_email() hides the hash; find_by_email_with_secret() exposes it
- create() raises DuplicateEmail on the unique email key
- update_external_provider_id() only writes while the column is NULL
- driver failures and lock timeouts surface as StoreUnavailable
- every supported backend gets connect and statement bounds
"""

from __future__ import annotations

import sqlite3
import time

import pytest

from auth.errors import DuplicateEmail, StoreUnavailable
from auth.models import UserDraft
from auth.store import UserStore, _engine_options


def _draft(email: str = "a@x.com", **overrides) -> UserDraft:
    fields = {"email": email, "first_name": "Ada", "last_name": "Lovelace", "hashed_password": "$2b$fakehash"}
    fields.update(overrides)
    return UserDraft(**fields)


class TestCreate:
    def test_create_assigns_id_and_created_at(self, store: UserStore) -> None:
        user = store.create(_draft())
        assert user.id is not None
        assert user.created_at
        assert user.role == "user"
        assert user.email == "a@x.com"

    def test_create_does_not_return_hash(self, store: UserStore) -> None:
        user = store.create(_draft())
        assert user.hashed_password is None

    def test_duplicate_email_raises(self, store: UserStore) -> None:
        store.create(_draft())
        with pytest.raises(DuplicateEmail):
            store.create(_draft(first_name="Other"))


class TestReads:
    def test_find_by_email_hides_hash(self, store: UserStore) -> None:
        store.create(_draft())
        user = store.find_by_email("a@x.com")
        assert user is not None
        assert user.hashed_password is None

    def test_find_by_email_with_secret_includes_hash(self, store: UserStore) -> None:
        store.create(_draft())
        user = store.find_by_email_with_secret("a@x.com")
        assert user is not None
        assert user.hashed_password == "$2b$fakehash"

    def test_find_by_email_is_exact_match(self, store: UserStore) -> None:
        """Lookup is exact: a different case is a different key."""
        store.create(_draft())
        assert store.find_by_email("A@X.COM") is None

    def test_unknown_email_returns_none(self, store: UserStore) -> None:
        assert store.find_by_email("nobody@x.com") is None
        assert store.find_by_email_with_secret("nobody@x.com") is None

    def test_get_by_id(self, store: UserStore) -> None:
        created = store.create(_draft())
        assert store.get_by_id(created.id) == created
        assert store.get_by_id(9999) is None


class TestUpdates:
    def test_external_provider_id_set_once(self, store: UserStore) -> None:
        """The IS NULL guard makes the first write stick."""
        store.create(_draft(hashed_password=None))
        assert store.update_external_provider_id("a@x.com", "gh-1") is True
        assert store.update_external_provider_id("a@x.com", "google-2") is False
        assert store.find_by_email("a@x.com").external_provider_id == "gh-1"

    def test_external_provider_id_unknown_email(self, store: UserStore) -> None:
        assert store.update_external_provider_id("nobody@x.com", "gh-1") is False

    def test_update_role(self, store: UserStore) -> None:
        user = store.create(_draft())
        assert store.update_role(user.id, "admin") is True
        assert store.get_by_id(user.id).role == "admin"
        assert store.update_role(9999, "admin") is False


class TestFailureMapping:
    def test_ping_ok(self, store: UserStore) -> None:
        assert store.ping() is True

    def test_driver_error_raises_store_unavailable(self, tmp_path) -> None:
        """Dropping the table underneath the store is a driver error, not a leak of it."""
        s = UserStore(f"sqlite:///{tmp_path / 'users.db'}", timeout_seconds=1)
        with s.engine.connect() as conn:
            conn.exec_driver_sql("DROP TABLE users")
            conn.commit()
        with pytest.raises(StoreUnavailable):
            s.find_by_email("a@x.com")
        assert s.ping() is True
        s.close()

    def test_locked_database_times_out_as_store_unavailable(self, tmp_path) -> None:
        """A writer blocked by another connection's lock gives up after timeout_seconds."""
        db_path = tmp_path / "locked.db"
        s = UserStore(f"sqlite:///{db_path}", timeout_seconds=0.5)
        holder = sqlite3.connect(db_path, isolation_level=None, timeout=0)
        holder.execute("BEGIN EXCLUSIVE")
        try:
            started = time.monotonic()
            with pytest.raises(StoreUnavailable):
                s.create(_draft())
            assert time.monotonic() - started < 5
        finally:
            holder.execute("ROLLBACK")
            holder.close()
            s.close()


class TestEngineOptions:
    def test_sqlite_uses_busy_timeout(self) -> None:
        connect_args, engine_kwargs = _engine_options("sqlite:///users.db", 0.5)
        assert connect_args == {"check_same_thread": False, "timeout": 0.5}
        assert "pool_timeout" not in engine_kwargs

    def test_postgresql_bounds_connect_and_statements(self) -> None:
        connect_args, engine_kwargs = _engine_options("postgresql+psycopg2://u:p@db.internal/users", 2.5)
        assert connect_args == {"connect_timeout": 3, "options": "-c statement_timeout=2500"}
        assert engine_kwargs["pool_timeout"] == 2.5

    def test_mysql_bounds_connect_and_io(self) -> None:
        connect_args, _ = _engine_options("mysql+pymysql://u:p@db.internal/users", 0.5)
        assert connect_args == {"connect_timeout": 1, "read_timeout": 1, "write_timeout": 1}

    def test_unbounded_backend_rejected(self) -> None:
        with pytest.raises(ValueError):
            UserStore("mssql+pyodbc://u:p@db.internal/users", timeout_seconds=1)
