"""
auth/store.py -- SQLAlchemy Core persistence layer for users.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Linking, credential, and route code never touches SQL directly.

Lifecycle:
  One UserStore is created at startup and owned by the application lifespan
  (init once / reuse / close on shutdown). The engine's pool is configured
  with pool_pre_ping so a pooled connection's liveness is checked on checkout
  instead of opening a fresh connection for every call.

Failure mapping:
  IntegrityError on INSERT  -> DuplicateEmail (UNIQUE(email) is the backstop
                               for concurrent OAuth first logins).
  Any other SQLAlchemyError -> StoreUnavailable. Driver detail is logged but
                               never propagated to callers.

Timeouts:
  SQLite:     the driver's busy timeout bounds how long a call waits on a lock.
  PostgreSQL: libpq connect_timeout plus a server-side statement_timeout.
  MySQL:      driver connect/read/write timeouts.
  Both server backends also get pool_timeout for connection checkout. Any
  other backend is rejected at construction, since its calls could not be
  bounded.

Security:
  All queries use bound parameters. No f-strings in SQL.
  The default reads (find_by_email, get_by_id) never select hashed_password.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import DuplicateEmail, StoreUnavailable
from auth.models import User, UserDraft

logger = logging.getLogger("authbridge.auth.store")

_DEFAULT_TIMEOUT_SECONDS = 5.0

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(320), nullable=False, unique=True),
    Column("first_name", String(255), nullable=False),
    Column("last_name", String(255), nullable=False),
    Column("hashed_password", Text),  # NULL for OAuth-only users
    Column("role", String(30), nullable=False, server_default="user"),
    Column("avatar_url", Text),
    Column("external_provider_id", Text),  # first provider to link wins
    Column("created_at", String(32), nullable=False),
)

# Everything except the password hash. Used by every default read path.
_public_columns = [c for c in _users.c if c.name != "hashed_password"]


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _engine_options(db_url: str, timeout_seconds: float) -> tuple[dict, dict]:
    """Return (connect_args, engine_kwargs) that bound every store call.

    Raises ValueError for a backend with no known way to bound a call.
    """
    backend = make_url(db_url).get_backend_name()
    engine_kwargs: dict = {"pool_pre_ping": True}
    if backend == "sqlite":
        return {"check_same_thread": False, "timeout": timeout_seconds}, engine_kwargs

    # Driver connect timeouts take whole seconds.
    whole_seconds = max(1, math.ceil(timeout_seconds))
    engine_kwargs["pool_timeout"] = timeout_seconds
    if backend == "postgresql":
        connect_args = {
            "connect_timeout": whole_seconds,
            "options": f"-c statement_timeout={int(timeout_seconds * 1000)}",
        }
    elif backend == "mysql":
        connect_args = {
            "connect_timeout": whole_seconds,
            "read_timeout": whole_seconds,
            "write_timeout": whole_seconds,
        }
    else:
        raise ValueError(f"Unsupported user store backend: {backend!r}")
    return connect_args, engine_kwargs


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///users.db")
        user = store.create(UserDraft(email="a@x.com", first_name="Ada", last_name="L"))
        same = store.find_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str, timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS) -> None:
        connect_args, engine_kwargs = _engine_options(db_url, timeout_seconds)
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, **engine_kwargs)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _set_wal_mode)
        with self._connect() as conn:
            _metadata.create_all(conn)
            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        """Check out a pooled connection, translating driver failures.

        IntegrityError is re-raised untouched so create() can map it to
        DuplicateEmail; everything else becomes StoreUnavailable.
        """
        try:
            with self.engine.connect() as conn:
                yield conn
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.error("User store call failed: %s", exc.__class__.__name__, exc_info=True)
            raise StoreUnavailable() from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by exact email. The password hash is never selected."""
        with self._connect() as conn:
            row = conn.execute(select(*_public_columns).where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_email_with_secret(self, email: str) -> User | None:
        """Look up a user by exact email, including hashed_password.

        Only the credential authenticator should call this.
        """
        with self._connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with self._connect() as conn:
            row = conn.execute(select(*_public_columns).where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, draft: UserDraft) -> User:
        """Insert a new user and return the stored record (without the hash).

        Raises DuplicateEmail if the email already exists. A concurrent
        request that inserted the same email first surfaces here too.
        """
        try:
            with self._connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        email=draft.email,
                        first_name=draft.first_name,
                        last_name=draft.last_name,
                        hashed_password=draft.hashed_password,
                        role=draft.role,
                        avatar_url=draft.avatar_url,
                        external_provider_id=draft.external_provider_id,
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
                user_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            logger.info("Create rejected: email already registered")
            raise DuplicateEmail() from exc

        user = self.get_by_id(user_id)
        if user is None:
            raise StoreUnavailable("User vanished immediately after insert.")
        return user

    def update_external_provider_id(self, email: str, external_id: str) -> bool:
        """Set external_provider_id if, and only if, it is still unset.

        The IS NULL guard makes first-writer-wins hold even when two links
        race. Returns True if this call set the value.
        """
        with self._connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.email == email) & (_users.c.external_provider_id.is_(None)))
                .values(external_provider_id=external_id)
            )
            conn.commit()
        return result.rowcount > 0

    def update_role(self, user_id: int, role: str) -> bool:
        """Change a user's role. Returns True if a row was updated.

        Tokens already issued keep the old role until they are reissued.
        """
        with self._connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(role=role))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the store answers a trivial query."""
        try:
            with self._connect() as conn:
                conn.execute(select(1))
        except StoreUnavailable:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    # Default reads do not select the hash column at all.
    hashed_password = getattr(row, "hashed_password", None)
    return User(
        id=row.id,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        hashed_password=hashed_password,
        role=row.role,
        avatar_url=row.avatar_url,
        external_provider_id=row.external_provider_id,
        created_at=row.created_at,
    )
