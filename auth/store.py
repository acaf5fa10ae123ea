"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper.
AccountStore is the repository; _row_to_account is the mapper.
Service and route code never touches SQL directly.

Atomicity:
  Every mutation runs while holding one process-wide writer lock AND inside a
  single transaction (engine.begin()). The username check, the id assignment
  (COUNT(*) + 1) and the INSERT therefore happen as one serialized unit: two
  concurrent create() calls for the same username yield exactly one success
  and one ConflictError. If anything raises mid-write the transaction rolls
  back and the previously committed rows are untouched.

  The UNIQUE constraint on username is the second line: if a writer outside
  this process ever races us, the IntegrityError is still mapped to
  ConflictError.

Reads take no lock. SQLite in WAL mode lets readers proceed during a write
and they only ever see committed transactions.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import ConflictError, StorageError
from auth.models import Account

logger = logging.getLogger("tokengate.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("username", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default="user"),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. In-memory databases ignore the request.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities. Sole owner of the accounts table.

    Usage:
        store = AccountStore("sqlite:///accounts.db")
        account = store.create("alice", hasher.hash("secret1"), "user")
        store.find_by_username("alice")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        self._write_lock = threading.Lock()
        try:
            _metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError() from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, username: str, password_hash: str, role: str) -> Account:
        """Insert a new account and return it with its assigned id.

        Raises:
            ValueError:    empty username or empty hash (programming error).
            ConflictError: username already exists (exact, case-sensitive).
            StorageError:  the database write failed; nothing was persisted.
        """
        if not username or not password_hash:
            raise ValueError("Accounts require a non-empty username and password hash.")
        with self._write_lock:
            try:
                with self.engine.begin() as conn:
                    account = self._insert(conn, username, password_hash, role)
            except ConflictError:
                raise
            except IntegrityError as exc:
                raise ConflictError() from exc
            except SQLAlchemyError as exc:
                logger.error("Account write failed for %r: %s", username, exc.__class__.__name__)
                raise StorageError() from exc
        logger.info("Account created id=%d username=%r role=%s", account.id, account.username, account.role)
        return account

    def bootstrap_seed(self, accounts: Iterable[tuple[str, str, str]]) -> list[Account]:
        """Ensure each (username, password_hash, role) exists. Idempotent.

        Runs as one transaction under the writer lock: either every missing
        seed account is created or none is. Accounts already present are left
        exactly as they are (their hash is NOT replaced). Returns only the
        accounts created by this call.
        """
        created: list[Account] = []
        with self._write_lock:
            try:
                with self.engine.begin() as conn:
                    for username, password_hash, role in accounts:
                        if not username or not password_hash:
                            raise ValueError("Seed accounts require a username and password hash.")
                        if self._select_by_username(conn, username) is not None:
                            continue
                        created.append(self._insert(conn, username, password_hash, role))
            except SQLAlchemyError as exc:
                raise StorageError() from exc
        for account in created:
            logger.info("Seed account created id=%d username=%r role=%s", account.id, account.username, account.role)
        return created

    def _insert(self, conn: Connection, username: str, password_hash: str, role: str) -> Account:
        """Check-then-insert inside the caller's transaction. Caller holds the lock."""
        if self._select_by_username(conn, username) is not None:
            raise ConflictError()
        next_id = (conn.execute(select(func.count()).select_from(_accounts)).scalar() or 0) + 1
        created_at = _now_iso()
        conn.execute(
            _accounts.insert().values(
                id=next_id,
                username=username,
                password_hash=password_hash,
                role=role,
                created_at=created_at,
            )
        )
        return Account(id=next_id, username=username, password_hash=password_hash, role=role, created_at=created_at)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_username(self, username: str) -> Account | None:
        """Look up an account by exact username (case-sensitive). Returns None if not found."""
        try:
            with self.engine.connect() as conn:
                return self._select_by_username(conn, username)
        except SQLAlchemyError as exc:
            raise StorageError() from exc

    def find_by_id(self, account_id: int) -> Account | None:
        """Look up an account by id. Returns None if not found."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        except SQLAlchemyError as exc:
            raise StorageError() from exc
        return _row_to_account(row) if row is not None else None

    def list_all(self) -> list[Account]:
        """Return every account ordered by id ascending. Admin-only operation."""
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(_accounts.select().order_by(_accounts.c.id)).fetchall()
        except SQLAlchemyError as exc:
            raise StorageError() from exc
        return [_row_to_account(r) for r in rows]

    def count(self) -> int:
        try:
            with self.engine.connect() as conn:
                return conn.execute(select(func.count()).select_from(_accounts)).scalar() or 0
        except SQLAlchemyError as exc:
            raise StorageError() from exc

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        try:
            with self.engine.connect() as conn:
                conn.execute(select(1))
        except SQLAlchemyError:
            logger.warning("Account store health probe failed", exc_info=True)
            return False
        return True

    @staticmethod
    def _select_by_username(conn: Connection, username: str) -> Account | None:
        row = conn.execute(_accounts.select().where(_accounts.c.username == username)).fetchone()
        return _row_to_account(row) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        username=row.username,
        password_hash=row.password_hash,
        role=row.role,
        created_at=row.created_at,
    )
