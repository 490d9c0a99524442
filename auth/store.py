"""
auth/store.py -- SQLAlchemy Core persistence layer for credential records.

Pattern: Repository + Data Mapper. CredentialStore is the repository;
_row_to_record is the mapper. Route and service code never touches SQL.

Success signal:
  insert() returns the stored record (with its assigned id) or raises. It
  never hands back a bare id for the caller to sanity-check -- "id > 0"
  is meaningless for stores that start at 0 or use non-integer keys.

Errors:
  UNIQUE(email) violation       -> DuplicateIdentifierError
  any other SQLAlchemy failure  -> StoreError (original chained as __cause__)

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import DuplicateIdentifierError, StoreError
from auth.models import CredentialRecord

DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'gatehouse_auth.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_customers = Table(
    "customer",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("pwd", Text, nullable=False),  # "{bcrypt}$2b$..." encoded hash
    Column("role", String(30), nullable=False, server_default="user"),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Collaborator interface
# ---------------------------------------------------------------------------


class CredentialRepository(Protocol):
    """What the registration and authentication code needs from storage."""

    def find_by_identifier(self, identifier: str) -> CredentialRecord | None: ...

    def insert(self, record: CredentialRecord) -> CredentialRecord: ...


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """SQL-backed CredentialRepository.

    Usage:
        store = CredentialStore("sqlite:///:memory:")
        saved = store.insert(CredentialRecord(identifier="a@b.io", hash_encoded=encoded))
        store.find_by_identifier("a@b.io")
        store.close()
    """

    def __init__(self, db_url: str = DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        # hide_parameters keeps bound values (password hashes) out of exception
        # text, which ends up in logs.
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, hide_parameters=True)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def find_by_identifier(self, identifier: str) -> CredentialRecord | None:
        """Look up a record by exact identifier. Returns None if not found."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_customers.select().where(_customers.c.email == identifier)).fetchone()
        except SQLAlchemyError as exc:
            raise StoreError("Credential lookup failed.") from exc
        return _row_to_record(row) if row is not None else None

    def insert(self, record: CredentialRecord) -> CredentialRecord:
        """Insert record and return the stored copy with id and created_at set.

        Raises DuplicateIdentifierError if the identifier already exists; the
        existing row is left untouched. Raises StoreError on any other failure.
        """
        created_at = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _customers.insert().values(
                        email=record.identifier,
                        pwd=record.hash_encoded,
                        role=record.role,
                        created_at=created_at,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateIdentifierError("An account with that identifier already exists.") from exc
        except SQLAlchemyError as exc:
            raise StoreError("Credential insert failed.") from exc
        return CredentialRecord(
            identifier=record.identifier,
            hash_encoded=record.hash_encoded,
            role=record.role,
            id=result.inserted_primary_key[0],
            created_at=created_at,
        )

    def count(self) -> int:
        """Return the number of stored records. Raises StoreError on failure."""
        try:
            with self.engine.connect() as conn:
                result = conn.execute(select(func.count()).select_from(_customers)).scalar()
        except SQLAlchemyError as exc:
            raise StoreError("Credential count failed.") from exc
        return result or 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_record(row) -> CredentialRecord:
    return CredentialRecord(
        id=row.id,
        identifier=row.email,
        hash_encoded=row.pwd,
        role=row.role,
        created_at=row.created_at,
    )
