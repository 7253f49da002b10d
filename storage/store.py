"""
storage/store.py -- Durable key/value storage for client-side state.

The client keeps exactly one long-lived value here today: the bearer
credential, under the key configured as CREDENTIAL_KEY. The table is a plain
key/value map so that value survives process restarts the same way a browser
keeps a localStorage entry.

Pattern: Repository (same shape as the other SQLAlchemy Core stores).
ClientStorage is the only code that touches SQL; every SQLAlchemy failure is
re-raised as core.errors.StorageError so callers handle a single error kind.

Usage:
    storage = ClientStorage()
    storage.set("wp_jwt_token", "abc")
    storage.get("wp_jwt_token")     # "abc"
    storage.remove("wp_jwt_token")
    storage.close()

Layer rule: no imports from auth/ or gateway/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from core.config import get_settings
from core.errors import StorageError

logger = logging.getLogger("nexus.storage")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_entries = Table(
    "client_storage",
    _metadata,
    Column("key", String(255), primary_key=True),
    Column("value", Text, nullable=False),
    Column("updated_at", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so a second client process can read while one writes."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ClientStorage:
    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().storage_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        try:
            self.engine: Engine = create_engine(db_url, connect_args=connect_args)
            if db_url.startswith("sqlite") and ":memory:" not in db_url:
                event.listen(self.engine, "connect", _set_wal_mode)
            _metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Could not open client storage: {e}") from e

    def get(self, key: str) -> str | None:
        """Return the stored value for key, or None if absent."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_entries.select().where(_entries.c.key == key)).fetchone()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not read '{key}': {e}") from e
        return row.value if row is not None else None

    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any existing entry."""
        try:
            with self.engine.begin() as conn:
                conn.execute(_entries.delete().where(_entries.c.key == key))
                conn.execute(_entries.insert().values(key=key, value=value, updated_at=_now_iso()))
        except SQLAlchemyError as e:
            raise StorageError(f"Could not write '{key}': {e}") from e

    def remove(self, key: str) -> bool:
        """Delete key. Returns True if an entry was removed."""
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_entries.delete().where(_entries.c.key == key))
        except SQLAlchemyError as e:
            raise StorageError(f"Could not remove '{key}': {e}") from e
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()
