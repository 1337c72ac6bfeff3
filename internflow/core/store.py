"""Durable store interface and its SQLite implementation."""

import logging
import sqlite3
from abc import ABC, abstractmethod
from typing import Any

from internflow.core import db
from internflow.core.schemas import JobRecord, LifecycleState

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """A durable store call failed. The call either fully happened or not at all."""


class DurableStore(ABC):
    """CRUD surface keyed by record id and owner id.

    Every method is awaited; each call succeeds or fails as a unit.
    """

    @abstractmethod
    async def fetch_all(self, owner_id: str) -> list[JobRecord]:
        """Return the owner's records, oldest first."""

    @abstractmethod
    async def insert_batch(self, owner_id: str, records: list[JobRecord]) -> list[str]:
        """Insert records and return their durable IDs."""

    @abstractmethod
    async def update_one(self, record_id: str, fields: dict[str, Any]) -> None:
        """Write a partial update to one record."""

    @abstractmethod
    async def update_status_many(self, record_ids: list[str], status: LifecycleState) -> None:
        """Set the status of several records."""

    @abstractmethod
    async def delete_one(self, record_id: str) -> None:
        """Physically remove one record."""

    @abstractmethod
    async def delete_many(self, record_ids: list[str]) -> None:
        """Physically remove several records."""

    @abstractmethod
    async def set_ordinal(self, record_id: str, ordinal: int) -> None:
        """Assign one record's display ordinal."""

    @abstractmethod
    async def insert_interview(self, record: JobRecord) -> None:
        """Copy a record into the interview tracker."""


class SQLiteStore(DurableStore):
    """DurableStore backed by a local SQLite connection.

    Usage::

        store = SQLiteStore(init_db("data/internflow.db"))
        records = await store.fetch_all("owner-1")
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    async def fetch_all(self, owner_id: str) -> list[JobRecord]:
        try:
            return db.fetch_records(self._conn, owner_id)
        except sqlite3.Error as e:
            msg = f"fetch_all failed: {e}"
            raise StoreError(msg) from e

    async def insert_batch(self, owner_id: str, records: list[JobRecord]) -> list[str]:
        try:
            ids = db.insert_records(self._conn, owner_id, records)
        except sqlite3.Error as e:
            msg = f"insert_batch failed: {e}"
            raise StoreError(msg) from e
        logger.debug("Inserted %d records for '%s'", len(ids), owner_id)
        return ids

    async def update_one(self, record_id: str, fields: dict[str, Any]) -> None:
        try:
            count = db.update_record(self._conn, record_id, fields)
        except (sqlite3.Error, ValueError) as e:
            msg = f"update of '{record_id}' failed: {e}"
            raise StoreError(msg) from e
        if count == 0:
            msg = f"record '{record_id}' not found"
            raise StoreError(msg)

    async def update_status_many(self, record_ids: list[str], status: LifecycleState) -> None:
        try:
            db.update_status_many(self._conn, record_ids, status)
        except sqlite3.Error as e:
            msg = f"status update failed: {e}"
            raise StoreError(msg) from e

    async def delete_one(self, record_id: str) -> None:
        try:
            count = db.delete_record(self._conn, record_id)
        except sqlite3.Error as e:
            msg = f"delete of '{record_id}' failed: {e}"
            raise StoreError(msg) from e
        if count == 0:
            msg = f"record '{record_id}' not found"
            raise StoreError(msg)

    async def delete_many(self, record_ids: list[str]) -> None:
        try:
            db.delete_records(self._conn, record_ids)
        except sqlite3.Error as e:
            msg = f"batch delete failed: {e}"
            raise StoreError(msg) from e

    async def set_ordinal(self, record_id: str, ordinal: int) -> None:
        try:
            count = db.set_ordinal(self._conn, record_id, ordinal)
        except sqlite3.Error as e:
            msg = f"ordinal update of '{record_id}' failed: {e}"
            raise StoreError(msg) from e
        if count == 0:
            msg = f"record '{record_id}' not found"
            raise StoreError(msg)

    async def insert_interview(self, record: JobRecord) -> None:
        try:
            db.insert_interview(self._conn, record)
        except sqlite3.Error as e:
            msg = f"interview tracker insert failed: {e}"
            raise StoreError(msg) from e
