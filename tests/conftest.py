"""Shared fixtures: failing SQLite store, scripted provider, candidate, posting factory."""

import sqlite3
from collections.abc import AsyncIterator, Callable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from internflow.core.config import CandidateProfile
from internflow.core.db import init_db
from internflow.core.schemas import JobRecord, LifecycleState, ParsedPosting
from internflow.core.store import SQLiteStore, StoreError
from internflow.llm.base import LLMProvider


class FlakyStore(SQLiteStore):
    """SQLiteStore that raises StoreError for selected methods or record ids."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        super().__init__(conn)
        self.fail_methods: set[str] = set()
        self.fail_ids: set[str] = set()
        self.calls: list[str] = []

    def _check(self, method: str, *ids: str) -> None:
        self.calls.append(method)
        if method in self.fail_methods or self.fail_ids.intersection(ids):
            msg = f"{method} rejected"
            raise StoreError(msg)

    async def fetch_all(self, owner_id: str) -> list[JobRecord]:
        self._check("fetch_all")
        return await super().fetch_all(owner_id)

    async def insert_batch(self, owner_id: str, records: list[JobRecord]) -> list[str]:
        self._check("insert_batch")
        return await super().insert_batch(owner_id, records)

    async def update_one(self, record_id: str, fields: dict[str, Any]) -> None:
        self._check("update_one", record_id)
        await super().update_one(record_id, fields)

    async def update_status_many(self, record_ids: list[str], status: LifecycleState) -> None:
        self._check("update_status_many", *record_ids)
        await super().update_status_many(record_ids, status)

    async def delete_one(self, record_id: str) -> None:
        self._check("delete_one", record_id)
        await super().delete_one(record_id)

    async def delete_many(self, record_ids: list[str]) -> None:
        self._check("delete_many", *record_ids)
        await super().delete_many(record_ids)

    async def set_ordinal(self, record_id: str, ordinal: int) -> None:
        self._check("set_ordinal", record_id)
        await super().set_ordinal(record_id, ordinal)

    async def insert_interview(self, record: JobRecord) -> None:
        self._check("insert_interview", record.id)
        await super().insert_interview(record)


def posting_data(**overrides: Any) -> dict[str, Any]:
    """Wire-format (camelCase) posting dict."""
    data: dict[str, Any] = {
        "company": "Acme",
        "department": "Strategy",
        "position": "Strategy Intern",
        "email": "hr@acme.com",
        "profileSelected": "Base",
        "emailSubject": "Alex-Example University-6 months",
        "openingLine": "Dear Acme Strategy Intern hiring team",
        "jobSourceLine": "I saw your job posting for Strategy Intern",
        "praiseLine": "I greatly admire Acme's work in Strategy",
        "needsReview": False,
        "reviewReason": "",
        "passesFilter": True,
        "filterReason": "",
    }
    data.update(overrides)
    return data


@pytest.fixture
def db(tmp_path: Path) -> sqlite3.Connection:
    return init_db(tmp_path / "test.db")


@pytest.fixture
def store(db: sqlite3.Connection) -> FlakyStore:
    return FlakyStore(db)


@pytest.fixture
def candidate() -> CandidateProfile:
    return CandidateProfile(
        name="Alex",
        undergrad="Example University",
        undergrad_major="E-commerce",
        master="NUS",
        master_major="Data Science",
        master_year="2027",
        current_grade="Master Year 0",
        availability="6 months",
        frequency="5 days a week",
        arrival="immediately",
        filter_criteria="No HR roles",
        sender_email="alex@example.com",
    )


@pytest.fixture
def make_posting() -> Callable[..., ParsedPosting]:
    def _make(**overrides: Any) -> ParsedPosting:
        return ParsedPosting.model_validate(posting_data(**overrides))

    return _make


@pytest.fixture
def seed(db: sqlite3.Connection) -> Callable[..., list[str]]:
    """Insert records directly, oldest first, one minute apart. Returns their ids."""
    from internflow.core.db import insert_records

    def _seed(owner_id: str = "owner-1", count: int = 1, **fields: Any) -> list[str]:
        base = datetime(2026, 1, 1, 9, 0)
        records = []
        for i in range(count):
            data: dict[str, Any] = {
                "id": f"seed-{i}",
                "owner_id": owner_id,
                "created_at": base + timedelta(minutes=i),
                "company": f"Company {i}",
                "position": "Analyst Intern",
                "email": f"hr{i}@example.com",
                "email_subject": f"Subject {i}",
            }
            data.update(fields)
            records.append(JobRecord.model_validate(data))
        return insert_records(db, owner_id, records)

    return _seed


class ScriptedProvider(LLMProvider):
    """Streams a canned response in fixed-size fragments, optionally failing midway."""

    def __init__(self, response: str, chunk_size: int = 16, fail_after: int | None = None) -> None:
        super().__init__()
        self.response = response
        self.chunk_size = chunk_size
        self.fail_after = fail_after
        self.calls: list[dict[str, Any]] = []

    @property
    def provider_id(self) -> str:
        return "scripted"

    @property
    def default_model(self) -> str:
        return "scripted-1"

    @property
    def env_var(self) -> None:
        return None

    def stream(
        self,
        text: str,
        *,
        system: str,
        model: str | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[str]:
        self.calls.append({"text": text, "system": system, "model": model, "temperature": temperature})
        return self._fragments()

    async def _fragments(self) -> AsyncIterator[str]:
        for i, start in enumerate(range(0, len(self.response), self.chunk_size)):
            if self.fail_after is not None and i == self.fail_after:
                raise ConnectionError("model stream reset")
            yield self.response[start : start + self.chunk_size]
