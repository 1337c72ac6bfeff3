"""SQLite database layer for job records and the interview tracker."""

import json
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

from internflow.core.schemas import EDITABLE_FIELDS, JobRecord, LifecycleState

_JOB_RECORDS_TABLE = """
CREATE TABLE IF NOT EXISTS job_records (
    id               TEXT    PRIMARY KEY,
    owner_id         TEXT    NOT NULL,
    ordinal          INTEGER,
    created_at       TEXT    NOT NULL,
    company          TEXT    NOT NULL,
    department       TEXT    NOT NULL DEFAULT '',
    position         TEXT    NOT NULL,
    email            TEXT    NOT NULL,
    profile_selected TEXT    NOT NULL DEFAULT 'Base',
    email_subject    TEXT    NOT NULL,
    opening_line     TEXT    NOT NULL DEFAULT '',
    job_source_line  TEXT    NOT NULL DEFAULT '',
    praise_line      TEXT    NOT NULL DEFAULT '',
    needs_review     INTEGER NOT NULL DEFAULT 0,
    review_reason    TEXT    NOT NULL DEFAULT '',
    passes_filter    INTEGER NOT NULL DEFAULT 1,
    filter_reason    TEXT    NOT NULL DEFAULT '',
    status           TEXT    NOT NULL DEFAULT 'pending',
    source           TEXT    NOT NULL DEFAULT '',
    raw_requirement  TEXT    NOT NULL DEFAULT ''
);
"""

_OWNER_INDEX = """
CREATE INDEX IF NOT EXISTS idx_job_records_owner ON job_records (owner_id, created_at);
"""

_INTERVIEWS_TABLE = """
CREATE TABLE IF NOT EXISTS interviews (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id      TEXT NOT NULL,
    record_id     TEXT NOT NULL,
    company       TEXT NOT NULL,
    position      TEXT NOT NULL,
    steps_json    TEXT NOT NULL,
    current_step  INTEGER NOT NULL DEFAULT 0,
    tags_json     TEXT NOT NULL,
    created_at    TEXT NOT NULL
);
"""

INTERVIEW_STEPS = ["Applied", "Screening", "Written test", "Round 1", "Round 2", "HR", "Offer"]

_UPDATABLE_COLUMNS = EDITABLE_FIELDS | {"status", "ordinal"}

_INSERT_COLUMNS = (
    "id", "owner_id", "ordinal", "created_at", "company", "department", "position",
    "email", "profile_selected", "email_subject", "opening_line", "job_source_line",
    "praise_line", "needs_review", "review_reason", "passes_filter", "filter_reason",
    "status", "source", "raw_requirement",
)


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_JOB_RECORDS_TABLE)
    conn.execute(_OWNER_INDEX)
    conn.execute(_INTERVIEWS_TABLE)
    conn.commit()
    return conn


def _to_column(name: str, value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if hasattr(value, "value"):  # ProfileType / LifecycleState
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _row_to_record(row: sqlite3.Row) -> JobRecord:
    data = dict(row)
    data["created_at"] = datetime.fromisoformat(data["created_at"])
    data["needs_review"] = bool(data["needs_review"])
    data["passes_filter"] = bool(data["passes_filter"])
    return JobRecord.model_validate(data)


def fetch_records(conn: sqlite3.Connection, owner_id: str) -> list[JobRecord]:
    """Return every record for an owner, oldest first (insertion order)."""
    rows = conn.execute(
        "SELECT * FROM job_records WHERE owner_id = ? ORDER BY created_at, rowid",
        (owner_id,),
    ).fetchall()
    return [_row_to_record(r) for r in rows]


def insert_records(
    conn: sqlite3.Connection,
    owner_id: str,
    records: list[JobRecord],
) -> list[str]:
    """Insert a batch of records in one transaction. Returns the new IDs.

    Temporary IDs and ordinals on the input are discarded; the ordinal
    is assigned later by renumbering.
    """
    placeholders = ", ".join("?" for _ in _INSERT_COLUMNS)
    sql = f"INSERT INTO job_records ({', '.join(_INSERT_COLUMNS)}) VALUES ({placeholders})"
    new_ids: list[str] = []
    rows: list[tuple[Any, ...]] = []
    for record in records:
        new_id = uuid.uuid4().hex
        new_ids.append(new_id)
        data = record.model_dump(exclude={"selected", "logs"})
        data["id"] = new_id
        data["owner_id"] = owner_id
        data["ordinal"] = None
        rows.append(tuple(_to_column(col, data[col]) for col in _INSERT_COLUMNS))
    with conn:
        conn.executemany(sql, rows)
    return new_ids


def update_record(conn: sqlite3.Connection, record_id: str, fields: dict[str, Any]) -> int:
    """Update the given columns of one record. Returns the affected row count.

    Raises ValueError for columns that may not be written.
    """
    unknown = set(fields) - _UPDATABLE_COLUMNS
    if unknown:
        msg = f"Cannot update columns: {sorted(unknown)}"
        raise ValueError(msg)
    if not fields:
        return 0
    assignments = ", ".join(f"{col} = ?" for col in fields)
    values = [_to_column(col, v) for col, v in fields.items()]
    with conn:
        cursor = conn.execute(
            f"UPDATE job_records SET {assignments} WHERE id = ?",
            (*values, record_id),
        )
    return cursor.rowcount


def update_status_many(
    conn: sqlite3.Connection,
    record_ids: list[str],
    status: LifecycleState,
) -> int:
    """Set the status of several records in one statement."""
    if not record_ids:
        return 0
    marks = ", ".join("?" for _ in record_ids)
    with conn:
        cursor = conn.execute(
            f"UPDATE job_records SET status = ? WHERE id IN ({marks})",
            (status.value, *record_ids),
        )
    return cursor.rowcount


def set_ordinal(conn: sqlite3.Connection, record_id: str, ordinal: int) -> int:
    """Assign one record's display ordinal."""
    return update_record(conn, record_id, {"ordinal": ordinal})


def delete_record(conn: sqlite3.Connection, record_id: str) -> int:
    with conn:
        cursor = conn.execute("DELETE FROM job_records WHERE id = ?", (record_id,))
    return cursor.rowcount


def delete_records(conn: sqlite3.Connection, record_ids: list[str]) -> int:
    if not record_ids:
        return 0
    marks = ", ".join("?" for _ in record_ids)
    with conn:
        cursor = conn.execute(
            f"DELETE FROM job_records WHERE id IN ({marks})",
            tuple(record_ids),
        )
    return cursor.rowcount


def insert_interview(conn: sqlite3.Connection, record: JobRecord) -> int:
    """Copy a record into the interview tracker. Returns the row ID.

    The tracked position is ``department-position`` when a department is known.
    """
    position = f"{record.department}-{record.position}" if record.department else record.position
    tags = ["InternFlow", record.source] if record.source else ["InternFlow"]
    with conn:
        cursor = conn.execute(
            """
            INSERT INTO interviews
                (owner_id, record_id, company, position, steps_json, current_step,
                 tags_json, created_at)
            VALUES (?, ?, ?, ?, ?, 0, ?, ?)
            """,
            (
                record.owner_id,
                record.id,
                record.company,
                position,
                json.dumps(INTERVIEW_STEPS),
                json.dumps(tags),
                datetime.now().isoformat(),
            ),
        )
    return cursor.lastrowid or 0
