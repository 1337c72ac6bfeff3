"""Optimistic collection: local-first record mutations with rollback.

Every mutation is applied to the in-memory collection first, then sent to
the durable store. If the store call fails, the pre-mutation snapshot is
restored and the caller gets a failed CommitResult; store errors never
escape as exceptions.

Deletion policy depends on the record's status:
  - filtered: physical delete (needs confirm=True), then renumber
  - anything else: soft delete, the status becomes filtered
"""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any

from internflow.core.config import CandidateProfile
from internflow.core.schemas import (
    EDITABLE_FIELDS,
    LOCAL_FIELDS,
    JobRecord,
    LifecycleState,
    ParsedPosting,
    ProfileType,
)
from internflow.core.store import DurableStore, StoreError
from internflow.mail.template import switch_subject
from internflow.pipeline.ordinal import OrdinalMaintainer, RenumberResult

logger = logging.getLogger(__name__)

TEMP_ID_PREFIX = "tmp-"


class CommitResult:
    """Outcome of a mutation. Falsy when the store rejected it."""

    def __init__(
        self,
        ok: bool,
        error: str | None = None,
        renumber: RenumberResult | None = None,
    ) -> None:
        self.ok = ok
        self.error = error
        self.renumber = renumber

    def __bool__(self) -> bool:
        return self.ok

    def __repr__(self) -> str:
        return f"CommitResult(ok={self.ok!r}, error={self.error!r})"


class Snapshot:
    """A record's state before a local mutation. ``record`` is None if it did not exist."""

    def __init__(self, record_id: str, record: JobRecord | None, index: int) -> None:
        self.record_id = record_id
        self.record = record
        self.index = index


class OptimisticCollection:
    """Client-visible records of one owner.

    Mutating coroutines are serialised by a lock so no caller observes a
    half-applied batch. Owned by a single event loop.
    """

    def __init__(
        self,
        store: DurableStore,
        owner_id: str,
        ordinals: OrdinalMaintainer | None = None,
    ) -> None:
        self._store = store
        self._owner_id = owner_id
        self._ordinals = ordinals or OrdinalMaintainer(store)
        self._records: list[JobRecord] = []
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def owner_id(self) -> str:
        return self._owner_id

    @property
    def records(self) -> list[JobRecord]:
        return list(self._records)

    def get(self, record_id: str) -> JobRecord:
        index = self._index(record_id)
        if index is None:
            msg = f"Unknown record '{record_id}'"
            raise KeyError(msg)
        return self._records[index]

    def passed(self) -> list[JobRecord]:
        return [r for r in self._records if r.passes_filter]

    def filtered(self) -> list[JobRecord]:
        return [r for r in self._records if not r.passes_filter]

    def placeholders(self) -> list[JobRecord]:
        return [r for r in self._records if r.is_placeholder]

    def _index(self, record_id: str) -> int | None:
        for i, record in enumerate(self._records):
            if record.id == record_id:
                return i
        return None

    # ------------------------------------------------------------------
    # Local apply / restore
    # ------------------------------------------------------------------

    def apply_local(self, record_id: str, mutation: dict[str, Any] | None) -> Snapshot:
        """Apply ``mutation`` (field updates, or None to remove) and return the prior state."""
        index = self._index(record_id)
        if index is None:
            msg = f"Unknown record '{record_id}'"
            raise KeyError(msg)
        current = self._records[index]
        snapshot = Snapshot(record_id, current.snapshot(), index)
        if mutation is None:
            del self._records[index]
        else:
            data = current.model_dump()
            data.update(mutation)
            self._records[index] = JobRecord.model_validate(data)
        return snapshot

    def restore(self, snapshot: Snapshot) -> None:
        """Put a record back exactly as it was before ``apply_local``."""
        index = self._index(snapshot.record_id)
        if snapshot.record is None:
            if index is not None:
                del self._records[index]
            return
        if index is not None:
            self._records[index] = snapshot.record
        else:
            self._records.insert(min(snapshot.index, len(self._records)), snapshot.record)

    def _restore_all(self, snapshots: list[Snapshot]) -> None:
        for snapshot in reversed(snapshots):
            self.restore(snapshot)

    # ------------------------------------------------------------------
    # Local-only state
    # ------------------------------------------------------------------

    def add_placeholder(self, posting: ParsedPosting, raw_requirement: str = "") -> JobRecord:
        """Insert a freshly extracted posting under a temporary id.

        Usable directly as the stream's ``on_record`` callback.
        """
        record = JobRecord.from_posting(
            posting,
            record_id=f"{TEMP_ID_PREFIX}{uuid.uuid4().hex[:8]}",
            owner_id=self._owner_id,
            raw_requirement=raw_requirement,
        )
        self._records.append(record)
        logger.debug("Placeholder %s: %s / %s", record.id, record.company, record.position)
        return record

    def toggle_select(self, record_id: str) -> bool:
        record = self.get(record_id)
        self.apply_local(record_id, {"selected": not record.selected})
        return not record.selected

    def select_all_passed(self) -> None:
        """Select every passed record, or clear them all if they already are."""
        passed = self.passed()
        target = not (passed and all(r.selected for r in passed))
        for record in passed:
            self.apply_local(record.id, {"selected": target})

    def append_log(self, record_id: str, message: str) -> str:
        line = f"[{datetime.now().strftime('%H:%M:%S')}] {message}"
        record = self.get(record_id)
        self.apply_local(record_id, {"logs": [*record.logs, line]})
        return line

    # ------------------------------------------------------------------
    # Committed mutations
    # ------------------------------------------------------------------

    async def _commit(self, snapshots: list[Snapshot], action: str, call: Any) -> CommitResult:
        try:
            await call
        except StoreError as e:
            self._restore_all(snapshots)
            logger.warning("%s failed, rolled back %d record(s): %s", action, len(snapshots), e)
            return CommitResult(ok=False, error=str(e))
        return CommitResult(ok=True)

    async def update(self, record_id: str, **fields: Any) -> CommitResult:
        """Edit content fields. Local-only fields never reach the store."""
        unknown = set(fields) - EDITABLE_FIELDS - LOCAL_FIELDS
        if unknown:
            msg = f"Fields cannot be edited: {sorted(unknown)}"
            raise ValueError(msg)
        async with self._lock:
            return await self._update(record_id, fields)

    async def _update(self, record_id: str, fields: dict[str, Any]) -> CommitResult:
        snapshot = self.apply_local(record_id, fields)
        remote = {k: v for k, v in fields.items() if k not in LOCAL_FIELDS}
        if not remote or record_id.startswith(TEMP_ID_PREFIX):
            return CommitResult(ok=True)
        record = self.get(record_id)
        payload = {k: getattr(record, k) for k in remote}
        return await self._commit(
            [snapshot], f"update of {record_id}", self._store.update_one(record_id, payload),
        )

    async def set_status(self, record_id: str, status: LifecycleState | str) -> CommitResult:
        status = LifecycleState(status)
        async with self._lock:
            return await self._update(record_id, {"status": status})

    async def set_status_many(
        self, record_ids: list[str], status: LifecycleState | str,
    ) -> CommitResult:
        """Set one status on several records; all visible or all reverted."""
        status = LifecycleState(status)
        async with self._lock:
            return await self._set_status_many(record_ids, status)

    async def _set_status_many(
        self, record_ids: list[str], status: LifecycleState,
    ) -> CommitResult:
        for record_id in record_ids:
            self.get(record_id)
        snapshots = [self.apply_local(rid, {"status": status}) for rid in record_ids]
        durable = [rid for rid in record_ids if not rid.startswith(TEMP_ID_PREFIX)]
        if not durable:
            return CommitResult(ok=True)
        return await self._commit(
            snapshots,
            f"status update of {len(durable)} record(s)",
            self._store.update_status_many(durable, status),
        )

    async def delete(self, record_id: str, confirm: bool = False) -> CommitResult:
        """Soft-delete an active record or physically delete a filtered one."""
        async with self._lock:
            record = self.get(record_id)
            if record.status is not LifecycleState.FILTERED:
                return await self._update(record_id, {"status": LifecycleState.FILTERED})
            if not confirm:
                return CommitResult(ok=False, error="physical delete requires confirmation")

            snapshot = self.apply_local(record_id, None)
            if record.is_placeholder:
                return CommitResult(ok=True)
            result = await self._commit(
                [snapshot], f"delete of {record_id}", self._store.delete_one(record_id),
            )
            if result.ok:
                result.renumber = await self._renumber_and_refresh_ordinals()
            return result

    async def delete_many(self, record_ids: list[str], confirm: bool = False) -> CommitResult:
        """Batch delete. Filtered records are removed, the rest soft-deleted.

        The whole batch is visible or none of it is. The soft part is written
        first; if the physical part then fails, the soft statuses are written
        back to their previous values.
        """
        async with self._lock:
            records = [self.get(rid) for rid in record_ids]
            hard = [r.id for r in records if r.status is LifecycleState.FILTERED]
            soft = [r.id for r in records if r.status is not LifecycleState.FILTERED]
            if hard and not confirm:
                return CommitResult(ok=False, error="physical delete requires confirmation")

            snapshots = [self.apply_local(rid, {"status": LifecycleState.FILTERED}) for rid in soft]
            snapshots += [self.apply_local(rid, None) for rid in hard]
            soft_durable = [rid for rid in soft if not rid.startswith(TEMP_ID_PREFIX)]
            hard_durable = [rid for rid in hard if not rid.startswith(TEMP_ID_PREFIX)]

            if soft_durable:
                try:
                    await self._store.update_status_many(soft_durable, LifecycleState.FILTERED)
                except StoreError as e:
                    self._restore_all(snapshots)
                    logger.warning("Batch delete failed, rolled back %d record(s): %s", len(snapshots), e)
                    return CommitResult(ok=False, error=str(e))

            if not hard_durable:
                return CommitResult(ok=True)

            try:
                await self._store.delete_many(hard_durable)
            except StoreError as e:
                self._restore_all(snapshots)
                logger.warning("Batch delete failed, rolled back %d record(s): %s", len(snapshots), e)
                await self._revert_statuses(
                    [(s.record_id, s.record.status) for s in snapshots
                     if s.record is not None and s.record_id in soft_durable],
                )
                return CommitResult(ok=False, error=str(e))

            renumber = await self._renumber_and_refresh_ordinals()
            return CommitResult(ok=True, renumber=renumber)

    async def _revert_statuses(self, previous: list[tuple[str, LifecycleState]]) -> None:
        by_status: dict[LifecycleState, list[str]] = {}
        for record_id, status in previous:
            by_status.setdefault(status, []).append(record_id)
        for status, ids in by_status.items():
            try:
                await self._store.update_status_many(ids, status)
            except StoreError as e:
                logger.error(
                    "Could not restore status '%s' on %d record(s); store and view differ "
                    "until the next reload: %s", status.value, len(ids), e,
                )

    async def switch_profile(
        self,
        record_id: str,
        profile: ProfileType | str,
        candidate: CandidateProfile,
    ) -> CommitResult:
        """Change the profile and rewrite the subject's school segment to match."""
        profile = ProfileType(profile)
        async with self._lock:
            record = self.get(record_id)
            subject = switch_subject(
                record.email_subject, record.profile_selected, profile, candidate,
            )
            return await self._update(
                record_id, {"profile_selected": profile, "email_subject": subject},
            )

    async def promote_to_interview(self, record_id: str) -> CommitResult:
        """Copy the record into the interview tracker and mark it ``interview``."""
        async with self._lock:
            record = self.get(record_id)
            if record.is_placeholder:
                return CommitResult(ok=False, error="record is not saved yet")
            try:
                await self._store.insert_interview(record)
            except StoreError as e:
                logger.warning("Interview tracking for %s failed: %s", record_id, e)
                return CommitResult(ok=False, error=str(e))
            return await self._update(record_id, {"status": LifecycleState.INTERVIEW})

    # ------------------------------------------------------------------
    # Persistence of extracted placeholders
    # ------------------------------------------------------------------

    async def persist_placeholders(self, source: str = "") -> CommitResult:
        """Insert all placeholders, renumber, then reload the durable versions.

        Once the insert succeeds each placeholder takes its durable id, so a
        failed reload never leads to a second insert. If the insert fails the
        placeholders are restored unchanged and can be saved again.
        """
        async with self._lock:
            pending = self.placeholders()
            if not pending:
                return CommitResult(ok=True)
            snapshots = [self.apply_local(r.id, {"source": source}) for r in pending]
            to_insert = [self.get(r.id) for r in pending]

            try:
                new_ids = await self._store.insert_batch(self._owner_id, to_insert)
            except StoreError as e:
                self._restore_all(snapshots)
                logger.warning("Saving %d record(s) failed: %s", len(pending), e)
                return CommitResult(ok=False, error=str(e))

            for record, new_id in zip(to_insert, new_ids):
                self.apply_local(record.id, {"id": new_id})
            logger.info("Saved %d record(s) for '%s'", len(new_ids), self._owner_id)
            renumber = await self._ordinals.renumber(self._owner_id)
            result = await self._reload()
            result.renumber = renumber
            return result

    async def discard_placeholders(self) -> int:
        """Drop unsaved placeholders. Returns how many were removed."""
        async with self._lock:
            pending = self.placeholders()
            for record in pending:
                self.apply_local(record.id, None)
            return len(pending)

    async def reload(self) -> CommitResult:
        """Replace the collection with the store's view.

        Local selections and logs are kept, and unsaved placeholders stay at
        the end.
        """
        async with self._lock:
            return await self._reload()

    async def _reload(self) -> CommitResult:
        try:
            fresh = await self._store.fetch_all(self._owner_id)
        except StoreError as e:
            logger.warning("Reload for '%s' failed: %s", self._owner_id, e)
            return CommitResult(ok=False, error=str(e))

        local = {r.id: r for r in self._records}
        selected = {rid for rid, r in local.items() if r.selected}
        merged: list[JobRecord] = []
        for record in fresh:
            previous = local.get(record.id)
            updates: dict[str, Any] = {"selected": record.id in selected}
            if previous is not None:
                updates["logs"] = previous.logs
            merged.append(record.model_copy(update=updates))
        merged.extend(r for r in self._records if r.is_placeholder)
        self._records = merged
        return CommitResult(ok=True)

    async def _renumber_and_refresh_ordinals(self) -> RenumberResult:
        result = await self._ordinals.renumber(self._owner_id)
        if result.ok:
            await self._reload()
        return result
