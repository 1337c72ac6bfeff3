"""Ordinal maintainer: dense 1..N display ordinals per owner.

Runs after every change in record count (batch insert, physical delete,
batch physical delete). Per-record updates are independent: a failure is
reported but earlier updates stay, and the next successful run repairs any
gap or duplicate.
"""

import logging

from internflow.core.store import DurableStore, StoreError

logger = logging.getLogger(__name__)


class RenumberResult:
    """Outcome of a renumber pass."""

    def __init__(
        self,
        owner_id: str,
        total: int,
        updated: int,
        failed: dict[str, str] | None = None,
        error: str | None = None,
    ) -> None:
        self.owner_id = owner_id
        self.total = total
        self.updated = updated
        self.failed = failed or {}
        self.error = error

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failed


class OrdinalMaintainer:
    """Assigns ordinal n to the n-th oldest record of an owner.

    Usage::

        result = await OrdinalMaintainer(store).renumber("owner-1")
        if not result.ok:
            ...  # surface, retry later
    """

    def __init__(self, store: DurableStore) -> None:
        self._store = store

    async def renumber(self, owner_id: str) -> RenumberResult:
        try:
            records = await self._store.fetch_all(owner_id)
        except StoreError as e:
            logger.warning("Renumber for '%s' could not fetch records: %s", owner_id, e)
            return RenumberResult(owner_id, total=0, updated=0, error=str(e))

        # Stable sort keeps the store's insertion order for equal timestamps.
        ordered = sorted(records, key=lambda r: r.created_at)

        updated = 0
        failed: dict[str, str] = {}
        for n, record in enumerate(ordered, start=1):
            try:
                await self._store.set_ordinal(record.id, n)
                updated += 1
            except StoreError as e:
                failed[record.id] = str(e)

        result = RenumberResult(owner_id, total=len(ordered), updated=updated, failed=failed)
        if result.ok:
            logger.debug("Renumbered %d records for '%s'", updated, owner_id)
        else:
            logger.warning(
                "Renumber for '%s' incomplete: %d/%d updated, %d failed",
                owner_id, updated, len(ordered), len(failed),
            )
        return result
