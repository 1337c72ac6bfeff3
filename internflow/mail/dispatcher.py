"""Sequential batch dispatcher: one mail at a time with a fixed delay between.

The delay keeps the mail provider's abuse heuristics quiet. Items go out in
collection order, and once a batch has started it runs to the end even if
the awaiting task is cancelled.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable

from internflow.core.config import CandidateProfile, MailConfig
from internflow.core.schemas import JobRecord, LifecycleState
from internflow.mail.sender import MailError, MailMessage, MailSender
from internflow.mail.template import render_body
from internflow.pipeline.collection import OptimisticCollection

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class BatchReport:
    """Which records were sent, failed, or skipped."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.failed: list[str] = []
        self.skipped: list[str] = []

    @property
    def total(self) -> int:
        return len(self.sent) + len(self.failed)


def is_sendable(record: JobRecord) -> bool:
    """Selected, passed the filter, and not already sent or in interview."""
    return (
        record.passes_filter
        and record.selected
        and not record.status.is_terminal_forward
        and record.status is not LifecycleState.FILTERED
        and not record.is_placeholder
    )


class BatchDispatcher:
    """Sends application mails for records in the collection.

    Usage::

        dispatcher = BatchDispatcher(collection, HttpMailSender(cfg.mail),
                                     cfg.mail, cfg.candidate)
        report = await dispatcher.send_batch()
    """

    def __init__(
        self,
        collection: OptimisticCollection,
        sender: MailSender,
        config: MailConfig,
        candidate: CandidateProfile,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._collection = collection
        self._sender = sender
        self._config = config
        self._candidate = candidate
        self._sleep = sleep

    def build_message(self, record: JobRecord) -> MailMessage:
        return MailMessage(
            to=record.email,
            subject=record.email_subject,
            html=render_body(self._config.body_template, record, self._candidate),
            reply_to=self._candidate.sender_email,
            from_name=self._config.from_name or self._candidate.name,
        )

    async def send_one(self, record_id: str) -> bool:
        """Send one record's mail. Returns True when the mail went out."""
        record = self._collection.get(record_id)
        if record.status.is_terminal_forward:
            logger.info("Skipping %s: already %s", record_id, record.status.value)
            return False

        self._collection.apply_local(record_id, {"logs": []})
        started = await self._collection.set_status(record_id, LifecycleState.SENDING)
        if not started:
            self._collection.append_log(record_id, f"Error: {started.error}")
            return False
        self._collection.append_log(record_id, f"Preparing to send to {record.email}...")

        try:
            message_id = await self._sender.send(self.build_message(record))
        except MailError as e:
            self._collection.append_log(record_id, f"Failed: {e}")
            await self._collection.set_status(record_id, LifecycleState.ERROR)
            return False

        self._collection.append_log(record_id, f"Success! ID: {message_id}")
        recorded = await self._collection.set_status(record_id, LifecycleState.SENT)
        if not recorded:
            self._collection.append_log(
                record_id, f"Error: mail went out but status could not be saved: {recorded.error}",
            )
            logger.warning("Sent %s but its status is still sending: %s", record_id, recorded.error)
        return True

    async def send_batch(
        self,
        record_ids: list[str] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BatchReport:
        """Send every eligible record (or the given ids) in collection order.

        Cancelling the caller does not stop a started batch.
        """
        wanted = set(record_ids) if record_ids is not None else None
        report = BatchReport()
        queue: deque[str] = deque()
        for record in self._collection.records:
            if wanted is not None and record.id not in wanted:
                continue
            if is_sendable(record):
                queue.append(record.id)
            else:
                report.skipped.append(record.id)

        if not queue:
            return report

        task = asyncio.ensure_future(self._drain(queue, report, on_progress))
        return await asyncio.shield(task)

    async def _drain(
        self,
        queue: deque[str],
        report: BatchReport,
        on_progress: ProgressCallback | None,
    ) -> BatchReport:
        total = len(queue)
        done = 0
        logger.info("Sending %d mail(s), %.1fs apart", total, self._config.delay_seconds)
        while queue:
            record_id = queue.popleft()
            if done:
                await self._sleep(self._config.delay_seconds)
            if await self.send_one(record_id):
                report.sent.append(record_id)
            else:
                report.failed.append(record_id)
            done += 1
            if on_progress is not None:
                on_progress(done, total)
        logger.info("Batch finished: %d sent, %d failed", len(report.sent), len(report.failed))
        return report
