"""Ingest: wires prompt, provider stream, extractor, collection and store.

Data flow:
  1. Build the system prompt for the candidate
  2. Provider stream → StreamOrchestrator (records emitted as they close)
  3. Each record → collection placeholder (+ caller's on_record)
  4. Batch insert → renumber → reload replaces placeholders
"""

import asyncio
import logging

from internflow.core.config import CandidateProfile, LLMConfig
from internflow.core.schemas import ParsedPosting
from internflow.extraction.stream import (
    ProgressCallback,
    RecordCallback,
    StreamInterrupted,
    StreamOrchestrator,
    StreamResult,
)
from internflow.llm.base import LLMProvider
from internflow.llm.prompts import build_system_prompt
from internflow.pipeline.collection import CommitResult, OptimisticCollection

logger = logging.getLogger(__name__)


class IngestResult:
    """Summary of one ingest run."""

    def __init__(
        self,
        stream: StreamResult,
        commit: CommitResult,
        interrupted: StreamInterrupted | None = None,
    ) -> None:
        self.stream = stream
        self.commit = commit
        self.interrupted = interrupted

    @property
    def ok(self) -> bool:
        return self.interrupted is None and self.commit.ok

    @property
    def count(self) -> int:
        return len(self.stream.records)


async def parse_postings(
    text: str,
    provider: LLMProvider,
    candidate: CandidateProfile,
    llm_config: LLMConfig,
    on_progress: ProgressCallback | None = None,
    on_record: RecordCallback | None = None,
    cancel: asyncio.Event | None = None,
) -> StreamResult:
    """Stream postings out of ``text``. Blank input returns no records.

    Raises:
        StreamInterrupted: The model stream failed; carries the salvage.
        ValueError / ImportError: Provider misconfigured.
    """
    if not text.strip():
        return StreamResult([], "")

    system = build_system_prompt(candidate)
    fragments = provider.stream(
        text,
        system=system,
        model=llm_config.model,
        temperature=llm_config.temperature,
    )
    orchestrator = StreamOrchestrator()
    return await orchestrator.run(
        fragments, on_progress=on_progress, on_record=on_record, cancel=cancel,
    )


async def ingest(
    text: str,
    provider: LLMProvider,
    candidate: CandidateProfile,
    llm_config: LLMConfig,
    collection: OptimisticCollection,
    source: str = "",
    on_progress: ProgressCallback | None = None,
    on_record: RecordCallback | None = None,
    cancel: asyncio.Event | None = None,
    keep_partial: bool = True,
) -> IngestResult:
    """Parse postings into the collection and persist them.

    On a stream failure the records already shown are saved when
    ``keep_partial`` is true, and discarded otherwise.
    """

    async def _on_record(posting: ParsedPosting) -> None:
        collection.add_placeholder(posting, raw_requirement=text)
        if on_record is not None:
            result = on_record(posting)
            if asyncio.iscoroutine(result):
                await result

    interrupted: StreamInterrupted | None = None
    try:
        stream = await parse_postings(
            text, provider, candidate, llm_config,
            on_progress=on_progress, on_record=_on_record, cancel=cancel,
        )
    except StreamInterrupted as e:
        logger.warning("Model stream failed after %d record(s): %s", len(e.records), e.__cause__)
        interrupted = e
        stream = StreamResult(e.records, e.text)

    if interrupted is not None and not keep_partial:
        await collection.discard_placeholders()
        return IngestResult(stream, CommitResult(ok=False, error=str(interrupted)), interrupted)

    commit = await collection.persist_placeholders(source=source)
    logger.info(
        "Ingest: %d record(s) extracted, saved=%s%s",
        len(stream.records), commit.ok, " (cancelled)" if stream.cancelled else "",
    )
    return IngestResult(stream, commit, interrupted)
