"""Stream orchestrator: feeds model output fragments to the extractor.

Data flow per fragment:
  1. Append to the text buffer
  2. on_progress(full text)        (display only)
  3. Rescan the whole buffer
  4. on_record(r) for every record past the emitted watermark
  5. Advance the watermark

Producer failure salvages what was extracted and re-raises as
StreamInterrupted. Cancellation is checked between fragments only.
"""

import asyncio
import inspect
import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable, Iterable
from typing import Any

from internflow.extraction.scanner import Validator, extract_records, validate_posting

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], Awaitable[None] | None]
RecordCallback = Callable[[Any], Awaitable[None] | None]


class StreamResult:
    """What a stream produced: every record in emission order plus the raw text."""

    def __init__(self, records: list[Any], text: str, cancelled: bool = False) -> None:
        self.records = records
        self.text = text
        self.cancelled = cancelled


class StreamInterrupted(Exception):
    """The producer failed mid-stream.

    ``records`` holds everything complete before the failure; the original
    error is chained as ``__cause__``.
    """

    def __init__(self, records: list[Any], text: str) -> None:
        super().__init__(f"stream interrupted after {len(records)} record(s)")
        self.records = records
        self.text = text


class TextBuffer:
    """Append-only accumulator exposing the full text received so far."""

    def __init__(self) -> None:
        self._parts: list[str] = []
        self._text = ""

    def append(self, fragment: str) -> str:
        self._parts.append(fragment)
        self._text = "".join(self._parts)
        return self._text

    @property
    def text(self) -> str:
        return self._text


async def _as_async(fragments: Iterable[str]) -> AsyncIterator[str]:
    for fragment in fragments:
        yield fragment


async def _invoke(callback: Callable[[Any], Any] | None, arg: Any) -> None:
    if callback is None:
        return
    result = callback(arg)
    if inspect.isawaitable(result):
        await result


async def _close(iterator: AsyncIterator[str]) -> None:
    aclose = getattr(iterator, "aclose", None)
    if aclose is not None:
        await aclose()


class StreamOrchestrator:
    """Drives a fragment producer to completion, failure, or cancellation.

    Usage::

        orchestrator = StreamOrchestrator()
        result = await orchestrator.run(provider.stream(text, system=prompt),
                                        on_record=collection.add_placeholder)
    """

    def __init__(self, validate: Validator | None = validate_posting) -> None:
        self._validate = validate

    async def run(
        self,
        fragments: AsyncIterable[str] | Iterable[str],
        on_progress: ProgressCallback | None = None,
        on_record: RecordCallback | None = None,
        cancel: asyncio.Event | None = None,
    ) -> StreamResult:
        """Consume ``fragments`` and emit each record exactly once.

        Raises:
            StreamInterrupted: The producer raised or yielded a non-text chunk.
        """
        if isinstance(fragments, AsyncIterable):
            iterator = aiter(fragments)
        else:
            iterator = _as_async(fragments)

        buffer = TextBuffer()
        emitted = 0
        cancelled = False
        finished = False

        try:
            while True:
                if cancel is not None and cancel.is_set():
                    cancelled = True
                    break

                try:
                    fragment = await anext(iterator)
                except StopAsyncIteration:
                    finished = True
                    break
                except Exception as e:
                    raise self._salvage_error(buffer.text, e) from e

                if not isinstance(fragment, str):
                    err = TypeError(f"expected a text fragment, got {type(fragment).__name__}")
                    raise self._salvage_error(buffer.text, err) from err

                text = buffer.append(fragment)
                await _invoke(on_progress, text)

                records = extract_records(text, self._validate)
                for record in records[emitted:]:
                    await _invoke(on_record, record)
                    emitted += 1
        finally:
            if not finished:
                await _close(iterator)

        records = extract_records(buffer.text, self._validate)
        if cancelled:
            logger.info("Stream cancelled after %d record(s)", len(records))
        else:
            logger.info("Stream finished: %d record(s), %d chars", len(records), len(buffer.text))
        return StreamResult(records, buffer.text, cancelled=cancelled)

    def _salvage_error(self, text: str, error: Exception) -> StreamInterrupted:
        salvaged = extract_records(text, self._validate)
        logger.warning(
            "Stream failed (%s); salvaged %d record(s)", error, len(salvaged),
        )
        return StreamInterrupted(salvaged, text)
