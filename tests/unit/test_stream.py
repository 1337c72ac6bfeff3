"""Tests for the stream orchestrator."""

import asyncio
import json
from collections.abc import AsyncIterator

import pytest
from conftest import posting_data

from internflow.core.schemas import ParsedPosting
from internflow.extraction.stream import StreamInterrupted, StreamOrchestrator, TextBuffer


async def _fragments(*parts: object, fail_after: int | None = None) -> AsyncIterator:
    for i, part in enumerate(parts):
        if fail_after is not None and i == fail_after:
            raise ConnectionError("upstream closed")
        yield part


def _split(text: str, size: int) -> list[str]:
    return [text[i : i + size] for i in range(0, len(text), size)]


class TestTextBuffer:
    def test_append_returns_full_text(self) -> None:
        buf = TextBuffer()
        assert buf.append("ab") == "ab"
        assert buf.append("cd") == "abcd"
        assert buf.text == "abcd"


class TestExactlyOnce:
    async def test_two_objects_split_across_fragments(self) -> None:
        seen: list[dict] = []
        result = await StreamOrchestrator(validate=None).run(
            ['[{"a":1}', ',{"b":2}]'], on_record=seen.append,
        )
        assert seen == [{"a": 1}, {"b": 2}]
        assert result.records == [{"a": 1}, {"b": 2}]
        assert result.text == '[{"a":1},{"b":2}]'
        assert result.cancelled is False

    async def test_single_char_fragments_emit_each_posting_once(self) -> None:
        text = json.dumps([posting_data(company=f"C{i}") for i in range(4)])
        seen: list[ParsedPosting] = []
        result = await StreamOrchestrator().run(_split(text, 1), on_record=seen.append)
        assert [p.company for p in seen] == ["C0", "C1", "C2", "C3"]
        assert [p.company for p in result.records] == ["C0", "C1", "C2", "C3"]

    async def test_invalid_object_never_emitted(self) -> None:
        bad = posting_data()
        del bad["company"]
        text = json.dumps([posting_data(company="ok"), bad])
        seen: list[ParsedPosting] = []
        result = await StreamOrchestrator().run(_split(text, 5), on_record=seen.append)
        assert [p.company for p in seen] == ["ok"]
        assert len(result.records) == 1

    async def test_progress_receives_cumulative_text(self) -> None:
        progress: list[str] = []
        await StreamOrchestrator(validate=None).run(["[", '{"a":1}', "]"], on_progress=progress.append)
        assert progress == ["[", '[{"a":1}', '[{"a":1}]']

    async def test_async_callbacks_awaited(self) -> None:
        seen: list[dict] = []

        async def on_record(record: dict) -> None:
            await asyncio.sleep(0)
            seen.append(record)

        await StreamOrchestrator(validate=None).run(
            _fragments('[{"a":1},', '{"b":2}]'), on_record=on_record,
        )
        assert seen == [{"a": 1}, {"b": 2}]

    async def test_empty_stream(self) -> None:
        result = await StreamOrchestrator().run([])
        assert result.records == []
        assert result.text == ""


class TestFailureSalvage:
    async def test_salvages_records_before_failure(self) -> None:
        seen: list[dict] = []
        with pytest.raises(StreamInterrupted) as exc_info:
            await StreamOrchestrator(validate=None).run(
                _fragments('[{"a":1}', ',{"b":', "2}]", fail_after=2),
                on_record=seen.append,
            )
        err = exc_info.value
        assert err.records == [{"a": 1}]
        assert err.text == '[{"a":1},{"b":'
        assert isinstance(err.__cause__, ConnectionError)
        assert seen == [{"a": 1}]

    async def test_failure_before_any_fragment(self) -> None:
        with pytest.raises(StreamInterrupted) as exc_info:
            await StreamOrchestrator().run(_fragments("[", fail_after=0))
        assert exc_info.value.records == []
        assert exc_info.value.text == ""

    async def test_non_text_fragment_is_failure(self) -> None:
        with pytest.raises(StreamInterrupted) as exc_info:
            await StreamOrchestrator(validate=None).run(_fragments('[{"a":1},', 42))
        assert exc_info.value.records == [{"a": 1}]
        assert isinstance(exc_info.value.__cause__, TypeError)


class TestCancellation:
    async def test_cancel_between_fragments(self) -> None:
        cancel = asyncio.Event()
        seen: list[dict] = []

        def on_record(record: dict) -> None:
            seen.append(record)
            cancel.set()

        result = await StreamOrchestrator(validate=None).run(
            ['[{"a":1}', ',{"b":2}', ',{"c":3}]'], on_record=on_record, cancel=cancel,
        )
        assert result.cancelled is True
        assert seen == [{"a": 1}]
        assert result.records == [{"a": 1}]

    async def test_cancel_before_start(self) -> None:
        cancel = asyncio.Event()
        cancel.set()
        result = await StreamOrchestrator().run(['[{"a":1}]'], cancel=cancel)
        assert result.cancelled is True
        assert result.records == []

    async def test_cancel_closes_async_producer(self) -> None:
        closed = False

        async def producer() -> AsyncIterator[str]:
            nonlocal closed
            try:
                yield '[{"a":1}'
                yield ',{"b":2}]'
            finally:
                closed = True

        cancel = asyncio.Event()
        await StreamOrchestrator(validate=None).run(
            producer(), on_record=lambda _: cancel.set(), cancel=cancel,
        )
        assert closed is True
