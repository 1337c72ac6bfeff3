"""Brace-depth scanner that pulls complete top-level objects out of a growing JSON array.

The model streams ``[{...}, {...}, ...]`` a few characters at a time. Every
object whose closing brace has arrived at depth zero is a candidate; braces
inside string values never count.
"""

import json
import logging
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from internflow.core.schemas import ParsedPosting

logger = logging.getLogger(__name__)

# Turns a parsed object into an emitted record, or None to drop it.
Validator = Callable[[dict[str, Any]], Any]


class ObjectScanner:
    """Incremental scanner over a text stream.

    State is four fields (depth, in-string, escaped, start offset) so a
    chunk can end anywhere, even in the middle of an escape sequence.
    ``feed`` returns the raw candidate substrings completed by that chunk.

    Usage::

        scanner = ObjectScanner()
        for chunk in chunks:
            for candidate in scanner.feed(chunk):
                ...
    """

    def __init__(self) -> None:
        self.depth = 0
        self.in_string = False
        self.escaped = False
        self._start: int | None = None
        self._text: list[str] = []
        self._offset = 0

    def feed(self, chunk: str) -> list[str]:
        """Advance the scan over ``chunk`` and return newly closed candidates."""
        self._text.append(chunk)
        found: list[str] = []
        base = self._offset
        for i, ch in enumerate(chunk):
            pos = base + i
            if self.in_string:
                if self.escaped:
                    self.escaped = False
                elif ch == "\\":
                    self.escaped = True
                elif ch == '"':
                    self.in_string = False
            elif ch == '"':
                self.in_string = True
            elif ch == "{":
                if self.depth == 0:
                    self._start = pos
                self.depth += 1
            elif ch == "}":
                if self.depth == 0:
                    continue  # stray closing brace before any object
                self.depth -= 1
                if self.depth == 0 and self._start is not None:
                    found.append(self._slice(self._start, pos + 1))
                    self._start = None
        self._offset += len(chunk)
        return found

    def _slice(self, start: int, end: int) -> str:
        if len(self._text) > 1:
            self._text = ["".join(self._text)]
        return self._text[0][start:end]


def scan_candidates(text: str) -> list[str]:
    """Return every brace-balanced top-level object substring in ``text``.

    A fresh scanner over the whole buffer, so calling this twice on the same
    prefix gives the same list.
    """
    if not text:
        return []
    return ObjectScanner().feed(text)


def parse_candidate(candidate: str) -> dict[str, Any] | None:
    """Parse a candidate substring. None if it is not a JSON object."""
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        logger.debug("Candidate did not parse, skipping: %.60s", candidate)
        return None
    if not isinstance(data, dict):
        return None
    return data


def validate_posting(data: dict[str, Any]) -> ParsedPosting | None:
    """Apply the required-field gate. Rejected objects are dropped for good."""
    try:
        return ParsedPosting.model_validate(data)
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        logger.warning("Dropping extracted object with invalid fields: %s", missing)
        return None


def extract_records(
    text: str,
    validate: Validator | None = validate_posting,
) -> list[Any]:
    """Scan, parse and validate every complete object in the buffer, in order.

    ``validate=None`` emits the parsed dicts unchanged.
    """
    records: list[Any] = []
    for candidate in scan_candidates(text):
        data = parse_candidate(candidate)
        if data is None:
            continue
        record = validate(data) if validate is not None else data
        if record is not None:
            records.append(record)
    return records
