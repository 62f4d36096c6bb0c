"""Incremental record extraction from a streamed JSON array.

This module pulls top-level objects out of a ``[{...}, {...}]`` byte stream
chunk by chunk, so arbitrarily large arrays never sit in memory at once.
Malformed objects are emitted flagged rather than stopping the stream.
"""

from __future__ import annotations

import codecs
import json
from dataclasses import dataclass
from typing import Iterable, Iterator

from core.logging_config import get_logger
from core.types import Record

_LOGGER = get_logger(__name__)


@dataclass
class ParseState:
    """Mutable scanner state for one stream.

    Attributes:
        buffer: Decoded text not yet consumed.
        saw_opening_bracket: Whether the outermost ``[`` has been seen.
        inside_string: Whether the cursor is inside a JSON string literal.
        pending_escape: Whether the previous character was a backslash in a string.
        brace_depth: Current object nesting depth of the candidate record.
        next_index: Index assigned to the next completed record.
        cursor: Scan position inside ``buffer``.
        record_start: Buffer offset of the open candidate record, if any.
        closed: Whether the outermost ``]`` has been seen.
    """

    buffer: str = ""
    saw_opening_bracket: bool = False
    inside_string: bool = False
    pending_escape: bool = False
    brace_depth: int = 0
    next_index: int = 0
    cursor: int = 0
    record_start: int | None = None
    closed: bool = False


class RecordTokenizer:
    """Extract records from a JSON array fed in arbitrary byte chunks."""

    def __init__(self) -> None:
        self._state = ParseState()
        self._decoder = codecs.getincrementaldecoder("utf-8-sig")(errors="replace")
        self._finished = False
        self._truncated = False

    @property
    def emitted_count(self) -> int:
        """Number of records emitted so far, malformed ones included."""
        return self._state.next_index

    @property
    def truncated(self) -> bool:
        """Whether the stream ended inside an unfinished record."""
        return self._truncated

    def feed(self, chunk: bytes) -> list[Record]:
        """Append one chunk and return every record it completed.

        Args:
            chunk: Raw bytes read from the input stream.

        Returns:
            Records completed by this chunk, in index order.

        Raises:
            RuntimeError: If called after ``finish``.
        """
        if self._finished:
            raise RuntimeError("RecordTokenizer.feed called after finish().")
        self._state.buffer += self._decoder.decode(chunk)
        return self._extract()

    def finish(self) -> list[Record]:
        """Flush the decoder, extract remaining records and drop any partial one.

        Returns:
            Records completed by the final flush.
        """
        if self._finished:
            return []
        self._finished = True
        self._state.buffer += self._decoder.decode(b"", final=True)
        records = self._extract()
        state = self._state
        if state.record_start is not None:
            self._truncated = True
            _LOGGER.warning(
                "stream_truncated",
                next_index=state.next_index,
                dropped_characters=len(state.buffer) - state.record_start,
            )
        state.buffer = ""
        state.cursor = 0
        state.record_start = None
        return records

    def _extract(self) -> list[Record]:
        state = self._state
        buffer = state.buffer
        position = state.cursor
        records: list[Record] = []
        while position < len(buffer) and not state.closed:
            char = buffer[position]
            if not state.saw_opening_bracket:
                state.saw_opening_bracket = char == "["
                position += 1
                continue
            if state.record_start is None:
                if char == "{":
                    state.record_start = position
                    state.brace_depth = 1
                elif char == "]":
                    state.closed = True
                position += 1
                continue
            if state.pending_escape:
                state.pending_escape = False
            elif state.inside_string:
                if char == "\\":
                    state.pending_escape = True
                elif char == '"':
                    state.inside_string = False
            elif char == '"':
                state.inside_string = True
            elif char == "{":
                state.brace_depth += 1
            elif char == "}":
                state.brace_depth -= 1
                if state.brace_depth == 0:
                    records.append(self._emit(buffer[state.record_start : position + 1]))
                    state.record_start = None
            position += 1
        self._compact(buffer, position)
        return records

    def _compact(self, buffer: str, position: int) -> None:
        """Drop consumed text while keeping the open record and scan cursor."""
        state = self._state
        if state.closed:
            state.buffer = ""
            state.cursor = 0
            return
        if state.record_start is None:
            state.buffer = buffer[position:]
            state.cursor = 0
            return
        state.buffer = buffer[state.record_start :]
        state.cursor = position - state.record_start
        state.record_start = 0

    def _emit(self, raw_text: str) -> Record:
        index = self._state.next_index
        self._state.next_index += 1
        try:
            parsed = json.loads(raw_text)
        except json.JSONDecodeError as error:
            message = f"{error.msg} at position {error.pos}"
            _LOGGER.warning("record_malformed", index=index, error=message)
            return Record(index=index, raw_text=raw_text, parse_error=message)
        except (ValueError, RecursionError) as error:
            message = f"{type(error).__name__}: {error}"
            _LOGGER.warning("record_malformed", index=index, error=message)
            return Record(index=index, raw_text=raw_text, parse_error=message)
        return Record(index=index, raw_text=raw_text, parsed=parsed)


def iter_records(chunks: Iterable[bytes]) -> Iterator[Record]:
    """Lazily yield records from an iterable of byte chunks.

    Args:
        chunks: Byte chunks of a single JSON array, in stream order.

    Yields:
        Records in strictly increasing index order starting at 0.
    """
    tokenizer = RecordTokenizer()
    for chunk in chunks:
        yield from tokenizer.feed(chunk)
    yield from tokenizer.finish()
