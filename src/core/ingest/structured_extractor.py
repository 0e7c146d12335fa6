# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - Structured Extractor
# Streaming reader for top-level JSON arrays of nested objects
# ═══════════════════════════════════════════════════════════════

import json
import logging
import re
from typing import AsyncIterator, Optional

from ..exceptions import RecordTooLargeError
from .base import ExtractedRecord, IngestStats, RecordExtractor, SourceFormat
from .fingerprint import canonical_json
from .flattener import flatten_record
from .streams import iter_text

JSON_WHITESPACE = " \t\n\r"
BOM = "\ufeff"

# Characters that matter outside / inside a string literal
_STRUCTURAL = re.compile(r'["{}\[\], \t\n\r]')
_STRING_SPECIAL = re.compile(r'["\\]')


class JsonArrayScanner:
    """
    Incremental splitter for the elements of a top-level JSON array.

    Only the element currently being scanned is buffered. Element
    boundaries are found by tracking string/escape state and bracket
    depth; decoding is left to the caller so a malformed element can be
    skipped without losing the rest of the array.

    Usage:
        scanner = JsonArrayScanner(iter_text(chunks), max_element_chars=1 << 20)
        if await scanner.open():
            async for text in scanner.elements():
                ...
    """

    def __init__(self, texts: AsyncIterator[str], max_element_chars: int):
        self._texts = texts.__aiter__()
        self._max_element_chars = max_element_chars
        self._buffer = ""
        self._pos = 0
        self._eof = False

        self.closed = False      # saw the closing ']'
        self.partial = False     # input ended inside an element

    async def _fill(self) -> bool:
        """Append the next text chunk, dropping everything before ``_pos``."""
        if self._eof:
            return False
        try:
            text = await self._texts.__anext__()
        except StopAsyncIteration:
            self._eof = True
            return False
        self._buffer = self._buffer[self._pos:] + text
        self._pos = 0
        return True

    async def _peek(self) -> Optional[str]:
        """Next non-whitespace character without consuming it (None at EOF)."""
        while True:
            while self._pos < len(self._buffer) and self._buffer[self._pos] in JSON_WHITESPACE:
                self._pos += 1
            if self._pos < len(self._buffer):
                return self._buffer[self._pos]
            if not await self._fill():
                return None

    async def open(self) -> bool:
        """Consume the opening ``[``; False if the stream is not an array."""
        ch = await self._peek()
        if ch == BOM:
            self._pos += 1
            ch = await self._peek()
        if ch != "[":
            return False
        self._pos += 1
        return True

    async def elements(self) -> AsyncIterator[str]:
        while True:
            ch = await self._peek()
            if ch is None:
                return
            if ch == "]":
                self._pos += 1
                self.closed = True
                return
            if ch == ",":
                self._pos += 1
                continue

            element = await self._read_element()
            if element is None:
                self.partial = True
                return
            yield element

    async def _read_element(self) -> Optional[str]:
        offset = 0
        depth = 0
        in_string = False

        while True:
            pos = self._pos
            buf = self._buffer

            if offset > self._max_element_chars:
                raise RecordTooLargeError(self._max_element_chars, unit="element", measure="characters")

            pattern = _STRING_SPECIAL if in_string else _STRUCTURAL
            match = pattern.search(buf, pos + offset)
            if match is None:
                offset = len(buf) - pos
                if not await self._fill():
                    return None
                continue

            j = match.start()
            ch = buf[j]

            if in_string:
                if ch == "\\":
                    if j + 1 >= len(buf):
                        # Escape split across chunks, rescan from the backslash
                        offset = j - pos
                        if not await self._fill():
                            return None
                        continue
                    offset = j + 2 - pos
                    continue
                in_string = False
                offset = j + 1 - pos
                if depth == 0:
                    break
                continue

            if ch == '"':
                in_string = True
                offset = j + 1 - pos
            elif ch in "{[":
                depth += 1
                offset = j + 1 - pos
            elif ch in "}]":
                if depth == 0:
                    # ']' closing the array right after a scalar
                    offset = j - pos
                    break
                depth -= 1
                offset = j + 1 - pos
                if depth == 0:
                    break
            else:
                # ',' or whitespace
                if depth == 0:
                    offset = j - pos
                    break
                offset = j + 1 - pos

        if offset > self._max_element_chars:
            raise RecordTooLargeError(self._max_element_chars, unit="element", measure="characters")

        if offset == 0:
            # Stray '}' at depth 0, consumed as a one-character malformed element
            offset = 1

        element = self._buffer[self._pos:self._pos + offset]
        self._pos += offset
        return element


class StructuredExtractor(RecordExtractor):
    """
    Structured Extractor - one record per element of a JSON array.

    The stream must start with ``[``; anything else yields zero records
    (logged, not raised). Elements that fail to decode or are not objects
    are skipped and counted. Each object is flattened into a single level.

    Record layout:
        fields    = flatten(element)
        content   = canonical JSON of the unflattened element
        full_text = content
    """

    def __init__(
        self,
        encoding: str = "utf-8",
        max_element_bytes: int = 10 * 1024 * 1024,
    ):
        self._encoding = encoding
        self._max_element_bytes = max_element_bytes
        self.logger = logging.getLogger("leakdex.ingest.structured")

    @property
    def source_format(self) -> SourceFormat:
        return SourceFormat.STRUCTURED

    async def extract(
        self,
        chunks: AsyncIterator[bytes],
        stats: IngestStats,
    ) -> AsyncIterator[ExtractedRecord]:
        scanner = JsonArrayScanner(
            iter_text(chunks, self._encoding),
            max_element_chars=self._max_element_bytes,
        )

        if not await scanner.open():
            self.logger.warning("Structured input does not start with a JSON array, nothing extracted")
            return

        index = 0
        async for text in scanner.elements():
            index += 1
            try:
                element = json.loads(text)
            except (ValueError, RecursionError) as e:
                stats.skipped += 1
                self.logger.debug(f"Skipping malformed element #{index}: {e}")
                continue

            if not isinstance(element, dict):
                stats.skipped += 1
                self.logger.debug(f"Skipping element #{index}: expected object, got {type(element).__name__}")
                continue

            serialized = canonical_json(element)
            yield ExtractedRecord(
                fields=flatten_record(element),
                content=serialized,
                full_text=serialized,
            )

        if scanner.partial:
            stats.skipped += 1
            self.logger.warning("Structured input ended inside an element")
        elif not scanner.closed:
            self.logger.warning("Structured input ended before the closing ']'")
