# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - Tabular Extractor
# Header + delimited rows (CSV dumps)
# ═══════════════════════════════════════════════════════════════

import csv
import logging
from typing import AsyncIterator, Dict, List, Optional, Tuple

from .base import ExtractedRecord, FieldValue, IngestStats, RecordExtractor, SourceFormat
from .streams import iter_lines

BOM = "\ufeff"
QUOTE = "\""


class TabularExtractor(RecordExtractor):
    """
    Tabular Extractor - one record per CSV row.

    The first non-blank line is the header. Rows are parsed in strict
    mode; rows that fail to parse (stray characters after a closing quote)
    or whose cell count differs from the header are skipped and counted,
    never fatal.

    A quoted cell still open at the end of a line continues on the next
    line, so RFC 4180 cells containing newlines are joined back into one
    row. A quote inside an unquoted cell is kept as a literal
    character. A row still open after ``max_line_bytes`` (or at end of
    input) is skipped and parsing resumes on the following line.

    Record layout:
        fields    = {header: cell, ...}
        content   = cells joined by a single space
        full_text = content
    """

    def __init__(
        self,
        delimiter: str = ",",
        encoding: str = "utf-8",
        max_line_bytes: int = 10 * 1024 * 1024,
    ):
        self._delimiter = delimiter
        self._encoding = encoding
        self._max_line_bytes = max_line_bytes
        self.logger = logging.getLogger("leakdex.ingest.tabular")

    @property
    def source_format(self) -> SourceFormat:
        return SourceFormat.TABULAR

    def _parse_row(self, text: str) -> List[str]:
        return next(csv.reader([text], delimiter=self._delimiter, strict=True))

    def _quote_open(self, text: str, in_quotes: bool = False) -> bool:
        """True when a quoted cell is still open at the end of ``text``."""
        if QUOTE not in text:
            return in_quotes
        cell_start = True
        after_close = False
        for ch in text:
            if in_quotes:
                if ch == QUOTE:
                    in_quotes = False
                    after_close = True
                continue
            # A quote opens a cell only at its start, or re-opens one after "" escaping
            if ch == QUOTE and (cell_start or after_close):
                in_quotes = True
            cell_start = ch == self._delimiter
            after_close = False
        return in_quotes

    async def _iter_rows(self, chunks: AsyncIterator[bytes], stats: IngestStats) -> AsyncIterator[Tuple[int, str]]:
        """Yield ``(first line number, text)`` per logical row, joining quoted newlines."""
        pending: Optional[List[str]] = None
        pending_bytes = 0
        row_start = 0
        line_number = 0

        async for raw in iter_lines(chunks, self._max_line_bytes):
            line_number += 1
            line = raw.decode(self._encoding, errors="ignore")
            continued = pending is not None

            if continued:
                pending_bytes += len(raw) + 1
            else:
                if line_number == 1 and line.startswith(BOM):
                    line = line[len(BOM):]
                if not line.strip():
                    continue
                row_start = line_number
                pending_bytes = len(raw)

            if self._quote_open(line, in_quotes=continued):
                if pending_bytes > self._max_line_bytes:
                    stats.skipped += 1
                    self.logger.warning(
                        f"Skipping row at line {row_start}: quoted cell still open "
                        f"after {self._max_line_bytes} bytes"
                    )
                    pending = None
                elif continued:
                    pending.append(line)
                else:
                    pending = [line]
                continue

            text = "\n".join(pending + [line]) if continued else line
            pending = None
            yield row_start, text

        if pending is not None:
            stats.skipped += 1
            self.logger.debug(f"Skipping row at line {row_start}: unterminated quote at end of input")

    async def extract(
        self,
        chunks: AsyncIterator[bytes],
        stats: IngestStats,
    ) -> AsyncIterator[ExtractedRecord]:
        headers: Optional[List[str]] = None

        async for line_number, text in self._iter_rows(chunks, stats):
            try:
                cells = self._parse_row(text)
            except csv.Error as e:
                if headers is None:
                    self.logger.warning(f"Unreadable CSV header: {e}")
                    return
                stats.skipped += 1
                self.logger.debug(f"Skipping malformed row at line {line_number}: {e}")
                continue

            if headers is None:
                headers = [h.strip() for h in cells]
                continue

            if len(cells) != len(headers):
                stats.skipped += 1
                self.logger.debug(
                    f"Skipping row at line {line_number}: "
                    f"{len(cells)} fields, header has {len(headers)}"
                )
                continue

            fields: Dict[str, FieldValue] = dict(zip(headers, cells))
            joined = " ".join(cells)

            yield ExtractedRecord(fields=fields, content=joined, full_text=joined)

        if headers is None:
            self.logger.warning("CSV stream contained no header row")
