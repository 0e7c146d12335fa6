# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - Line Heuristic Extractor
# Combo lists, JSON Lines, SQL dumps and raw text, one line at a time
# ═══════════════════════════════════════════════════════════════

"""
Line heuristics for unstructured dumps.

Each retained line is classified by an ordered list of rules; the first
rule that matches decides the extracted fields:

    1. JSON         {"email": "...", "meta": {...}}   -> flattened object
    2. COLON_PAIR   alice@example.com:hunter2          -> identity/password
    3. PIPE_PAIR    alice|hunter2                      -> identity/password
    4. SQL          INSERT INTO users VALUES (...)     -> data_type=sql_query
    5. FALLBACK     anything else                      -> reserved fields only

Every line additionally keeps its trimmed text as ``raw_content`` and
``full_text``.
"""

import json
import logging
from enum import Enum
from typing import AsyncIterator, Callable, Dict, List, Optional, Tuple

from .base import ExtractedRecord, FieldValue, IngestStats, RecordExtractor, SourceFormat
from .flattener import flatten_record
from .streams import iter_lines

# A secret of one of these lengths (or longer than HASH_MIN_LONG) looks hashed:
# 32 = MD5/NTLM, 40 = SHA1, >50 = SHA256/bcrypt/SHA512...
HASH_EXACT_LENGTHS = (32, 40)
HASH_MIN_LONG = 50

MIN_LINE_LENGTH = 5


class LineKind(str, Enum):
    """Rule that matched a line."""

    JSON = "json"
    COLON_PAIR = "colon_pair"
    PIPE_PAIR = "pipe_pair"
    SQL_STATEMENT = "sql_statement"
    FALLBACK = "fallback"


RuleResult = Optional[Dict[str, FieldValue]]


def looks_like_hash(secret: str) -> bool:
    """
    Length heuristic for hashed vs plaintext secrets.

    Length is counted in characters of the decoded text, so a multibyte
    secret is measured the same way as its ASCII counterpart.
    """
    return len(secret) in HASH_EXACT_LENGTHS or len(secret) > HASH_MIN_LONG


def _match_json(line: str) -> RuleResult:
    if not (line.startswith("{") and line.endswith("}")):
        return None
    try:
        decoded = json.loads(line)
    except (ValueError, RecursionError):
        return None
    if not isinstance(decoded, dict):
        return None
    return flatten_record(decoded)


def _match_colon_pair(line: str) -> RuleResult:
    if ":" not in line:
        return None

    identity, password = (part.strip() for part in line.split(":", 1))
    fields: Dict[str, FieldValue] = {"identity": identity, "password": password}

    if "@" in identity and "." in identity:
        fields["email"] = identity
    else:
        fields["username"] = identity

    if looks_like_hash(password):
        fields["password_hash"] = password

    return fields


def _match_pipe_pair(line: str) -> RuleResult:
    if "|" not in line:
        return None
    identity, password = (part.strip() for part in line.split("|", 1))
    return {"identity": identity, "password": password}


def _match_sql(line: str) -> RuleResult:
    if "INSERT INTO" not in line.upper():
        return None
    return {"data_type": "sql_query"}


# Fixed priority, first match wins
LINE_RULES: List[Tuple[LineKind, Callable[[str], RuleResult]]] = [
    (LineKind.JSON, _match_json),
    (LineKind.COLON_PAIR, _match_colon_pair),
    (LineKind.PIPE_PAIR, _match_pipe_pair),
    (LineKind.SQL_STATEMENT, _match_sql),
]


def classify_line(line: str) -> Tuple[LineKind, Dict[str, FieldValue]]:
    """
    Run the ordered rules against a trimmed line.

    Returns:
        Matching rule and the fields it extracted (empty for FALLBACK)
    """
    for kind, rule in LINE_RULES:
        fields = rule(line)
        if fields is not None:
            return kind, fields
    return LineKind.FALLBACK, {}


class LineHeuristicExtractor(RecordExtractor):
    """
    Line Heuristic Extractor - one record per non-noise line.

    Lines shorter than ``min_line_length`` characters after trimming are
    dropped and counted. Lines longer than ``max_line_bytes`` stop the run with
    RecordTooLargeError rather than being truncated.

    Record layout:
        fields      = rule output (see classify_line)
        content     = trimmed line
        full_text   = trimmed line
        raw_content = trimmed line
    """

    def __init__(
        self,
        encoding: str = "utf-8",
        max_line_bytes: int = 10 * 1024 * 1024,
        min_line_length: int = MIN_LINE_LENGTH,
    ):
        self._encoding = encoding
        self._max_line_bytes = max_line_bytes
        self._min_line_length = min_line_length
        self.logger = logging.getLogger("leakdex.ingest.line")

    @property
    def source_format(self) -> SourceFormat:
        return SourceFormat.LINE

    async def extract(
        self,
        chunks: AsyncIterator[bytes],
        stats: IngestStats,
    ) -> AsyncIterator[ExtractedRecord]:
        kinds: Dict[LineKind, int] = {}

        async for raw in iter_lines(chunks, self._max_line_bytes):
            line = raw.decode(self._encoding, errors="ignore").strip()
            if len(line) < self._min_line_length:
                stats.dropped += 1
                continue

            kind, fields = classify_line(line)
            kinds[kind] = kinds.get(kind, 0) + 1

            yield ExtractedRecord(
                fields=fields,
                content=line,
                full_text=line,
                raw_content=line,
            )

        if kinds:
            breakdown = ", ".join(f"{k.value}={v}" for k, v in kinds.items())
            self.logger.debug(f"Line rules matched: {breakdown}")
