# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - Extractor Tests
# Tabular, structured and line-heuristic record extraction
# ═══════════════════════════════════════════════════════════════

"""
Tests for the three record extractors.

Every extractor is fed through ``iter_bytes`` so the same payload can be
replayed with tiny chunk sizes to exercise records spanning chunks.

Test coverage:
- CSV header mapping, malformed and ragged rows, BOM, CRLF
- JSON array streaming, malformed/non-object elements, truncation
- Line rules (JSON, colon, pipe, SQL, fallback), hash heuristic, noise
"""

import pytest

from src.core.exceptions import RecordTooLargeError
from src.core.ingest.base import IngestStats, SourceFormat
from src.core.ingest.line_extractor import (
    LineHeuristicExtractor,
    LineKind,
    classify_line,
    looks_like_hash,
)
from src.core.ingest.streams import iter_bytes
from src.core.ingest.structured_extractor import StructuredExtractor
from src.core.ingest.tabular_extractor import TabularExtractor


MD5_SECRET = "5f4dcc3b5aa765d61d8327deb882cf99"


async def collect(extractor, data: bytes, chunk_size: int = 65536):
    """Run an extractor over ``data`` and return (records, stats)."""
    stats = IngestStats()
    records = [r async for r in extractor.extract(iter_bytes(data, chunk_size), stats)]
    return records, stats


# ═══════════════════════════════════════════════════════════════
# Test Tabular Extractor
# ═══════════════════════════════════════════════════════════════

class TestTabularExtractor:
    """Tests for TabularExtractor."""

    def test_source_format(self):
        assert TabularExtractor().source_format == SourceFormat.TABULAR

    @pytest.mark.asyncio
    async def test_header_mapping(self):
        records, stats = await collect(TabularExtractor(), b"user,pass\nbob,1234\n")

        assert len(records) == 1
        assert records[0].fields == {"user": "bob", "pass": "1234"}
        assert records[0].content == "bob 1234"
        assert records[0].full_text == "bob 1234"
        assert records[0].raw_content is None
        assert stats.skipped == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("chunk_size", [1, 3, 7])
    async def test_rows_spanning_chunks(self, chunk_size):
        data = b"email,password,name\na@x.io,pw1,Alice\nb@x.io,pw2,Bob\n"
        records, _ = await collect(TabularExtractor(), data, chunk_size)

        assert [r.fields["name"] for r in records] == ["Alice", "Bob"]

    @pytest.mark.asyncio
    async def test_ragged_rows_skipped(self):
        data = b"a,b\n1,2\n3\n4,5,6\n7,8\n"
        records, stats = await collect(TabularExtractor(), data)

        assert [r.content for r in records] == ["1 2", "7 8"]
        assert stats.skipped == 2

    @pytest.mark.asyncio
    async def test_malformed_quoting_skipped(self):
        data = b'user,pass\n"a"b,c\ncarol,pw\nbob,"unterminated\n'
        records, stats = await collect(TabularExtractor(), data)

        assert [r.fields["user"] for r in records] == ["carol"]
        assert stats.skipped == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("chunk_size", [3, 65536])
    async def test_quoted_newline_joins_lines(self, chunk_size):
        data = b'user,note\nbob,"line1\nline2"\ncarol,ok\n'
        records, stats = await collect(TabularExtractor(), data, chunk_size)

        assert [r.fields["user"] for r in records] == ["bob", "carol"]
        assert records[0].fields["note"] == "line1\nline2"
        assert stats.skipped == 0

    @pytest.mark.asyncio
    async def test_literal_quote_in_unquoted_cell(self):
        data = b'user,pass\nbob,pa"ss\ncarol,"say ""hi"""\n'
        records, stats = await collect(TabularExtractor(), data)

        assert [r.fields["pass"] for r in records] == ['pa"ss', 'say "hi"']
        assert stats.skipped == 0

    @pytest.mark.asyncio
    async def test_open_quote_bounded_by_max_line_bytes(self):
        data = b'user,note\nbob,"open\n' + b"x,y\n" * 10
        records, stats = await collect(TabularExtractor(max_line_bytes=32), data)

        assert stats.skipped == 1
        assert [r.fields["user"] for r in records] == ["x"] * 4

    @pytest.mark.asyncio
    async def test_quoted_delimiter(self):
        records, _ = await collect(TabularExtractor(), b'name,pass\n"Doe, John",pw\n')
        assert records[0].fields == {"name": "Doe, John", "pass": "pw"}

    @pytest.mark.asyncio
    async def test_bom_crlf_and_blank_lines(self):
        data = b"\xef\xbb\xbfuser,pass\r\n\r\nbob,1234\r\n"
        records, stats = await collect(TabularExtractor(), data)

        assert records[0].fields == {"user": "bob", "pass": "1234"}
        assert stats.skipped == 0

    @pytest.mark.asyncio
    async def test_custom_delimiter(self):
        records, _ = await collect(TabularExtractor(delimiter=";"), b"u;p\nbob;pw\n")
        assert records[0].fields == {"u": "bob", "p": "pw"}

    @pytest.mark.asyncio
    async def test_empty_input(self):
        records, stats = await collect(TabularExtractor(), b"")
        assert records == []
        assert stats.skipped == 0

    @pytest.mark.asyncio
    async def test_header_only(self):
        records, _ = await collect(TabularExtractor(), b"user,pass\n")
        assert records == []

    @pytest.mark.asyncio
    async def test_line_too_long(self):
        extractor = TabularExtractor(max_line_bytes=16)
        with pytest.raises(RecordTooLargeError):
            await collect(extractor, b"a,b\n" + b"x" * 40 + b",y\n")


# ═══════════════════════════════════════════════════════════════
# Test Structured Extractor
# ═══════════════════════════════════════════════════════════════

class TestStructuredExtractor:
    """Tests for StructuredExtractor and its array scanner."""

    def test_source_format(self):
        assert StructuredExtractor().source_format == SourceFormat.STRUCTURED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("chunk_size", [1, 3, 65536])
    async def test_elements_flattened(self, chunk_size):
        data = b'[{"email":"a@x.io"}, {"user": {"name": "bob", "ip": "1.2.3.4"}}]'
        records, stats = await collect(StructuredExtractor(), data, chunk_size)

        assert [r.fields for r in records] == [
            {"email": "a@x.io"},
            {"name": "bob", "ip": "1.2.3.4"},
        ]
        assert stats.skipped == 0

    @pytest.mark.asyncio
    async def test_content_is_canonical_json(self):
        records, _ = await collect(StructuredExtractor(), b'[{"b": 1, "a": {"c": 2}}]')

        assert records[0].content == '{"a":{"c":2},"b":1}'
        assert records[0].full_text == records[0].content
        assert records[0].raw_content is None

    @pytest.mark.asyncio
    async def test_lists_kept_opaque(self):
        records, _ = await collect(StructuredExtractor(), b'[{"tags": ["x", {"y": 1}]}]')
        assert records[0].fields == {"tags": ["x", {"y": 1}]}

    @pytest.mark.asyncio
    async def test_non_array_yields_nothing(self):
        records, stats = await collect(StructuredExtractor(), b'{"email": "a@x.io"}')
        assert records == []
        assert stats.skipped == 0

    @pytest.mark.asyncio
    async def test_empty_array_and_empty_input(self):
        assert (await collect(StructuredExtractor(), b"  [ ]  "))[0] == []
        assert (await collect(StructuredExtractor(), b""))[0] == []

    @pytest.mark.asyncio
    async def test_malformed_element_skipped(self):
        data = b'[{"a": 1}, {"b": }, {"c": 3}]'
        records, stats = await collect(StructuredExtractor(), data)

        assert [r.fields for r in records] == [{"a": 1}, {"c": 3}]
        assert stats.skipped == 1

    @pytest.mark.asyncio
    async def test_stray_closing_brace_skipped(self):
        records, stats = await collect(StructuredExtractor(), b'[{"a": 1}}, {"b": 2}]')

        assert [r.fields for r in records] == [{"a": 1}, {"b": 2}]
        assert stats.skipped == 1

    @pytest.mark.asyncio
    async def test_lone_closing_brace(self):
        records, stats = await collect(StructuredExtractor(), b"[}]")

        assert records == []
        assert stats.skipped == 1

    @pytest.mark.asyncio
    async def test_non_object_elements_skipped(self):
        data = b'[1, "text", null, [1, 2], {"a": 1}, true]'
        records, stats = await collect(StructuredExtractor(), data)

        assert [r.fields for r in records] == [{"a": 1}]
        assert stats.skipped == 5

    @pytest.mark.asyncio
    @pytest.mark.parametrize("chunk_size", [1, 2, 5])
    async def test_brackets_and_escapes_inside_strings(self, chunk_size):
        data = b'[{"p": "a]\\"}{,"}, {"q": "\\\\"}]'
        records, _ = await collect(StructuredExtractor(), data, chunk_size)

        assert records[0].fields == {"p": 'a]"}{,'}
        assert records[1].fields == {"q": "\\"}

    @pytest.mark.asyncio
    async def test_multibyte_characters_across_chunks(self):
        data = '[{"name": "José Müller"}]'.encode("utf-8")
        records, _ = await collect(StructuredExtractor(), data, chunk_size=1)
        assert records[0].fields == {"name": "José Müller"}

    @pytest.mark.asyncio
    async def test_bom_prefix(self):
        records, _ = await collect(StructuredExtractor(), b'\xef\xbb\xbf[{"a": 1}]')
        assert records[0].fields == {"a": 1}

    @pytest.mark.asyncio
    async def test_truncated_element_counted_as_skipped(self):
        records, stats = await collect(StructuredExtractor(), b'[{"a": 1}, {"b": 2')

        assert [r.fields for r in records] == [{"a": 1}]
        assert stats.skipped == 1

    @pytest.mark.asyncio
    async def test_missing_closing_bracket(self):
        records, stats = await collect(StructuredExtractor(), b'[{"a": 1}, {"b": 2}')
        assert len(records) == 2
        assert stats.skipped == 0

    @pytest.mark.asyncio
    async def test_element_too_large(self):
        extractor = StructuredExtractor(max_element_bytes=10)
        with pytest.raises(RecordTooLargeError):
            await collect(extractor, b'[{"aaaaaaaaaaaaaaaaaaaa": 1}]')


# ═══════════════════════════════════════════════════════════════
# Test Line Rules
# ═══════════════════════════════════════════════════════════════

class TestLineRules:
    """Tests for classify_line and the hash heuristic."""

    def test_json_line_flattened(self):
        kind, fields = classify_line('{"name":"bob","meta":{"ip":"1.2.3.4"}}')
        assert kind == LineKind.JSON
        assert fields == {"name": "bob", "ip": "1.2.3.4"}

    def test_invalid_json_falls_through(self):
        kind, fields = classify_line("{not json: x}")
        assert kind == LineKind.COLON_PAIR
        assert fields["identity"] == "{not json"
        assert fields["password"] == "x}"

    def test_json_array_line_is_not_json_rule(self):
        kind, _ = classify_line('["a", "b"]')
        assert kind == LineKind.FALLBACK

    def test_colon_pair_with_email(self):
        kind, fields = classify_line("alice@example.com:hunter2")
        assert kind == LineKind.COLON_PAIR
        assert fields == {
            "identity": "alice@example.com",
            "password": "hunter2",
            "email": "alice@example.com",
        }

    def test_colon_pair_with_username_and_hash(self):
        kind, fields = classify_line(f"alice:{MD5_SECRET}")
        assert kind == LineKind.COLON_PAIR
        assert fields["username"] == "alice"
        assert "email" not in fields
        assert fields["password"] == MD5_SECRET
        assert fields["password_hash"] == MD5_SECRET

    def test_colon_pair_splits_on_first_colon(self):
        _, fields = classify_line("bob : pass:with:colons ")
        assert fields["identity"] == "bob"
        assert fields["password"] == "pass:with:colons"

    def test_at_without_dot_is_username(self):
        _, fields = classify_line("root@localhost:toor")
        assert fields["username"] == "root@localhost"
        assert "email" not in fields

    def test_pipe_pair(self):
        kind, fields = classify_line("alice | hunter2")
        assert kind == LineKind.PIPE_PAIR
        assert fields == {"identity": "alice", "password": "hunter2"}

    def test_colon_takes_priority_over_pipe(self):
        kind, _ = classify_line("alice:pw|other")
        assert kind == LineKind.COLON_PAIR

    def test_sql_insert(self):
        kind, fields = classify_line("insert into users values (1, 'bob')")
        assert kind == LineKind.SQL_STATEMENT
        assert fields == {"data_type": "sql_query"}

    def test_fallback(self):
        kind, fields = classify_line("just some leaked text")
        assert kind == LineKind.FALLBACK
        assert fields == {}

    @pytest.mark.parametrize("length,expected", [
        (31, False),
        (32, True),
        (33, False),
        (40, True),
        (50, False),
        (51, True),
        (60, True),
    ])
    def test_looks_like_hash(self, length, expected):
        assert looks_like_hash("a" * length) is expected

    def test_hash_length_counts_characters(self):
        secret = "\u00e9" * 32
        assert len(secret.encode("utf-8")) == 64
        assert looks_like_hash(secret) is True


# ═══════════════════════════════════════════════════════════════
# Test Line Heuristic Extractor
# ═══════════════════════════════════════════════════════════════

class TestLineHeuristicExtractor:
    """Tests for LineHeuristicExtractor."""

    def test_source_format(self):
        assert LineHeuristicExtractor().source_format == SourceFormat.LINE

    @pytest.mark.asyncio
    async def test_record_layout(self):
        records, _ = await collect(LineHeuristicExtractor(), b"  alice@example.com:hunter2  \r\n")

        record = records[0]
        assert record.content == "alice@example.com:hunter2"
        assert record.full_text == record.content
        assert record.raw_content == record.content
        assert record.fields["email"] == "alice@example.com"

    @pytest.mark.asyncio
    async def test_mixed_dump(self):
        data = (
            b'{"name":"bob","meta":{"ip":"1.2.3.4"}}\n'
            b"carol@example.org:" + MD5_SECRET.encode() + b"\n"
            b"dave|letmein\n"
            b"INSERT INTO users VALUES (1,'eve');\n"
            b"random leaked note\n"
        )
        records, stats = await collect(LineHeuristicExtractor(), data, chunk_size=5)

        assert len(records) == 5
        assert records[0].fields == {"name": "bob", "ip": "1.2.3.4"}
        assert records[1].fields["password_hash"] == MD5_SECRET
        assert records[2].fields == {"identity": "dave", "password": "letmein"}
        assert records[3].fields == {"data_type": "sql_query"}
        assert records[4].fields == {}
        assert stats.dropped == 0

    @pytest.mark.asyncio
    async def test_noise_lines_dropped(self):
        data = b"abc\n\n    \nabcd\nalice:pw\n"
        records, stats = await collect(LineHeuristicExtractor(), data)

        assert [r.content for r in records] == ["alice:pw"]
        assert stats.dropped == 4

    @pytest.mark.asyncio
    async def test_min_length_counts_characters(self):
        data = "\u00f1\u00f1\u00f1\u00f1\u00f1\n\u00f1\u00f1\u00f1\n".encode("utf-8")
        records, stats = await collect(LineHeuristicExtractor(), data)

        assert [r.content for r in records] == ["\u00f1" * 5]
        assert stats.dropped == 1

    @pytest.mark.asyncio
    async def test_custom_min_line_length(self):
        records, stats = await collect(LineHeuristicExtractor(min_line_length=1), b"ab\n")
        assert len(records) == 1
        assert stats.dropped == 0

    @pytest.mark.asyncio
    async def test_last_line_without_newline(self):
        records, _ = await collect(LineHeuristicExtractor(), b"alice:pw1\nbob:pw2")
        assert [r.content for r in records] == ["alice:pw1", "bob:pw2"]

    @pytest.mark.asyncio
    async def test_invalid_utf8_ignored(self):
        records, _ = await collect(LineHeuristicExtractor(), b"alice\xff:secret\n")
        assert records[0].content == "alice:secret"

    @pytest.mark.asyncio
    async def test_line_too_long(self):
        extractor = LineHeuristicExtractor(max_line_bytes=32)
        with pytest.raises(RecordTooLargeError) as exc_info:
            await collect(extractor, b"alice:pw\n" + b"x" * 100 + b"\n")
        assert exc_info.value.unit == "line"
