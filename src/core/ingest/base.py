# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - Ingestion Base
# Records, documents, run accounting and component interfaces
# ═══════════════════════════════════════════════════════════════

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from pydantic import BaseModel, Field

# Closed value type for flattened fields. JSON arrays are kept as opaque lists.
Scalar = Union[bool, int, float, str]
FieldValue = Union[Scalar, None, List[Any]]

# Reserved fields set by the document assembler
LEAK_SOURCE = "leak_source"
FULL_TEXT = "full_text"
RAW_CONTENT = "raw_content"
UPLOAD_DATE = "upload_date"

RESERVED_FIELDS = (LEAK_SOURCE, FULL_TEXT, RAW_CONTENT, UPLOAD_DATE)


class SourceFormat(str, Enum):
    """Parsing strategy selected for an upload."""

    TABULAR = "tabular"        # header + delimited rows (.csv)
    STRUCTURED = "structured"  # top-level JSON array of objects (.json)
    LINE = "line"              # combo lists, JSONL, SQL dumps, anything else


class ExtractedRecord(BaseModel):
    """
    One record unit produced by an extractor.

    ``content`` is the fingerprint input; it is extractor specific
    (joined row values, raw line, canonical JSON of the element).
    """

    fields: Dict[str, FieldValue] = Field(default_factory=dict)
    content: str
    full_text: Optional[str] = None
    raw_content: Optional[str] = None


class IngestDocument(BaseModel):
    """Final storable document keyed by its fingerprint."""

    doc_id: str
    fields: Dict[str, FieldValue]

    @property
    def leak_source(self) -> Optional[str]:
        return self.fields.get(LEAK_SOURCE)  # type: ignore[return-value]


class IngestStats(BaseModel):
    """
    Per-run accumulator.

    One instance is created for each ingestion run and handed to the
    extractor and the upsert dispatcher, so concurrent runs never share
    counters.
    """

    processed: int = 0  # documents handed to the sink
    indexed: int = 0
    failed: int = 0
    skipped: int = 0    # malformed units
    dropped: int = 0    # noise lines

    @property
    def pending(self) -> int:
        return max(0, self.processed - self.indexed - self.failed)


class IngestResult(BaseModel):
    """Outcome of one ingestion run."""

    run_id: str
    source: str
    source_format: SourceFormat
    processed: int = 0
    indexed: int = 0
    failed: int = 0
    pending: int = 0
    skipped: int = 0
    dropped: int = 0
    duration_ms: float = 0.0
    success: bool = True
    error: Optional[str] = None

    @classmethod
    def from_stats(
        cls,
        run_id: str,
        source: str,
        source_format: SourceFormat,
        stats: IngestStats,
        duration_ms: float,
        error: Optional[str] = None,
    ) -> "IngestResult":
        return cls(
            run_id=run_id,
            source=source,
            source_format=source_format,
            processed=stats.processed,
            indexed=stats.indexed,
            failed=stats.failed,
            pending=stats.pending,
            skipped=stats.skipped,
            dropped=stats.dropped,
            duration_ms=duration_ms,
            success=error is None,
            error=error,
        )

    @property
    def complete(self) -> bool:
        """All processed documents have been acknowledged (or rejected)."""
        return self.pending == 0

    def summary(self) -> str:
        return (
            f"{self.source}: {self.processed} records processed "
            f"({self.indexed} indexed, {self.failed} failed, {self.pending} pending, "
            f"{self.skipped} skipped, {self.dropped} dropped)"
        )


class RecordExtractor(ABC):
    """
    Abstract interface for record extractors.

    Implementations:
    - TabularExtractor: header + delimited rows
    - StructuredExtractor: top-level JSON array of nested objects
    - LineHeuristicExtractor: one line at a time with ordered pattern rules

    Extractors consume the chunk stream once and yield records lazily.
    """

    @property
    @abstractmethod
    def source_format(self) -> SourceFormat:
        """Return the format handled by this extractor."""
        pass

    @abstractmethod
    def extract(
        self,
        chunks: AsyncIterator[bytes],
        stats: IngestStats,
    ) -> AsyncIterator[ExtractedRecord]:
        """
        Yield records from a byte chunk stream.

        Args:
            chunks: Async iterator of raw byte chunks
            stats: Run accumulator for skipped/dropped units
        """
        pass


class DocumentSink(ABC):
    """
    Abstract interface for document storage.

    Implementations:
    - ElasticsearchSink: upserts into an Elasticsearch index
    - MemorySink: keeps documents in a dict (dry runs, tests)
    """

    @property
    @abstractmethod
    def sink_name(self) -> str:
        """Return the sink name."""
        pass

    @abstractmethod
    async def upsert(self, document: IngestDocument) -> None:
        """
        Insert or overwrite ``document`` under ``document.doc_id``.

        Raises:
            SinkError: If the document could not be stored
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the storage engine is reachable."""
        pass

    async def prepare(self) -> bool:
        """Create storage structures the sink needs before the first upsert."""
        return True

    def get_connection_info(self) -> Dict[str, Any]:
        """Get connection information (for diagnostics)."""
        return {"sink": self.sink_name}

    async def close(self) -> None:
        """Release connections held by the sink."""
        return None
