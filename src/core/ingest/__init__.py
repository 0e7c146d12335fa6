# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - Ingestion Module
# Breach dump ingestion into the search index
# ═══════════════════════════════════════════════════════════════

"""
Ingest Module - turns uploaded breach dumps into searchable documents.

Components:
- classify_source: picks an extractor from the upload name
- TabularExtractor / StructuredExtractor / LineHeuristicExtractor
- flatten_record: collapses nested objects into one level
- assemble_document: reserved fields + fingerprint
- UpsertDispatcher: bounded background upserts with a barrier
- ElasticsearchSink / MemorySink: document storage
- IngestionPipeline: ties everything together

Architecture:
┌──────────────┐   ┌────────────┐   ┌────────────┐   ┌────────────┐   ┌───────────────────┐
│ byte chunks  │──▶│ Classifier │──▶│ Extractor  │──▶│ Assembler  │──▶│ UpsertDispatcher  │
│ file/url/    │   └────────────┘   │ tabular    │   │ leak_source│   │ (bounded tasks)   │
│ upload       │                    │ structured │   │ full_text  │   └─────────┬─────────┘
└──────────────┘                    │ line       │   │ fingerprint│             ▼
                                    └────────────┘   └────────────┘   ┌───────────────────┐
                                                                      │ DocumentSink      │
                                                                      │ - Elasticsearch   │
                                                                      │ - Memory          │
                                                                      └───────────────────┘

Idempotency:
- Document id = sha256(content + leak_source)
- Re-uploading the same dump overwrites the same ids, no duplicates
"""

from .base import (
    DocumentSink,
    ExtractedRecord,
    FieldValue,
    IngestDocument,
    IngestResult,
    IngestStats,
    RecordExtractor,
    SourceFormat,
)
from .assembler import assemble_document
from .classifier import classify_source
from .dispatcher import UpsertDispatcher
from .elasticsearch_sink import ElasticsearchSink
from .fingerprint import canonical_json, generate_fingerprint
from .flattener import flatten_record
from .line_extractor import LineHeuristicExtractor, LineKind, classify_line
from .memory_sink import MemorySink
from .pipeline import IngestionPipeline
from .structured_extractor import StructuredExtractor
from .tabular_extractor import TabularExtractor

__all__ = [
    # Base types
    "DocumentSink",
    "ExtractedRecord",
    "FieldValue",
    "IngestDocument",
    "IngestResult",
    "IngestStats",
    "RecordExtractor",
    "SourceFormat",
    # Components
    "assemble_document",
    "classify_source",
    "canonical_json",
    "generate_fingerprint",
    "flatten_record",
    "classify_line",
    "LineKind",
    "TabularExtractor",
    "StructuredExtractor",
    "LineHeuristicExtractor",
    "UpsertDispatcher",
    # Sinks
    "ElasticsearchSink",
    "MemorySink",
    # Pipeline
    "IngestionPipeline",
]
