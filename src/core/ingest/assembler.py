# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - Document Assembler
# Merges extracted fields with source metadata and the fingerprint
# ═══════════════════════════════════════════════════════════════

from datetime import datetime, timezone
from typing import Dict, Optional

from .base import (
    FULL_TEXT,
    LEAK_SOURCE,
    RAW_CONTENT,
    UPLOAD_DATE,
    ExtractedRecord,
    FieldValue,
    IngestDocument,
)
from .fingerprint import generate_fingerprint


def synthesize_full_text(fields: Dict[str, FieldValue]) -> str:
    """Space-joined string forms of the scalar field values."""
    parts = []
    for value in fields.values():
        if value is None or isinstance(value, list):
            continue
        parts.append(str(value))
    return " ".join(parts)


def today_utc() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def assemble_document(
    record: ExtractedRecord,
    leak_source: str,
    upload_date: Optional[str] = None,
) -> IngestDocument:
    """
    Build the storable document for one record.

    Data fields are copied first, then the reserved fields are set on top,
    so a dump column named ``leak_source`` or ``full_text`` can never
    override them. ``upload_date`` is not part of the fingerprint: a
    re-ingested record keeps its id and only refreshes the date.

    Args:
        record: Extractor output (already flattened)
        leak_source: Origin upload name
        upload_date: Optional ISO date stamped on the document

    Returns:
        IngestDocument keyed by fingerprint(record.content, leak_source)
    """
    fields: Dict[str, FieldValue] = dict(record.fields)

    full_text = record.full_text if record.full_text is not None else synthesize_full_text(record.fields)

    fields[LEAK_SOURCE] = leak_source
    fields[FULL_TEXT] = full_text
    if record.raw_content is not None:
        fields[RAW_CONTENT] = record.raw_content
    if upload_date:
        fields[UPLOAD_DATE] = upload_date

    return IngestDocument(
        doc_id=generate_fingerprint(record.content, leak_source),
        fields=fields,
    )
