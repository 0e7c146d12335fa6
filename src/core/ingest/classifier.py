# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - Format Classifier
# Picks a parsing strategy from the upload name
# ═══════════════════════════════════════════════════════════════

import posixpath
from typing import Optional
from urllib.parse import urlparse

from .base import SourceFormat

EXTENSION_FORMATS = {
    ".csv": SourceFormat.TABULAR,
    ".json": SourceFormat.STRUCTURED,
}

# Only consulted when the name carries no extension at all
CONTENT_TYPE_FORMATS = {
    "text/csv": SourceFormat.TABULAR,
    "application/csv": SourceFormat.TABULAR,
    "application/json": SourceFormat.STRUCTURED,
}


def _path_component(name: str) -> str:
    if "://" in name:
        return urlparse(name).path
    return name


def get_extension(name: str) -> str:
    """Lower-cased extension of a filename or URL path ('' when absent)."""
    basename = posixpath.basename(_path_component(name).replace("\\", "/"))
    return posixpath.splitext(basename)[1].lower()


def classify_source(name: str, content_type: Optional[str] = None) -> SourceFormat:
    """
    Select the extractor for an upload.

    ``.csv`` is tabular, ``.json`` is a structured array and everything
    else (``.txt``, ``.sql``, ``.jsonl``, combo lists, no extension) goes
    through the line heuristics. No content sniffing is done; a wrong
    extension degrades to whatever the chosen extractor can make of it.

    Args:
        name: Filename or URL
        content_type: Optional MIME type hint for extensionless names

    Returns:
        SourceFormat for the upload
    """
    extension = get_extension(name)

    if extension:
        return EXTENSION_FORMATS.get(extension, SourceFormat.LINE)

    if content_type:
        mime = content_type.split(";")[0].strip().lower()
        return CONTENT_TYPE_FORMATS.get(mime, SourceFormat.LINE)

    return SourceFormat.LINE
