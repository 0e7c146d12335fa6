# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - Fingerprinting
# Content-addressed idempotency keys
# ═══════════════════════════════════════════════════════════════

import hashlib
import json
from typing import Any

FINGERPRINT_LENGTH = 64


def generate_fingerprint(content: str, source: str) -> str:
    """
    SHA-256 hex digest of ``content + source``.

    Identical content from the same source always maps to the same
    document id, so re-ingesting an upload overwrites instead of
    duplicating.
    """
    return hashlib.sha256((content + source).encode("utf-8")).hexdigest()


def canonical_json(value: Any) -> str:
    """Stable serialization used as fingerprint input for structured elements."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
