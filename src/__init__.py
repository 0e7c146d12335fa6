# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - Breach Dump Ingestion
# ═══════════════════════════════════════════════════════════════

__version__ = "1.0.0"
