# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - API Module
# ═══════════════════════════════════════════════════════════════

from .main import app, create_app

__all__ = ["app", "create_app"]
