# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - Memory Sink
# In-process document store for dry runs and tests
# ═══════════════════════════════════════════════════════════════

import asyncio
import logging
from typing import Dict, List, Optional, Set

from ..exceptions import SinkError
from .base import DocumentSink, IngestDocument


class MemorySink(DocumentSink):
    """
    Memory sink - keeps documents in a dict keyed by id.

    Upserting an existing id overwrites it (last write wins), which mirrors
    the storage engine's behaviour for idempotency checks.

    This sink is useful for:
    - Unit and pipeline tests
    - ``--dry-run`` ingestion from the CLI
    - Simulating slow or failing storage
    """

    def __init__(
        self,
        delay_ms: int = 0,
        fail_ids: Optional[Set[str]] = None,
        fail_every: int = 0,
    ):
        """
        Initialize memory sink.

        Args:
            delay_ms: Simulated write latency in milliseconds
            fail_ids: Document ids whose upsert always fails
            fail_every: Fail every n-th upsert call (0 disables)
        """
        self._delay_ms = delay_ms
        self._fail_ids = set(fail_ids or ())
        self._fail_every = fail_every
        self.logger = logging.getLogger("leakdex.ingest.memory_sink")

        self.documents: Dict[str, Dict] = {}
        self.upsert_log: List[str] = []
        self.calls = 0
        self.closed = False

    @property
    def sink_name(self) -> str:
        return "memory"

    async def upsert(self, document: IngestDocument) -> None:
        self.calls += 1
        if self._delay_ms:
            await asyncio.sleep(self._delay_ms / 1000)

        if document.doc_id in self._fail_ids or (
            self._fail_every and self.calls % self._fail_every == 0
        ):
            raise SinkError("Simulated sink failure", doc_id=document.doc_id)

        self.upsert_log.append(document.doc_id)
        self.documents[document.doc_id] = dict(document.fields)

    async def health_check(self) -> bool:
        return not self.closed

    async def close(self) -> None:
        self.closed = True
