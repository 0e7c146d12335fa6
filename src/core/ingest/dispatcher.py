# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - Upsert Dispatcher
# Bounded fire-and-forget upserts with a completion barrier
# ═══════════════════════════════════════════════════════════════

import asyncio
import logging
from typing import Set

from ..exceptions import SinkError
from .base import DocumentSink, IngestDocument, IngestStats


class UpsertDispatcher:
    """
    Runs one background task per upsert.

    ``submit`` only waits when ``max_in_flight`` upserts are outstanding,
    so the ingestion loop keeps reading while the storage engine
    acknowledges earlier documents. Upserts may complete out of order.

    Every task records its outcome in the run's IngestStats: ``indexed`` on
    success, ``failed`` on any error. A failed upsert never propagates into
    the ingestion loop.

    Usage:
        dispatcher = UpsertDispatcher(sink, stats, max_in_flight=64)
        for document in documents:
            await dispatcher.submit(document)
        await dispatcher.drain()   # optional completion barrier
    """

    def __init__(self, sink: DocumentSink, stats: IngestStats, max_in_flight: int = 64):
        self._sink = sink
        self._stats = stats
        self._semaphore = asyncio.Semaphore(max_in_flight)
        self._tasks: Set[asyncio.Task] = set()
        self.logger = logging.getLogger("leakdex.ingest.dispatcher")

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def submit(self, document: IngestDocument) -> None:
        """Schedule an upsert, blocking only while the in-flight limit is reached."""
        await self._semaphore.acquire()
        task = asyncio.create_task(self._run(document))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, document: IngestDocument) -> None:
        try:
            await self._sink.upsert(document)
            self._stats.indexed += 1
        except SinkError as e:
            self._stats.failed += 1
            self.logger.error(f"Upsert failed for {document.doc_id}: {e.message}")
        except Exception as e:
            self._stats.failed += 1
            self.logger.exception(f"Unexpected error upserting {document.doc_id}: {e}")
        finally:
            self._semaphore.release()

    async def drain(self) -> None:
        """Completion barrier: wait for every submitted upsert to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
