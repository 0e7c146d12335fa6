# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - Ingestion Pipeline
# Byte stream -> extractor -> assembler -> sink
# ═══════════════════════════════════════════════════════════════

"""
IngestionPipeline - turns uploads into deduplicated breach documents.

One run reads a single byte stream:

    classify_source(name) ──▶ extractor.extract(chunks, stats)
                                   │ ExtractedRecord (one per row/line/element)
                                   ▼
                          assemble_document(record, name)
                                   │ IngestDocument (id = fingerprint)
                                   ▼
                          UpsertDispatcher.submit ──▶ DocumentSink.upsert

Runs are independent: each gets its own IngestStats and dispatcher, so
several uploads can be ingested concurrently on one pipeline.

Usage:
    pipeline = IngestionPipeline(ElasticsearchSink(), settings=get_settings())
    result = await pipeline.ingest_file("leaks/combo.txt")
    print(result.summary())
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional, Set, Union
from uuid import uuid4

import httpx

from ..config import Settings, get_settings
from ..exceptions import IngestionError, LeakdexException, SourceError
from ..logging import logging_context
from .assembler import assemble_document, today_utc
from .base import DocumentSink, IngestResult, IngestStats, RecordExtractor, SourceFormat
from .classifier import classify_source, get_extension
from .dispatcher import UpsertDispatcher
from .line_extractor import LineHeuristicExtractor
from .streams import iter_bytes, iter_file, iter_reader, iter_url, source_name_from_url
from .structured_extractor import StructuredExtractor
from .tabular_extractor import TabularExtractor

PROGRESS_EVERY = 10000


class IngestionPipeline:
    """
    Ingestion Pipeline.

    Entry points:
        - ingest(chunks, name): any async byte-chunk stream
        - ingest_reader(reader, name): sync or async file-like objects (uploads)
        - ingest_bytes(data, name): in-memory payloads
        - ingest_file(path): local files
        - ingest_url(url): HTTP(S) downloads, named ``url_<last segment>``
        - ingest_directory(path): batch of files with supported extensions

    Each returns IngestResult; ``processed`` is the number of documents
    handed to the sink (attempted, not necessarily confirmed stored).
    """

    def __init__(
        self,
        sink: DocumentSink,
        settings: Optional[Settings] = None,
        extractors: Optional[Dict[SourceFormat, RecordExtractor]] = None,
    ):
        self._sink = sink
        self._settings = settings or get_settings()
        self._extractors = extractors or self._default_extractors(self._settings)
        self.logger = logging.getLogger("leakdex.ingest.pipeline")

        # Dispatchers of runs that returned without waiting for the sink
        self._background: Set[asyncio.Task] = set()

    @staticmethod
    def _default_extractors(settings: Settings) -> Dict[SourceFormat, RecordExtractor]:
        return {
            SourceFormat.TABULAR: TabularExtractor(
                delimiter=settings.ingest_csv_delimiter,
                encoding=settings.ingest_encoding,
                max_line_bytes=settings.ingest_max_line_bytes,
            ),
            SourceFormat.STRUCTURED: StructuredExtractor(
                encoding=settings.ingest_encoding,
                max_element_bytes=settings.ingest_max_line_bytes,
            ),
            SourceFormat.LINE: LineHeuristicExtractor(
                encoding=settings.ingest_encoding,
                max_line_bytes=settings.ingest_max_line_bytes,
                min_line_length=settings.ingest_min_line_length,
            ),
        }

    @property
    def sink(self) -> DocumentSink:
        return self._sink

    @property
    def pending_runs(self) -> int:
        return len(self._background)

    def get_extractor(self, source_format: SourceFormat) -> RecordExtractor:
        return self._extractors[source_format]

    async def ingest(
        self,
        chunks: AsyncIterator[bytes],
        source_name: str,
        content_type: Optional[str] = None,
        wait: Optional[bool] = None,
    ) -> IngestResult:
        """
        Ingest one byte stream.

        Args:
            chunks: Async iterator of raw byte chunks
            source_name: Upload name, used for classification and ``leak_source``
            content_type: Optional MIME hint for extensionless names
            wait: Await all upserts before returning (default from settings)

        Returns:
            IngestResult for the run. A unit exceeding the size limit stops
            the run and is reported through ``success``/``error``.

        Raises:
            SourceError: If the byte source itself fails
        """
        if wait is None:
            wait = self._settings.ingest_wait_for_sink

        run_id = uuid4().hex[:12]
        source_format = classify_source(source_name, content_type)
        extractor = self._extractors[source_format]
        stats = IngestStats()
        dispatcher = UpsertDispatcher(self._sink, stats, self._settings.ingest_max_in_flight)
        upload_date = today_utc() if self._settings.ingest_stamp_upload_date else None
        error: Optional[str] = None
        start = time.monotonic()

        with logging_context(run_id=run_id, leak_source=source_name):
            self.logger.info(f"Ingesting '{source_name}' as {source_format.value}")

            try:
                async for record in extractor.extract(chunks, stats):
                    document = assemble_document(record, source_name, upload_date)
                    await dispatcher.submit(document)
                    stats.processed += 1

                    if stats.processed % PROGRESS_EVERY == 0:
                        self.logger.debug(f"{stats.processed} records dispatched")

            except IngestionError as e:
                error = e.message
                self.logger.error(f"Ingestion of '{source_name}' stopped: {e.message}")

            except Exception:
                # Source failure: let in-flight upserts settle before reporting it
                await dispatcher.drain()
                self.logger.error(
                    f"Ingestion of '{source_name}' aborted after {stats.processed} records"
                )
                raise

            if wait:
                await dispatcher.drain()
            elif dispatcher.in_flight:
                self._track(dispatcher)

            duration_ms = (time.monotonic() - start) * 1000
            result = IngestResult.from_stats(
                run_id=run_id,
                source=source_name,
                source_format=source_format,
                stats=stats,
                duration_ms=duration_ms,
                error=error,
            )

            if result.failed:
                self.logger.warning(f"{result.failed} of {result.processed} upserts failed")
            self.logger.info(f"Finished in {duration_ms:.1f}ms: {result.summary()}")

        return result

    def _track(self, dispatcher: UpsertDispatcher) -> None:
        task = asyncio.create_task(dispatcher.drain())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def wait_pending(self) -> None:
        """Wait for upserts of runs that returned with ``wait=False``."""
        while self._background:
            await asyncio.gather(*list(self._background))

    async def ingest_reader(
        self,
        reader,
        source_name: str,
        content_type: Optional[str] = None,
        wait: Optional[bool] = None,
    ) -> IngestResult:
        """Ingest from a sync or async file-like object (e.g. an uploaded file)."""
        chunks = iter_reader(reader, self._settings.ingest_chunk_size)
        return await self.ingest(chunks, source_name, content_type, wait)

    async def ingest_bytes(
        self,
        data: bytes,
        source_name: str,
        content_type: Optional[str] = None,
        wait: Optional[bool] = None,
    ) -> IngestResult:
        chunks = iter_bytes(data, self._settings.ingest_chunk_size)
        return await self.ingest(chunks, source_name, content_type, wait)

    async def ingest_file(
        self,
        path: Union[str, Path],
        source_name: Optional[str] = None,
        wait: Optional[bool] = None,
    ) -> IngestResult:
        """
        Ingest a local file; ``leak_source`` defaults to the file name.

        Raises:
            SourceError: If the path is not a readable file
        """
        path = Path(path)
        if not path.is_file():
            raise SourceError(f"Not a file: {path}", details={"path": str(path)})

        chunks = iter_file(path, self._settings.ingest_chunk_size)
        return await self.ingest(chunks, source_name or path.name, wait=wait)

    async def ingest_url(
        self,
        url: str,
        source_name: Optional[str] = None,
        wait: Optional[bool] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> IngestResult:
        """
        Download and ingest a URL; the format follows the URL's path.

        Raises:
            SourceError: On download failures
        """
        name = source_name or source_name_from_url(url)
        chunks = iter_url(
            url,
            chunk_size=self._settings.ingest_chunk_size,
            timeout=self._settings.download_timeout,
            client=client,
        )
        return await self.ingest(chunks, name, wait=wait)

    async def ingest_directory(
        self,
        directory: Union[str, Path],
        extensions: Optional[List[str]] = None,
        wait: Optional[bool] = None,
    ) -> List[IngestResult]:
        """
        Ingest every supported file of a directory (non-recursive, sorted).

        A file that cannot be read is reported as a failed result and the
        batch continues.

        Raises:
            SourceError: If ``directory`` does not exist
        """
        directory = Path(directory)
        if not directory.is_dir():
            raise SourceError(f"Not a directory: {directory}", details={"path": str(directory)})

        allowed = [e.lower() for e in (extensions or self._settings.ingest_extensions_list)]
        files = sorted(p for p in directory.iterdir() if p.is_file())

        results: List[IngestResult] = []
        for file_path in files:
            if get_extension(file_path.name) not in allowed:
                self.logger.warning(f"Skipping unsupported file type: {file_path.name}")
                continue

            try:
                results.append(await self.ingest_file(file_path, wait=wait))
            except LeakdexException as e:
                self.logger.error(f"Failed to ingest '{file_path.name}': {e.message}")
                results.append(IngestResult(
                    run_id=uuid4().hex[:12],
                    source=file_path.name,
                    source_format=classify_source(file_path.name),
                    success=False,
                    error=e.message,
                ))

        total = sum(r.processed for r in results)
        self.logger.info(
            f"Batch ingestion complete: {len([r for r in results if r.success])}/{len(results)} "
            f"files, {total} records"
        )
        return results
