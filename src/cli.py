#!/usr/bin/env python3
# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - Ingestion CLI
# Ingest dump files, folders and URLs from the shell
# ═══════════════════════════════════════════════════════════════
#
# Examples:
#   leakdex-ingest ./leaks_data                   # every supported file
#   leakdex-ingest combo.txt users.csv --index breach_test
#   leakdex-ingest https://example.org/dump.json --no-wait
#   leakdex-ingest dump.sql --dry-run              # parse only, nothing stored
#
# ═══════════════════════════════════════════════════════════════

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .core.config import Settings, get_settings
from .core.exceptions import LeakdexException
from .core.ingest import (
    DocumentSink,
    ElasticsearchSink,
    IngestionPipeline,
    IngestResult,
    MemorySink,
)
from .core.logging import configure_logging, get_logger

logger = get_logger("cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="leakdex-ingest",
        description="Ingest breach dumps (CSV, JSON arrays, combo lists, JSONL, SQL) into Elasticsearch.",
    )
    parser.add_argument(
        "targets",
        nargs="*",
        help="Files, directories or http(s) URLs (default: DATA_DIR)",
    )
    parser.add_argument("--index", help="Target index (default: ELASTIC_INDEX)")
    parser.add_argument("--source-name", help="Override leak_source (single target only)")
    parser.add_argument(
        "--no-wait",
        action="store_true",
        help="Report counts without waiting for every upsert acknowledgment",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse and assemble documents without storing them",
    )
    parser.add_argument("--log-level", help="Log level (default: LOG_LEVEL)")
    return parser


def build_sink(settings: Settings, index: Optional[str], dry_run: bool) -> DocumentSink:
    if dry_run:
        return MemorySink()
    return ElasticsearchSink.from_settings(settings, index=index)


async def ingest_target(
    pipeline: IngestionPipeline,
    target: str,
    source_name: Optional[str],
    wait: bool,
) -> List[IngestResult]:
    if target.startswith(("http://", "https://")):
        return [await pipeline.ingest_url(target, source_name=source_name, wait=wait)]

    path = Path(target)
    if path.is_dir():
        return await pipeline.ingest_directory(path, wait=wait)
    return [await pipeline.ingest_file(path, source_name=source_name, wait=wait)]


async def run(args: argparse.Namespace, settings: Settings) -> int:
    targets = args.targets or [settings.data_dir]
    if args.source_name and len(targets) > 1:
        logger.error("--source-name can only be used with a single target")
        return 2

    sink = build_sink(settings, args.index, args.dry_run)
    pipeline = IngestionPipeline(sink, settings=settings)
    wait = not args.no_wait

    results: List[IngestResult] = []
    exit_code = 0
    try:
        if not await sink.health_check():
            logger.error(f"Sink '{sink.sink_name}' is not reachable")
            return 1
        if not await sink.prepare():
            logger.warning(f"Sink '{sink.sink_name}' could not be prepared, upserts may fail")

        for target in targets:
            try:
                results.extend(await ingest_target(pipeline, target, args.source_name, wait))
            except LeakdexException as e:
                logger.error(f"{target}: {e.message}")
                exit_code = 1

        await pipeline.wait_pending()
    finally:
        await sink.close()

    for result in results:
        status = "OK " if result.success else "ERR"
        print(f"[{status}] {result.summary()}")
        if result.error:
            print(f"      {result.error}")
        if not result.success or result.failed:
            exit_code = 1

    total = sum(r.processed for r in results)
    print(f"Total: {total} records from {len(results)} source(s)")
    return exit_code


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level, json_format=settings.log_json)
    return asyncio.run(run(args, settings))


if __name__ == "__main__":
    sys.exit(main())
