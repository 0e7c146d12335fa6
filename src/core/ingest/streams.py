# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - Byte Streams
# Chunk sources (bytes, readers, files, URLs) and line splitting
# ═══════════════════════════════════════════════════════════════

"""
Byte-stream helpers for the ingestion pipeline.

Every source is exposed as an async iterator of ``bytes`` chunks so the
extractors never see more than one chunk plus one pending record:

    chunks = iter_file("combo.txt")
    async for line in iter_lines(chunks, max_line_bytes=1024 * 1024):
        ...

Closing the underlying reader mid-stream ends iteration normally; that is
the only cancellation mechanism a caller has.
"""

import codecs
import inspect
import logging
import posixpath
from pathlib import Path
from typing import Any, AsyncIterator, Optional, Union
from urllib.parse import unquote, urlparse

import aiofiles
import httpx

from ..exceptions import RecordTooLargeError, SourceError

DEFAULT_CHUNK_SIZE = 64 * 1024

logger = logging.getLogger("leakdex.ingest.streams")


def _is_closed(reader: Any) -> bool:
    if getattr(reader, "closed", False):
        return True
    # UploadFile and similar wrappers keep the real file on ``.file``
    inner = getattr(reader, "file", None)
    return bool(inner is not None and getattr(inner, "closed", False))


async def iter_bytes(data: bytes, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Yield an in-memory payload in chunks."""
    for offset in range(0, len(data), chunk_size):
        yield data[offset:offset + chunk_size]


async def iter_reader(reader: Any, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """
    Yield chunks from any object with a ``read(size)`` method.

    Both blocking readers (``open(..., "rb")``, ``io.BytesIO``) and async
    readers (aiofiles handles, FastAPI ``UploadFile``) are supported.
    A reader closed by the caller is treated as end of input.
    """
    while True:
        if _is_closed(reader):
            logger.debug("Reader closed, ending stream")
            return
        try:
            data = reader.read(chunk_size)
            if inspect.isawaitable(data):
                data = await data
        except ValueError:
            # "I/O operation on closed file"
            if _is_closed(reader):
                logger.debug("Reader closed mid-read, ending stream")
                return
            raise
        if not data:
            return
        if isinstance(data, str):
            data = data.encode("utf-8")
        yield data


async def iter_file(
    path: Union[str, Path],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> AsyncIterator[bytes]:
    """Stream a local file with non-blocking reads."""
    try:
        f = await aiofiles.open(path, mode="rb")
    except OSError as e:
        raise SourceError(f"Cannot open {path}: {e.strerror or e}", details={"path": str(path)}) from e

    try:
        async for chunk in iter_reader(f, chunk_size):
            yield chunk
    finally:
        await f.close()


async def iter_url(
    url: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    timeout: float = 60.0,
    client: Optional[httpx.AsyncClient] = None,
) -> AsyncIterator[bytes]:
    """
    Stream an HTTP(S) download.

    Args:
        url: Resource to download
        chunk_size: Preferred chunk size
        timeout: Request timeout in seconds
        client: Optional pre-configured client (not closed here)

    Raises:
        SourceError: On connection failures or non-2xx responses
    """
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    try:
        async with client.stream("GET", url) as response:
            if response.status_code >= 400:
                raise SourceError(
                    f"Download failed with HTTP {response.status_code}",
                    details={"url": _mask_url(url), "status_code": response.status_code},
                )
            async for chunk in response.aiter_bytes(chunk_size):
                yield chunk
    except httpx.HTTPError as e:
        raise SourceError(f"Download failed: {e}", details={"url": _mask_url(url)}) from e
    finally:
        if owns_client:
            await client.aclose()


def source_name_from_url(url: str) -> str:
    """Upload name for a URL: ``url_`` + last path segment."""
    segment = posixpath.basename(unquote(urlparse(url).path).rstrip("/"))
    return f"url_{segment or 'download'}"


def _mask_url(url: str) -> str:
    parsed = urlparse(url)
    if parsed.password:
        return url.replace(f":{parsed.password}@", ":***@")
    return url


async def iter_lines(
    chunks: AsyncIterator[bytes],
    max_line_bytes: int,
) -> AsyncIterator[bytes]:
    """
    Split a chunk stream on ``\\n``.

    A trailing ``\\r`` is removed from each line and a final line without a
    newline is still yielded.

    Raises:
        RecordTooLargeError: If a line grows beyond ``max_line_bytes``
    """
    buffer = bytearray()
    scan_from = 0

    async for chunk in chunks:
        buffer.extend(chunk)
        start = 0
        while True:
            newline = buffer.find(b"\n", max(start, scan_from))
            if newline < 0:
                break
            if newline - start > max_line_bytes:
                raise RecordTooLargeError(max_line_bytes, unit="line")
            line = bytes(buffer[start:newline])
            start = newline + 1
            yield line[:-1] if line.endswith(b"\r") else line

        # Compact once per chunk; the remainder is a partial line
        del buffer[:start]
        if len(buffer) > max_line_bytes:
            raise RecordTooLargeError(max_line_bytes, unit="line")
        scan_from = len(buffer)

    if buffer:
        line = bytes(buffer)
        yield line[:-1] if line.endswith(b"\r") else line


async def iter_text(
    chunks: AsyncIterator[bytes],
    encoding: str = "utf-8",
    errors: str = "ignore",
) -> AsyncIterator[str]:
    """Decode a chunk stream incrementally (multi-byte characters may span chunks)."""
    decoder = codecs.getincrementaldecoder(encoding)(errors=errors)
    async for chunk in chunks:
        text = decoder.decode(chunk)
        if text:
            yield text
    tail = decoder.decode(b"", final=True)
    if tail:
        yield tail
