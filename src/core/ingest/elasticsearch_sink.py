# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - Elasticsearch Sink
# Upserts breach documents into Elasticsearch by fingerprint
# ═══════════════════════════════════════════════════════════════

"""
ElasticsearchSink - write assembled documents into the breach index.

Every document is indexed with its fingerprint as ``_id``; indexing the
same id again overwrites the stored document, so repeated uploads of
overlapping dumps never create duplicates.

Features:
- Async Elasticsearch client, lazily created
- API key or basic authentication, TLS options
- Automatic retry on transient transport failures
- Credentials masked in logged errors

Usage:
    async with ElasticsearchSink(hosts=["http://localhost:9200"]) as sink:
        await sink.upsert(document)
"""

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional

from elasticsearch import AsyncElasticsearch
from elasticsearch.exceptions import (
    ApiError,
    AuthenticationException,
    ConnectionError as ESConnectionError,
    ConnectionTimeout,
    TransportError,
)

from ..exceptions import SinkError
from .base import DocumentSink, IngestDocument


class ElasticsearchSink(DocumentSink):
    """
    Elasticsearch Document Sink.

    Configuration:
        - hosts: List of Elasticsearch hosts
        - index: Target index (default: "breach_data")
        - api_key: Optional API key for authentication
        - timeout: Request timeout in seconds
        - max_retries: Attempts per document for transient failures
    """

    def __init__(
        self,
        hosts: Optional[List[str]] = None,
        index: str = "breach_data",
        api_key: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: int = 30,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        verify_certs: bool = True,
        ca_certs: Optional[str] = None
    ):
        """
        Initialize Elasticsearch sink.

        Args:
            hosts: List of Elasticsearch hosts (default: ["http://localhost:9200"])
            index: Index receiving the documents
            api_key: API key for authentication (base64 encoded or tuple)
            username: Username for basic auth
            password: Password for basic auth
            timeout: Request timeout in seconds
            max_retries: Maximum attempts per document
            retry_delay: Base delay between retries in seconds
            verify_certs: Verify SSL certificates
            ca_certs: Path to CA certificates
        """
        self._hosts = hosts or ["http://localhost:9200"]
        self._index = index
        self._api_key = api_key
        self._username = username
        self._password = password
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay
        self._verify_certs = verify_certs
        self._ca_certs = ca_certs

        self.logger = logging.getLogger("leakdex.ingest.elasticsearch")

        # Client is lazily initialized
        self._client: Optional[AsyncElasticsearch] = None

        # Connection state
        self._connected = False
        self._last_error: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Any, index: Optional[str] = None) -> "ElasticsearchSink":
        """Build a sink from application Settings."""
        return cls(
            hosts=[h.strip() for h in settings.elastic_url.split(",") if h.strip()],
            index=index or settings.elastic_index,
            api_key=settings.elastic_api_key,
            username=settings.elastic_username,
            password=settings.elastic_password,
            timeout=settings.elastic_timeout,
            max_retries=settings.elastic_max_retries,
            retry_delay=settings.elastic_retry_delay,
            verify_certs=settings.elastic_verify_certs,
            ca_certs=settings.elastic_ca_certs,
        )

    @property
    def sink_name(self) -> str:
        return "elasticsearch"

    @property
    def index(self) -> str:
        return self._index

    async def _get_client(self) -> AsyncElasticsearch:
        """Get or create Elasticsearch client."""
        if self._client is None:
            client_kwargs: Dict[str, Any] = {
                "hosts": self._hosts,
                "request_timeout": self._timeout,
                "retry_on_timeout": True,
                # Retries are handled per document in upsert()
                "max_retries": 0,
            }

            # Authentication
            if self._api_key:
                client_kwargs["api_key"] = self._api_key
            elif self._username and self._password:
                client_kwargs["basic_auth"] = (self._username, self._password)

            # SSL/TLS
            if not self._verify_certs:
                client_kwargs["verify_certs"] = False
            if self._ca_certs:
                client_kwargs["ca_certs"] = self._ca_certs

            self._client = AsyncElasticsearch(**client_kwargs)

        return self._client

    async def _ensure_connected(self) -> bool:
        """Ensure connection to Elasticsearch is established."""
        try:
            client = await self._get_client()
            info = await client.info()
            self._connected = True
            self._last_error = None
            self.logger.debug(f"Connected to Elasticsearch {info['version']['number']}")
            return True
        except AuthenticationException:
            self._connected = False
            self._last_error = "Authentication failed"
            self.logger.error("Elasticsearch authentication failed")
            return False
        except (ESConnectionError, ConnectionTimeout, TransportError, ApiError) as e:
            self._connected = False
            self._last_error = self._mask_error(str(e))
            self.logger.error(f"Elasticsearch connection failed: {self._last_error}")
            return False

    async def upsert(self, document: IngestDocument) -> None:
        """
        Index ``document`` under its fingerprint.

        Transient transport failures are retried with linear back-off;
        rejections from the cluster (mapping conflicts, auth errors) are
        not retried.

        Raises:
            SinkError: If the document could not be stored
        """
        for attempt in range(self._max_retries):
            try:
                client = await self._get_client()
                await client.index(
                    index=self._index,
                    id=document.doc_id,
                    document=document.fields,
                )
                return

            except ApiError as e:
                self._last_error = self._mask_error(str(e))
                raise SinkError(
                    f"Elasticsearch rejected document: {self._last_error}",
                    doc_id=document.doc_id,
                ) from e

            except (ESConnectionError, ConnectionTimeout, TransportError) as e:
                self._last_error = self._mask_error(str(e))

                if attempt < self._max_retries - 1:
                    self.logger.warning(
                        f"Elasticsearch error (attempt {attempt + 1}/{self._max_retries}) "
                        f"for {document.doc_id[:12]}: {self._last_error}. Retrying..."
                    )
                    await asyncio.sleep(self._retry_delay * (attempt + 1))
                else:
                    raise SinkError(
                        f"Elasticsearch unreachable after {self._max_retries} attempts: {self._last_error}",
                        doc_id=document.doc_id,
                        retryable=True,
                    ) from e

    async def ensure_index(self) -> bool:
        """Create the target index if it does not exist yet."""
        client = await self._get_client()
        try:
            exists = await client.indices.exists(index=self._index)
            if not exists:
                await client.indices.create(index=self._index)
                self.logger.info(f"Created index '{self._index}'")
            return True
        except (ApiError, TransportError) as e:
            self._last_error = self._mask_error(str(e))
            self.logger.error(f"Could not ensure index '{self._index}': {self._last_error}")
            return False

    async def prepare(self) -> bool:
        """Make sure the target index exists."""
        return await self.ensure_index()

    def _mask_error(self, error: str) -> str:
        """Mask potentially sensitive data in error messages."""
        # Mask URLs with credentials
        masked = re.sub(r'://([^:/]+):([^@]+)@', r'://\1:***@', error)
        # Mask API keys
        masked = re.sub(r'(api[_-]?key[=:]\s*)[^\s]+', r'\1***', masked, flags=re.I)
        return masked

    async def health_check(self) -> bool:
        """Check if Elasticsearch connection is healthy."""
        return await self._ensure_connected()

    async def close(self) -> None:
        """Close Elasticsearch client connection."""
        if self._client:
            await self._client.close()
            self._client = None
            self._connected = False

    def get_connection_info(self) -> Dict[str, Any]:
        """Get connection information (for diagnostics)."""
        return {
            "hosts": [self._mask_error(h) for h in self._hosts],
            "index": self._index,
            "connected": self._connected,
            "last_error": self._last_error,
            "sink": self.sink_name
        }

    async def __aenter__(self):
        """Async context manager entry."""
        await self._ensure_connected()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
