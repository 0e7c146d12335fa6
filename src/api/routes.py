# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - API Routes
# REST endpoints for dump ingestion
# ═══════════════════════════════════════════════════════════════

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status
from pydantic import BaseModel, Field

from ..core.ingest import IngestionPipeline, IngestResult


router = APIRouter(tags=["Ingestion"])

logger = logging.getLogger("leakdex.api")


# ═══════════════════════════════════════════════════════════════
# Dependencies
# ═══════════════════════════════════════════════════════════════

async def get_pipeline(request: Request) -> IngestionPipeline:
    """Get the ingestion pipeline from app state."""
    if not getattr(request.app.state, "pipeline", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Pipeline not initialized"
        )
    return request.app.state.pipeline


# ═══════════════════════════════════════════════════════════════
# Request Models
# ═══════════════════════════════════════════════════════════════

class UrlIngestRequest(BaseModel):
    """Request model for URL ingestion."""
    url: str = Field(..., pattern=r"^https?://", max_length=4096, description="Dump to download")
    source_name: Optional[str] = Field(None, max_length=512, description="Override for leak_source")
    wait: Optional[bool] = Field(None, description="Wait until the storage engine acknowledged every record")


# ═══════════════════════════════════════════════════════════════
# Ingestion Endpoints
# ═══════════════════════════════════════════════════════════════

@router.post("/ingest/upload", response_model=IngestResult)
async def ingest_upload(
    file: UploadFile = File(...),
    wait: Optional[bool] = Query(None, description="Wait for all upserts before responding"),
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> IngestResult:
    """
    Ingest an uploaded dump.

    The parsing strategy follows the file name: ``.csv`` tabular, ``.json``
    array, anything else line by line.
    """
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded file has no name"
        )

    try:
        result = await pipeline.ingest_reader(
            file,
            file.filename,
            content_type=file.content_type,
            wait=wait,
        )
    finally:
        await file.close()

    logger.info(f"Upload '{file.filename}' ingested: {result.processed} records")
    return result


@router.post("/ingest/url", response_model=IngestResult)
async def ingest_url(
    request_data: UrlIngestRequest,
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> IngestResult:
    """Download a dump over HTTP(S) and ingest it while streaming."""
    result = await pipeline.ingest_url(
        request_data.url,
        source_name=request_data.source_name,
        wait=request_data.wait,
    )
    logger.info(f"URL source '{result.source}' ingested: {result.processed} records")
    return result
