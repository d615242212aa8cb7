"""FastAPI routes for the ExamBank ingestion pipeline.

Endpoint                     Method  Description
---------------------------  ------  ---------------------------------------
/api/v1/ingest               POST    Fetch an upload from a signed URL and ingest it
/api/v1/ingest/upload        POST    Ingest a multipart upload directly
/api/v1/sync                 POST    Run the consistency sync on demand
/api/v1/health               GET     Health check with store counts

Services are resolved from ``app.state`` (populated in ``main._lifespan``)
through ``Depends`` helpers, so tests can put fakes on ``app.state``.
Ingestion endpoints return the pipeline's ``{success, results | error}``
contract with camelCase keys.
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, UploadFile

from exambank.api.schemas import ErrorResponse, HealthResponse, IngestRequest, SyncResponse
from exambank.interfaces.question_store import IQuestionStore
from exambank.services.ingestion.ingestion_service import IngestionService
from exambank.utils.errors import ExamBankError
from exambank.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_MAX_UPLOAD_SIZE = 100 * 1024 * 1024
_UPLOAD_CHUNK_SIZE = 64 * 1024


# ---------------------------------------------------------------------------
# Dependency injection helpers
# ---------------------------------------------------------------------------


def _get_ingestion_service(request: Request) -> IngestionService:
    """Return the ingestion service from application state."""
    return request.app.state.ingestion_service


def _get_store(request: Request) -> IQuestionStore:
    """Return the question store from application state."""
    return request.app.state.store


IngestionServiceDep = Annotated[IngestionService, Depends(_get_ingestion_service)]
StoreDep = Annotated[IQuestionStore, Depends(_get_store)]


# ---------------------------------------------------------------------------
# Ingestion endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/ingest",
    responses={503: {"model": ErrorResponse}},
    summary="Ingest a document or archive from a signed download URL",
)
async def ingest_from_url(body: IngestRequest, service: IngestionServiceDep) -> dict[str, Any]:
    response = await service.ingest_from_url(
        body.download_url,
        body.filename,
        public_url=body.public_url,
    )
    return response.to_payload()


@router.post(
    "/ingest/upload",
    responses={413: {"model": ErrorResponse}},
    summary="Ingest an uploaded document or archive",
)
async def ingest_upload(
    file: UploadFile,
    service: IngestionServiceDep,
    public_url: str | None = None,
) -> dict[str, Any]:
    """Read the multipart upload in chunks, rejecting oversized bodies early."""
    chunks: list[bytes] = []
    total_size = 0
    while True:
        chunk = await file.read(_UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > _MAX_UPLOAD_SIZE:
            raise HTTPException(
                status_code=413,
                detail=f"File too large: maximum is {_MAX_UPLOAD_SIZE // (1024 * 1024)} MB.",
            )
        chunks.append(chunk)

    filename = file.filename or "upload"
    response = await service.ingest(b"".join(chunks), filename, public_url=public_url)
    return response.to_payload()


@router.post(
    "/sync",
    response_model=SyncResponse,
    response_model_by_alias=True,
    summary="Run the store consistency sync",
)
async def run_sync(service: IngestionServiceDep) -> SyncResponse:
    report = await service.sync()
    if report is None:
        return SyncResponse(success=False)
    return SyncResponse(success=True, db_sync=report.model_dump(mode="json", by_alias=True))


# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Application health check",
)
async def health_check(request: Request, store: StoreDep) -> HealthResponse:
    """Report provider availability and store reachability."""
    providers: dict[str, Any] = {}
    if hasattr(request.app.state, "provider_registry"):
        providers = dict(request.app.state.provider_registry)

    counts: dict[str, int] | None = None
    try:
        counts = await store.get_counts()
        providers["store"] = True
    except ExamBankError as exc:
        _logger.warning("health_store_unreachable", error=str(exc))
        providers["store"] = False

    critical_ok = providers.get("llm", False) and providers.get("embedding", False)
    if critical_ok and providers["store"]:
        status = "healthy"
    elif providers["store"]:
        status = "degraded"
    else:
        status = "unhealthy"

    return HealthResponse(
        status=status,
        version=request.app.version,
        providers=providers,
        counts=counts,
    )
