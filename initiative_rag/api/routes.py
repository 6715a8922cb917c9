"""FastAPI routes for initiative-rag.

Service dependencies are resolved from ``app.state`` via FastAPI's
``Depends`` using the ``Annotated`` pattern; main.py's ``build_components``
populates the state at startup.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                                  Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/ingest                            POST    Reindex one initiative (or all)
# /api/v1/embed                             POST    Embed a query string
# /api/v1/answer                            POST    Grounded answer from given contexts
# /api/v1/search                            POST    Semantic search over chunks
# /api/v1/ask                               POST    Retrieve + answer in one call
# /api/v1/initiatives                       POST    Submit an initiative
# /api/v1/initiatives                       GET     List initiatives (?status=)
# /api/v1/initiatives/{id}                  GET     Initiative with attachments
# /api/v1/initiatives/{id}/status           PATCH   Change status (admin)
# /api/v1/initiatives/{id}/history          GET     Status audit trail
# /api/v1/initiatives/{id}/attachments      POST    Upload files (multipart)
# /api/v1/attachments/{id}                  DELETE  Remove an attachment
# /api/v1/attachments/{id}/url              GET     Signed download link
# /api/v1/files/{path}                      GET     Download via signed link
# /api/v1/feedback                          POST    Leave feedback
# /api/v1/health                            GET     Health check + chunk count
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import math
import mimetypes
from typing import Annotated, Any, TypeVar

import structlog
from fastapi import APIRouter, Depends, File, Query, Request, Response, UploadFile
from pydantic import BaseModel, ValidationError

from initiative_rag.api.auth import CurrentUserDep
from initiative_rag.api.schemas import (
    AnswerRequest,
    AnswerResponse,
    AskRequest,
    AskResponse,
    AttachmentResponse,
    CreateInitiativeRequest,
    EmbedRequest,
    EmbedResponse,
    ErrorResponse,
    FeedbackRequest,
    FeedbackResponse,
    HealthResponse,
    IngestRequest,
    IngestResponse,
    InitiativeListResponse,
    InitiativeResponse,
    MatchResponse,
    OkResponse,
    SearchRequest,
    SearchResponse,
    SignedUrlResponse,
    StatusChangeResponse,
    StatusHistoryResponse,
    StatusUpdateRequest,
    UploadResponse,
)
from initiative_rag.interfaces.attachment_storage import IAttachmentStorage
from initiative_rag.interfaces.chunk_store import IChunkStore
from initiative_rag.models.rag import ContextCandidate
from initiative_rag.services.access_policy import require_admin
from initiative_rag.services.context_assembler import ContextAssembler
from initiative_rag.services.ingestion.embedding_batcher import EmbeddingBatcher
from initiative_rag.services.ingestion.index_writer import IndexWriter
from initiative_rag.services.initiative_service import InitiativeService, UploadedFile
from initiative_rag.services.qa_service import QAService
from initiative_rag.utils.errors import ExtractionError, InputValidationError, NotFoundError
from initiative_rag.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_ERRORS: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}

_M = TypeVar("_M", bound=BaseModel)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_index_writer(request: Request) -> IndexWriter:
    """Return the index writer from application state."""
    return request.app.state.index_writer


def _get_batcher(request: Request) -> EmbeddingBatcher:
    return request.app.state.batcher


def _get_assembler(request: Request) -> ContextAssembler:
    return request.app.state.assembler


def _get_qa_service(request: Request) -> QAService:
    return request.app.state.qa_service


def _get_initiative_service(request: Request) -> InitiativeService:
    return request.app.state.initiative_service


def _get_storage(request: Request) -> IAttachmentStorage:
    return request.app.state.storage


def _get_chunk_store(request: Request) -> IChunkStore:
    return request.app.state.chunk_store


IndexWriterDep = Annotated[IndexWriter, Depends(_get_index_writer)]
BatcherDep = Annotated[EmbeddingBatcher, Depends(_get_batcher)]
AssemblerDep = Annotated[ContextAssembler, Depends(_get_assembler)]
QAServiceDep = Annotated[QAService, Depends(_get_qa_service)]
InitiativeServiceDep = Annotated[InitiativeService, Depends(_get_initiative_service)]
StorageDep = Annotated[IAttachmentStorage, Depends(_get_storage)]
ChunkStoreDep = Annotated[IChunkStore, Depends(_get_chunk_store)]


async def _parse_body(request: Request, model: type[_M]) -> _M:
    """Parse a JSON body into *model*, reporting any problem as a 400."""
    body = await request.body()
    if not body.strip():
        payload: Any = {}
    else:
        try:
            payload = await request.json()
        except ValueError as exc:
            raise InputValidationError(message="request body must be valid JSON") from exc
    if not isinstance(payload, dict):
        raise InputValidationError(message="request body must be a JSON object")
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ()))
        raise InputValidationError(message=f"{field}: {first.get('msg')}") from exc


# ---------------------------------------------------------------------------
# Ingestion and retrieval
# ---------------------------------------------------------------------------


@router.post("/ingest", response_model=IngestResponse, responses=_ERRORS)
async def ingest(
    request: Request,
    user: CurrentUserDep,
    writer: IndexWriterDep,
) -> IngestResponse:
    """Rebuild the chunks of one initiative, or of every initiative for admins."""
    body = await _parse_body(request, IngestRequest)
    if body.all:
        require_admin(user, "reindex_all")
        bulk = await writer.reindex_all()
        return IngestResponse(
            ok=True, inserted=bulk.inserted, skipped_attachments=bulk.skipped_attachments
        )

    result = await writer.reindex(body.initiative_id or "", user)
    return IngestResponse(
        ok=True, inserted=result.inserted, skipped_attachments=result.skipped_attachments
    )


@router.post("/embed", response_model=EmbedResponse, responses=_ERRORS)
async def embed(request: Request, batcher: BatcherDep) -> EmbedResponse:
    body = await _parse_body(request, EmbedRequest)
    q = (body.q or "").strip()
    if not q:
        raise InputValidationError(message="q required")
    return EmbedResponse(embedding=await batcher.embed_query(q))


@router.post("/answer", response_model=AnswerResponse, responses=_ERRORS)
async def answer(request: Request, assembler: AssemblerDep) -> AnswerResponse:
    """Answer a question strictly from the contexts supplied by the client."""
    body = await _parse_body(request, AnswerRequest)
    question = (body.question or "").strip()
    if not question:
        raise InputValidationError(message="question required")

    if body.min_similarity is not None and not math.isfinite(body.min_similarity):
        raise InputValidationError(message="min_similarity must be a finite number")

    candidates: list[ContextCandidate] = []
    for c in body.contexts:
        similarity = 0.0 if c.similarity is None else c.similarity
        if not math.isfinite(similarity):
            raise InputValidationError(message="contexts.similarity must be a finite number")
        candidates.append(
            ContextCandidate(
                initiative_id=c.initiative_id,
                content=c.content,
                similarity=min(max(similarity, 0.0), 1.0),
            )
        )
    text = await assembler.answer(question, candidates, min_similarity=body.min_similarity)
    return AnswerResponse(answer=text)


@router.post("/search", response_model=SearchResponse, responses=_ERRORS)
async def search(request: Request, qa: QAServiceDep) -> SearchResponse:
    body = await _parse_body(request, SearchRequest)
    matches = await qa.search(
        body.query or "",
        match_count=body.match_count,
        min_similarity=body.min_similarity,
    )
    return SearchResponse(matches=[MatchResponse.from_row(m) for m in matches])


@router.post("/ask", response_model=AskResponse, responses=_ERRORS)
async def ask(request: Request, qa: QAServiceDep) -> AskResponse:
    body = await _parse_body(request, AskRequest)
    result = await qa.ask(body.question or "")
    return AskResponse(
        answer=result.answer,
        found=result.found,
        matches=[MatchResponse.from_row(m) for m in result.matches],
    )


# ---------------------------------------------------------------------------
# Initiatives
# ---------------------------------------------------------------------------


@router.post("/initiatives", response_model=InitiativeResponse, status_code=201, responses=_ERRORS)
async def create_initiative(
    request: Request,
    user: CurrentUserDep,
    service: InitiativeServiceDep,
) -> InitiativeResponse:
    body = await _parse_body(request, CreateInitiativeRequest)
    initiative = await service.submit_initiative(user, body.title or "", body.description or "")
    return InitiativeResponse.from_model(initiative, attachments=[])


@router.get("/initiatives", response_model=InitiativeListResponse, responses=_ERRORS)
async def list_initiatives(
    service: InitiativeServiceDep,
    status: str | None = Query(default=None),
    author_id: str | None = Query(default=None),
) -> InitiativeListResponse:
    initiatives = await service.list_initiatives(status=status, author_id=author_id)
    return InitiativeListResponse(
        initiatives=[InitiativeResponse.from_model(i) for i in initiatives],
        total=len(initiatives),
    )


@router.get("/initiatives/{initiative_id}", response_model=InitiativeResponse, responses=_ERRORS)
async def get_initiative(initiative_id: str, service: InitiativeServiceDep) -> InitiativeResponse:
    initiative = await service.get_initiative(initiative_id)
    attachments = await service.list_attachments(initiative.id)
    return InitiativeResponse.from_model(initiative, attachments=attachments)


@router.patch(
    "/initiatives/{initiative_id}/status",
    response_model=InitiativeResponse,
    responses=_ERRORS,
)
async def change_status(
    initiative_id: str,
    request: Request,
    user: CurrentUserDep,
    service: InitiativeServiceDep,
) -> InitiativeResponse:
    body = await _parse_body(request, StatusUpdateRequest)
    if not body.status:
        raise InputValidationError(message="status required")
    initiative = await service.change_status(user, initiative_id, body.status)
    return InitiativeResponse.from_model(initiative)


@router.get(
    "/initiatives/{initiative_id}/history",
    response_model=StatusHistoryResponse,
    responses=_ERRORS,
)
async def status_history(
    initiative_id: str, service: InitiativeServiceDep
) -> StatusHistoryResponse:
    history = await service.status_history(initiative_id)
    return StatusHistoryResponse(history=[StatusChangeResponse.from_model(h) for h in history])


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------


@router.post(
    "/initiatives/{initiative_id}/attachments",
    response_model=UploadResponse,
    status_code=201,
    responses=_ERRORS,
)
async def upload_attachments(
    initiative_id: str,
    user: CurrentUserDep,
    service: InitiativeServiceDep,
    files: list[UploadFile] | None = File(default=None),
) -> UploadResponse:
    """Store up to five files against an initiative.

    Indexing is not triggered here; call ``/ingest`` afterwards.
    """
    uploaded = [
        UploadedFile(
            filename=f.filename or "file",
            data=await f.read(),
            content_type=f.content_type,
        )
        for f in files or []
    ]
    attachments = await service.upload_attachments(user, initiative_id, uploaded)
    return UploadResponse(attachments=[AttachmentResponse.from_model(a) for a in attachments])


@router.delete("/attachments/{attachment_id}", response_model=OkResponse, responses=_ERRORS)
async def delete_attachment(
    attachment_id: str,
    user: CurrentUserDep,
    service: InitiativeServiceDep,
) -> OkResponse:
    await service.delete_attachment(user, attachment_id)
    return OkResponse()


@router.get(
    "/attachments/{attachment_id}/url",
    response_model=SignedUrlResponse,
    responses=_ERRORS,
)
async def attachment_url(
    attachment_id: str,
    request: Request,
    user: CurrentUserDep,
    service: InitiativeServiceDep,
) -> SignedUrlResponse:
    url = await service.attachment_link(user, attachment_id)
    return SignedUrlResponse(url=url, expires_in=request.app.state.signed_url_ttl)


@router.get("/files/{path:path}", responses=_ERRORS)
async def download_file(
    path: str,
    storage: StorageDep,
    expires: int = Query(default=0),
    signature: str = Query(default=""),
) -> Response:
    """Serve attachment bytes to holders of a valid, unexpired signed link."""
    if not signature or not storage.verify_signature(path, expires, signature):
        _logger.warning("signed_url_rejected", path=path)
        return Response(
            content=ErrorResponse(error="Invalid or expired link").model_dump_json(),
            status_code=403,
            media_type="application/json",
        )
    try:
        data = await storage.download(path)
    except ExtractionError as exc:
        raise NotFoundError(message=f"File not found: {path}") from exc

    media_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    return Response(content=data, media_type=media_type)


# ---------------------------------------------------------------------------
# Feedback and health
# ---------------------------------------------------------------------------


@router.post("/feedback", response_model=FeedbackResponse, responses=_ERRORS)
async def submit_feedback(
    request: Request,
    user: CurrentUserDep,
    service: InitiativeServiceDep,
) -> FeedbackResponse:
    body = await _parse_body(request, FeedbackRequest)
    feedback_id = await service.submit_feedback(
        message=body.message or "",
        category=body.category,
        email=body.email,
        page=body.page,
        initiative_id=body.initiative_id,
        rating=body.rating,
        user=user,
    )
    return FeedbackResponse(ok=True, id=feedback_id)


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request, store: ChunkStoreDep) -> HealthResponse:
    """Return application health, version, and provider status."""
    providers: dict[str, Any] = dict(getattr(request.app.state, "provider_registry", {}))
    try:
        providers["chunks"] = await store.count()
        providers["chunk_store"] = store.get_provider_name()
        status = "healthy"
    except Exception as exc:  # noqa: BLE001 - health must report, not raise
        _logger.warning("health_chunk_count_failed", error=str(exc))
        providers["chunks"] = None
        status = "degraded"

    return HealthResponse(
        status=status,
        version=getattr(request.app.state, "version", "0.1.0"),
        providers=providers,
    )
