"""Full-reindex writer for an initiative's DocChunk rows.

Pipeline stages: **extract -> chunk -> embed -> replace**.

For one initiative the writer:

    1. Chunks the initiative's own text (title + description) and embeds it
       as ``source='initiative'`` starting at chunk_index 0.
    2. Extracts every attachment, skipping empty results and logging and
       skipping attachments whose extraction fails.
    3. Embeds all attachment chunks in one batched call, continuing the
       chunk_index sequence so it stays contiguous per initiative.
    4. Replaces the initiative's stored rows with the new generation as one
       delete+insert unit.

The new generation is fully built before the store is touched, so an
embedding failure leaves the previous generation in place.  Every call for
a given initiative holds that initiative's lock from build to replace;
calls for different initiatives run independently.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, TypeVar

import structlog

from initiative_rag.interfaces.chunk_store import IChunkStore
from initiative_rag.interfaces.initiative_repository import IInitiativeRepository
from initiative_rag.models.initiative import Initiative, UserIdentity
from initiative_rag.models.rag import (
    SOURCE_INITIATIVE,
    BulkIndexResult,
    DocChunk,
    IndexResult,
    attachment_source,
)
from initiative_rag.services.access_policy import require_reindex_access, require_user
from initiative_rag.services.ingestion.chunker import TextChunker
from initiative_rag.services.ingestion.document_extractor import DocumentExtractor
from initiative_rag.services.ingestion.embedding_batcher import EmbeddingBatcher
from initiative_rag.utils.concurrency import KeyedLock, with_timeout
from initiative_rag.utils.errors import ExtractionError, InputValidationError, NotFoundError
from initiative_rag.utils.text_normalizer import normalize_text

_T = TypeVar("_T")

logger = structlog.get_logger(logger_name=__name__)


class _Generation:
    """The rows of one reindex pass plus its bookkeeping."""

    __slots__ = ("rows", "initiative_chunks", "attachment_chunks", "skipped")

    def __init__(self) -> None:
        self.rows: list[DocChunk] = []
        self.initiative_chunks = 0
        self.attachment_chunks = 0
        self.skipped: list[str] = []


class IndexWriter:
    """Rebuilds DocChunk rows for one initiative or for the whole store.

    All collaborators are injected so providers can be swapped (OpenAI ->
    Ollama, SQLite -> ChromaDB) and tests can substitute fakes.
    """

    def __init__(
        self,
        repository: IInitiativeRepository,
        extractor: DocumentExtractor,
        chunker: TextChunker,
        batcher: EmbeddingBatcher,
        store: IChunkStore,
        locks: KeyedLock | None = None,
        timeout_seconds: float | None = 25.0,
    ) -> None:
        self._repository = repository
        self._extractor = extractor
        self._chunker = chunker
        self._batcher = batcher
        self._store = store
        self._locks = locks or KeyedLock()
        self._timeout = timeout_seconds
        self._bulk_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def reindex(self, initiative_id: str, user: UserIdentity | None) -> IndexResult:
        """Rebuild the chunks of one initiative on behalf of *user*.

        Raises
        ------
        InputValidationError
            If *initiative_id* is empty.
        AuthenticationError
            If *user* is anonymous.
        NotFoundError
            If the initiative does not exist.
        AuthorizationError
            If *user* is neither the author nor an administrator.
        RAGError, ProviderTimeoutError, IndexingError, RepositoryError
            If a repository read, embedding or the store write fails; safe
            to retry.
        """
        initiative_id = (initiative_id or "").strip()
        if not initiative_id:
            raise InputValidationError(message="initiativeId required")
        require_user(user, "reindex")

        initiative = await self._load_initiative(initiative_id)
        require_reindex_access(user, initiative)

        async with self._locks.acquire(initiative.id):
            return await self._reindex_locked(initiative)

    async def reindex_all(self) -> BulkIndexResult:
        """Purge the whole store, then rebuild every initiative.

        Administrative operation: no per-initiative authorization.  An
        attachment whose extraction fails is logged and skipped; any other
        failure aborts the run.
        """
        start = time.monotonic()
        async with self._bulk_lock:
            purged = await with_timeout(
                self._store.purge_all(),
                self._timeout,
                provider_name=self._store.get_provider_name(),
                operation="chunk store purge",
            )
            initiatives = await self._read(
                self._repository.list_initiatives(), "list initiatives"
            )

            inserted = 0
            skipped: list[str] = []
            for initiative in initiatives:
                async with self._locks.acquire(initiative.id):
                    result = await self._reindex_locked(initiative)
                inserted += result.inserted
                skipped.extend(result.skipped_attachments)

        elapsed = round(time.monotonic() - start, 3)
        logger.info(
            "reindex_all_complete",
            purged=purged,
            inserted=inserted,
            initiatives=len(initiatives),
            skipped_attachments=len(skipped),
            elapsed_s=elapsed,
        )
        return BulkIndexResult(
            purged=purged,
            inserted=inserted,
            initiatives=len(initiatives),
            skipped_attachments=skipped,
            elapsed_seconds=elapsed,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _read(self, awaitable: Awaitable[_T], operation: str) -> _T:
        return await with_timeout(
            awaitable,
            self._timeout,
            provider_name="initiative_repository",
            operation=operation,
        )

    async def _load_initiative(self, initiative_id: str) -> Initiative:
        initiative = await self._read(
            self._repository.get_initiative(initiative_id), "load initiative"
        )
        if initiative is None:
            raise NotFoundError(message=f"Initiative not found: {initiative_id}")
        return initiative

    async def _reindex_locked(self, initiative: Initiative) -> IndexResult:
        start = time.monotonic()
        generation = await self._build_generation(initiative)

        inserted = await with_timeout(
            self._store.replace_initiative_chunks(initiative.id, generation.rows),
            self._timeout,
            provider_name=self._store.get_provider_name(),
            operation="chunk store write",
        )

        elapsed = round(time.monotonic() - start, 3)
        logger.info(
            "reindex_complete",
            initiative_id=initiative.id,
            inserted=inserted,
            initiative_chunks=generation.initiative_chunks,
            attachment_chunks=generation.attachment_chunks,
            skipped_attachments=len(generation.skipped),
            elapsed_s=elapsed,
        )
        return IndexResult(
            initiative_id=initiative.id,
            inserted=inserted,
            initiative_chunks=generation.initiative_chunks,
            attachment_chunks=generation.attachment_chunks,
            skipped_attachments=generation.skipped,
            elapsed_seconds=elapsed,
        )

    async def _build_generation(self, initiative: Initiative) -> _Generation:
        generation = _Generation()

        own_chunks = self._chunker.chunk(normalize_text(initiative.indexable_text()))
        if own_chunks:
            own_vectors = await self._batcher.embed(own_chunks)
            for index, (content, vector) in enumerate(zip(own_chunks, own_vectors)):
                generation.rows.append(
                    DocChunk(
                        initiative_id=initiative.id,
                        source=SOURCE_INITIATIVE,
                        chunk_index=index,
                        content=content,
                        embedding=vector,
                    )
                )
        generation.initiative_chunks = len(own_chunks)

        pending: list[tuple[str, str]] = []
        attachments = await self._read(
            self._repository.list_attachments(initiative.id), "list attachments"
        )
        for attachment in attachments:
            try:
                text = await self._extractor.extract(attachment.path, attachment.mime_type)
            except ExtractionError as exc:
                logger.warning(
                    "attachment_extraction_failed",
                    initiative_id=initiative.id,
                    path=attachment.path,
                    error=str(exc),
                )
                generation.skipped.append(attachment.path)
                continue
            if not text:
                continue
            source = attachment_source(attachment.path)
            pending.extend((source, chunk) for chunk in self._chunker.chunk(text))

        if pending:
            vectors = await self._batcher.embed([content for _, content in pending])
            offset = len(generation.rows)
            for position, ((source, content), vector) in enumerate(zip(pending, vectors)):
                generation.rows.append(
                    DocChunk(
                        initiative_id=initiative.id,
                        source=source,
                        chunk_index=offset + position,
                        content=content,
                        embedding=vector,
                    )
                )
        generation.attachment_chunks = len(pending)
        return generation
