"""initiative-rag application entry point.

Builds every provider and service from Settings + config.yaml, stores them
on ``app.state`` for dependency injection, and wires middleware and
routes.  Run with ``uvicorn initiative_rag.main:app`` or
``python -m initiative_rag.main``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from initiative_rag.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    install_error_handlers,
)
from initiative_rag.api.routes import router as api_router
from initiative_rag.config.loader import load_config
from initiative_rag.config.settings import Settings
from initiative_rag.interfaces.chunk_store import IChunkStore
from initiative_rag.interfaces.embedding_provider import IEmbeddingProvider
from initiative_rag.interfaces.llm_provider import ILLMProvider
from initiative_rag.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from initiative_rag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from initiative_rag.providers.llm.ollama_provider import OllamaLLMProvider
from initiative_rag.providers.llm.openai_provider import OpenAILLMProvider
from initiative_rag.providers.repository.sqlite_initiative_repository import (
    SQLiteInitiativeRepository,
)
from initiative_rag.providers.storage.local_attachment_storage import LocalAttachmentStorage
from initiative_rag.services.context_assembler import ContextAssembler
from initiative_rag.services.ingestion.chunker import TextChunker
from initiative_rag.services.ingestion.document_extractor import DocumentExtractor
from initiative_rag.services.ingestion.embedding_batcher import EmbeddingBatcher
from initiative_rag.services.ingestion.index_writer import IndexWriter
from initiative_rag.services.initiative_service import InitiativeService
from initiative_rag.services.qa_service import QAService
from initiative_rag.services.retriever import Retriever
from initiative_rag.utils.concurrency import KeyedLock
from initiative_rag.utils.logging import configure_logging, get_logger
from initiative_rag.utils.signing import SessionSigner

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_llm_provider(app_settings: Settings) -> ILLMProvider:
    """OpenAI (or an OpenAI-compatible endpoint) when a key is set, else Ollama."""
    if app_settings.openai_api_key:
        return OpenAILLMProvider(settings=app_settings)
    return OllamaLLMProvider(settings=app_settings)


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """OpenAI embeddings when a key is set, else nomic-embed-text via Ollama.

    Indexing and querying must use the same provider; switching requires
    ``python -m initiative_rag.cli reindex --all``.
    """
    if app_settings.openai_api_key:
        return OpenAIEmbeddingProvider(settings=app_settings)
    return OllamaEmbeddingProvider(settings=app_settings)


def _build_chunk_store(
    app_settings: Settings, embedding_provider: IEmbeddingProvider
) -> IChunkStore:
    if app_settings.chunk_store_backend == "chromadb":
        # Deferred so the SQLite path never loads chromadb.
        from initiative_rag.providers.chunk_store.chromadb_chunk_store import (
            ChromaDBChunkStore,
        )

        return ChromaDBChunkStore(
            persist_directory=app_settings.chromadb_persist_dir,
            collection_name=app_settings.chromadb_collection,
        )

    from initiative_rag.providers.chunk_store.sqlite_chunk_store import SQLiteChunkStore

    return SQLiteChunkStore(
        db_path=app_settings.database_path,
        dimension=embedding_provider.get_dimension(),
    )


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_components(
    app_settings: Settings,
    app_config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Construct every provider and service instance.

    Returns a flat dict of named components to be stored on ``app.state``.
    Also used by the CLI so both entry points share one wiring.
    """
    cfg = app_config or load_config(settings=app_settings)
    timeout = app_settings.request_timeout_seconds

    embedding_provider = _build_embedding_provider(app_settings)
    llm = _build_llm_provider(app_settings)
    chunk_store = _build_chunk_store(app_settings, embedding_provider)
    repository = SQLiteInitiativeRepository(db_path=app_settings.database_path)
    storage = LocalAttachmentStorage(
        root_dir=Path(app_settings.attachments_dir),
        signing_secret=app_settings.signing_secret,
        public_base_url=app_settings.public_base_url,
    )

    chunker = TextChunker(
        chunk_size=cfg["chunking"]["size"],
        overlap=cfg["chunking"]["overlap"],
    )
    batcher = EmbeddingBatcher(
        embedding_provider,
        batch_size=cfg["embedding"]["batch_size"],
        timeout_seconds=timeout,
    )
    extractor = DocumentExtractor(storage, timeout_seconds=timeout)
    index_writer = IndexWriter(
        repository=repository,
        extractor=extractor,
        chunker=chunker,
        batcher=batcher,
        store=chunk_store,
        locks=KeyedLock(),
        timeout_seconds=timeout,
    )

    answer_cfg = cfg["answer"]
    assembler = ContextAssembler(
        llm,
        max_candidates=answer_cfg["max_candidates"],
        max_contexts=answer_cfg["max_contexts"],
        loose_max_contexts=answer_cfg["loose_max_contexts"],
        max_context_chars=answer_cfg["max_context_chars"],
        temperature=answer_cfg["temperature"],
        max_tokens=answer_cfg["max_tokens"],
        timeout_seconds=timeout,
    )
    retrieval_cfg = cfg["retrieval"]
    qa_service = QAService(
        batcher=batcher,
        retriever=Retriever(chunk_store, timeout_seconds=timeout),
        assembler=assembler,
        match_count=retrieval_cfg["match_count"],
        search_match_count=retrieval_cfg["search_match_count"],
        min_similarity=retrieval_cfg["min_similarity"],
    )
    initiative_service = InitiativeService(
        repository=repository,
        storage=storage,
        max_files_per_upload=cfg["attachments"]["max_files_per_upload"],
        signed_url_ttl=cfg["attachments"]["signed_url_ttl"],
    )

    provider_registry = {
        "embedding": embedding_provider.get_provider_name(),
        "embedding_dimension": embedding_provider.get_dimension(),
        "llm": llm.get_provider_name(),
        "chunk_store": chunk_store.get_provider_name(),
        "storage": storage.get_provider_name(),
    }

    return {
        "config": cfg,
        "embedding_provider": embedding_provider,
        "llm": llm,
        "chunk_store": chunk_store,
        "repository": repository,
        "storage": storage,
        "batcher": batcher,
        "index_writer": index_writer,
        "assembler": assembler,
        "qa_service": qa_service,
        "initiative_service": initiative_service,
        "session_signer": SessionSigner(
            app_settings.signing_secret,
            max_age_seconds=app_settings.session_max_age_hours * 3600,
        ),
        "signed_url_ttl": cfg["attachments"]["signed_url_ttl"],
        "provider_registry": provider_registry,
        "version": __version__,
    }


async def initialize_components(components: dict[str, Any]) -> None:
    """Create tables and check optional local services."""
    await components["repository"].initialize()
    await components["chunk_store"].initialize()

    llm = components["llm"]
    if isinstance(llm, OllamaLLMProvider) and not await llm.validate_connection():
        _logger.warning(
            "ollama_unreachable",
            base_url=settings.ollama_base_url,
            hint="answers will fail until the Ollama server is running",
        )


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup."""
    components = build_components(settings, config)
    for key, value in components.items():
        setattr(application.state, key, value)

    await initialize_components(components)

    _logger.info(
        "app_startup",
        version=__version__,
        environment=settings.app_env,
        **components["provider_registry"],
    )

    yield

    _logger.info("app_shutdown")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="initiative-rag API",
        version=__version__,
        description=(
            "Submit civic initiatives with attachments, index them for "
            "semantic retrieval, and answer questions grounded in them."
        ),
        lifespan=_lifespan,
    )

    install_error_handlers(application)

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=settings.get_cors_origins())

    application.include_router(api_router)
    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "initiative_rag.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
