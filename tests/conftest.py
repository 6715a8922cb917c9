"""Shared pytest fixtures for the initiative-rag test suite."""

from __future__ import annotations

import re
from pathlib import Path

import pytest

from initiative_rag.interfaces.embedding_provider import IEmbeddingProvider
from initiative_rag.interfaces.llm_provider import ILLMProvider
from initiative_rag.models.initiative import UserIdentity, UserRole
from initiative_rag.providers.chunk_store.sqlite_chunk_store import SQLiteChunkStore
from initiative_rag.providers.repository.sqlite_initiative_repository import (
    SQLiteInitiativeRepository,
)
from initiative_rag.providers.storage.local_attachment_storage import LocalAttachmentStorage
from initiative_rag.services.context_assembler import ContextAssembler
from initiative_rag.services.ingestion.chunker import TextChunker
from initiative_rag.services.ingestion.document_extractor import DocumentExtractor
from initiative_rag.services.ingestion.embedding_batcher import EmbeddingBatcher
from initiative_rag.services.ingestion.index_writer import IndexWriter

# ---------------------------------------------------------------------------
# Deterministic fakes
# ---------------------------------------------------------------------------

VOCABULARY = (
    "park",
    "budget",
    "street",
    "school",
    "library",
    "bike",
    "tree",
    "water",
    "light",
    "road",
    "playground",
    "bench",
)

_TOKEN = re.compile(r"\w+")


class KeywordEmbeddingProvider(IEmbeddingProvider):
    """Bag-of-words over a fixed vocabulary.

    Texts sharing vocabulary words get a positive cosine similarity; texts
    with no vocabulary words map to the zero vector.  Every call is recorded.
    """

    def __init__(self, vocabulary: tuple[str, ...] = VOCABULARY) -> None:
        self._vocabulary = vocabulary
        self.calls: list[list[str]] = []

    def vector(self, text: str) -> list[float]:
        tokens = [t.lower() for t in _TOKEN.findall(text)]
        return [float(tokens.count(word)) for word in self._vocabulary]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self.vector(t) for t in texts]

    def get_dimension(self) -> int:
        return len(self._vocabulary)

    def get_provider_name(self) -> str:
        return "keyword_fake"


class RecordingLLM(ILLMProvider):
    """Echoes the first citation marker it was shown and records every call."""

    def __init__(self, reply: str | None = None) -> None:
        self._reply = reply
        self.calls: list[dict[str, object]] = []

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 800,
    ) -> str:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if self._reply is not None:
            return self._reply
        marker = re.search(r"\[#\d+\]", user_prompt)
        if marker is None:
            return ""
        return f"The proposal covers this {marker.group(0)}."

    def get_provider_name(self) -> str:
        return "recording_fake"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def embedder() -> KeywordEmbeddingProvider:
    return KeywordEmbeddingProvider()


@pytest.fixture
def llm() -> RecordingLLM:
    return RecordingLLM()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "initiatives.db"


@pytest.fixture
async def repository(db_path: Path) -> SQLiteInitiativeRepository:
    repo = SQLiteInitiativeRepository(db_path=db_path)
    await repo.initialize()
    return repo


@pytest.fixture
async def chunk_store(db_path: Path) -> SQLiteChunkStore:
    store = SQLiteChunkStore(db_path=db_path, dimension=len(VOCABULARY))
    await store.initialize()
    return store


@pytest.fixture
def storage(tmp_path: Path) -> LocalAttachmentStorage:
    return LocalAttachmentStorage(
        root_dir=tmp_path / "attachments",
        signing_secret="test-secret",
        public_base_url="http://testserver",
    )


@pytest.fixture
def batcher(embedder: KeywordEmbeddingProvider) -> EmbeddingBatcher:
    return EmbeddingBatcher(embedder, batch_size=64)


@pytest.fixture
def index_writer(
    repository: SQLiteInitiativeRepository,
    chunk_store: SQLiteChunkStore,
    storage: LocalAttachmentStorage,
    batcher: EmbeddingBatcher,
) -> IndexWriter:
    return IndexWriter(
        repository=repository,
        extractor=DocumentExtractor(storage),
        chunker=TextChunker(chunk_size=200, overlap=40),
        batcher=batcher,
        store=chunk_store,
    )


@pytest.fixture
def assembler(llm: RecordingLLM) -> ContextAssembler:
    return ContextAssembler(llm)


@pytest.fixture
async def author(repository: SQLiteInitiativeRepository) -> UserIdentity:
    return await repository.upsert_user("author@example.org")


@pytest.fixture
async def admin(repository: SQLiteInitiativeRepository) -> UserIdentity:
    return await repository.upsert_user("admin@example.org", UserRole.ADMIN)


@pytest.fixture
async def stranger(repository: SQLiteInitiativeRepository) -> UserIdentity:
    return await repository.upsert_user("stranger@example.org")
