"""ChromaDB-backed DocChunk store.

Wraps ``chromadb.PersistentClient`` to implement :class:`IChunkStore`.
Uses cosine distance; reported distances are converted to similarity as
``clamp(1 - distance, 0, 1)``.  Fully local, no external service.

ChromaDB has no multi-operation transactions.  Replacing an initiative's
chunks is a ``delete`` followed by an ``add``: if the add fails, the
initiative is left with no chunks.  Empty is a valid state and the next
reindex restores it; both generations never coexist.
"""

from __future__ import annotations

import os

# Disable telemetry before chromadb is imported; some versions read the
# env var at import time, the rest honour Settings(anonymized_telemetry).
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from initiative_rag.interfaces.chunk_store import IChunkStore
from initiative_rag.models.rag import DocChunk, MatchRow
from initiative_rag.utils.errors import IndexingError, RAGError

logger = structlog.get_logger(logger_name=__name__)


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Embedding function that is never called.

    Every vector is computed by the injected embedding provider and passed
    in explicitly; this stops ChromaDB from loading its default model.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError("initiative-rag passes pre-computed embeddings")

    def name(self) -> str:
        return "noop_precomputed"


def distance_to_similarity(distance: float) -> float:
    """Convert a cosine distance to a similarity in [0, 1]."""
    return max(0.0, min(1.0, 1.0 - float(distance)))


class ChromaDBChunkStore(IChunkStore):
    """DocChunk persistence backed by ChromaDB with local persistence."""

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "initiative_chunks",
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        self._collection = self._open_collection()

    def _open_collection(self):  # noqa: ANN202 - chromadb Collection type varies by version
        # Collections created by an older chromadb may reject a new
        # embedding function; reopen without one in that case.
        try:
            return self._client.get_or_create_collection(
                name=self._collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            return self._client.get_or_create_collection(
                name=self._collection_name,
                metadata={"hnsw:space": "cosine"},
            )

    async def initialize(self) -> None:
        logger.info(
            "chunk_store_initialized",
            backend="chromadb",
            path=self._persist_directory,
            collection=self._collection_name,
            chunks=self._collection.count(),
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def replace_initiative_chunks(
        self, initiative_id: str, chunks: list[DocChunk]
    ) -> int:
        try:
            self._collection.delete(where={"initiative_id": initiative_id})
            if chunks:
                self._collection.add(
                    ids=[c.id for c in chunks],
                    embeddings=[c.embedding for c in chunks],
                    documents=[c.content for c in chunks],
                    metadatas=[
                        {
                            "initiative_id": c.initiative_id,
                            "source": c.source,
                            "chunk_index": c.chunk_index,
                            "created_at": c.created_at.isoformat(),
                        }
                        for c in chunks
                    ],
                )
        except Exception as exc:  # noqa: BLE001 - chromadb raises assorted types
            logger.error(
                "chromadb_replace_failed",
                initiative_id=initiative_id,
                error=str(exc),
            )
            raise IndexingError(
                message=f"ChromaDB replace failed for initiative {initiative_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug("chunks_replaced", initiative_id=initiative_id, inserted=len(chunks))
        return len(chunks)

    async def delete_initiative_chunks(self, initiative_id: str) -> int:
        try:
            existing = self._collection.get(where={"initiative_id": initiative_id}, include=[])
            count = len(existing["ids"]) if existing and existing.get("ids") else 0
            if count:
                self._collection.delete(where={"initiative_id": initiative_id})
            return count
        except Exception as exc:  # noqa: BLE001
            raise IndexingError(
                message=f"ChromaDB delete failed for initiative {initiative_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def purge_all(self) -> int:
        try:
            purged = self._collection.count()
            self._client.delete_collection(name=self._collection_name)
            self._collection = self._open_collection()
        except Exception as exc:  # noqa: BLE001
            raise IndexingError(
                message=f"ChromaDB purge failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("chunk_store_purged", backend="chromadb", purged=purged)
        return purged

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def search(
        self,
        query_embedding: list[float],
        match_count: int,
        min_similarity: float,
    ) -> list[MatchRow]:
        if match_count < 1:
            return []
        try:
            total = self._collection.count()
            if total == 0:
                return []
            results = self._collection.query(
                query_embeddings=[query_embedding],
                n_results=min(match_count, total),
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:  # noqa: BLE001
            raise RAGError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        ids = results["ids"][0] if results.get("ids") else []
        documents = results["documents"][0] if results.get("documents") else []
        metadatas = results["metadatas"][0] if results.get("metadatas") else []
        distances = results["distances"][0] if results.get("distances") else []

        matches: list[MatchRow] = []
        for chunk_id, document, meta, distance in zip(ids, documents, metadatas, distances):
            similarity = distance_to_similarity(distance)
            if similarity < min_similarity:
                continue
            meta = meta or {}
            matches.append(
                MatchRow(
                    id=chunk_id,
                    initiative_id=str(meta.get("initiative_id", "")),
                    source=meta.get("source"),
                    content=document or "",
                    similarity=similarity,
                )
            )
        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[:match_count]

    async def count(self, initiative_id: str | None = None) -> int:
        if initiative_id is None:
            return self._collection.count()
        existing = self._collection.get(where={"initiative_id": initiative_id}, include=[])
        return len(existing["ids"]) if existing and existing.get("ids") else 0

    async def list_chunks(self, initiative_id: str) -> list[DocChunk]:
        results = self._collection.get(
            where={"initiative_id": initiative_id},
            include=["documents", "metadatas", "embeddings"],
        )
        ids = results.get("ids") or []
        documents = results.get("documents")
        metadatas = results.get("metadatas")
        embeddings = results.get("embeddings")
        if documents is None:
            documents = [""] * len(ids)
        if metadatas is None:
            metadatas = [{}] * len(ids)
        if embeddings is None:
            embeddings = [[]] * len(ids)

        chunks = [
            DocChunk(
                id=chunk_id,
                initiative_id=initiative_id,
                source=str((meta or {}).get("source", "")),
                chunk_index=int((meta or {}).get("chunk_index", 0)),
                content=document or "",
                embedding=[float(v) for v in vector],
            )
            for chunk_id, document, meta, vector in zip(ids, documents, metadatas, embeddings)
        ]
        chunks.sort(key=lambda c: c.chunk_index)
        return chunks

    def get_provider_name(self) -> str:
        return "chromadb"
