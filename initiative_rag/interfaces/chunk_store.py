"""Abstract base class for the DocChunk store.

The chunk store is the only shared mutable resource in the pipeline.  It
persists embedded chunks per initiative and answers nearest-neighbour
queries over them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from initiative_rag.models.rag import DocChunk, MatchRow


# Concrete implementations: SQLiteChunkStore, ChromaDBChunkStore
# Located in: initiative_rag/providers/chunk_store/
class IChunkStore(ABC):
    """Contract for persisting and searching embedded chunks."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables / collections if they do not exist yet."""

    @abstractmethod
    async def replace_initiative_chunks(
        self, initiative_id: str, chunks: list[DocChunk]
    ) -> int:
        """Delete every chunk of *initiative_id*, then insert *chunks*.

        The delete and insert form one logical unit: transactional where
        the backend supports it.  Passing an empty list leaves the
        initiative with no chunks.

        Returns
        -------
        int
            Number of rows inserted.

        Raises
        ------
        initiative_rag.utils.errors.IndexingError
            If the backend rejects the delete or the insert.
        """

    @abstractmethod
    async def delete_initiative_chunks(self, initiative_id: str) -> int:
        """Delete every chunk of *initiative_id*; deleting none is not an error."""

    @abstractmethod
    async def purge_all(self) -> int:
        """Delete every chunk in the store and return how many were removed."""

    @abstractmethod
    async def search(
        self,
        query_embedding: list[float],
        match_count: int,
        min_similarity: float,
    ) -> list[MatchRow]:
        """Return up to *match_count* rows with similarity >= *min_similarity*.

        Rows are ordered by descending cosine similarity in [0, 1].  An
        empty list is a valid result, distinct from a raised
        :class:`~initiative_rag.utils.errors.RAGError`.
        """

    @abstractmethod
    async def count(self, initiative_id: str | None = None) -> int:
        """Return the number of stored chunks, optionally for one initiative."""

    @abstractmethod
    async def list_chunks(self, initiative_id: str) -> list[DocChunk]:
        """Return one initiative's chunks ordered by ``chunk_index``."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"sqlite_chunk_store"``."""
