"""Abstract base class for text-embedding service providers.

Defines the contract for turning text into fixed-length vectors.
Implementations wrap OpenAI ``text-embedding-3-small`` or Nomic
``nomic-embed-text`` served locally by Ollama.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAIEmbeddingProvider  -- text-embedding-3-small, 1536 dims
#   OllamaEmbeddingProvider  -- nomic-embed-text via Ollama, 768 dims
# Located in: initiative_rag/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by the retrieval pipeline.

    Callers that need bounded request sizes go through
    :class:`~initiative_rag.services.ingestion.embedding_batcher.EmbeddingBatcher`
    rather than calling :meth:`embed` with an unbounded list.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.  Each
            inner list has length equal to :meth:`get_dimension`.

        Raises
        ------
        initiative_rag.utils.errors.RAGError
            If the embedding API call fails.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Constant for the lifetime of the provider; must match the vectors
        already persisted in the chunk store.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"openai_embedding"``."""
