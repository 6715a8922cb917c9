"""Embedding provider implementations.

Embeddings turn chunk text into vectors for similarity search.  The same
provider must be used for indexing and for queries; vectors of a different
length are never compared.

Two implementations of IEmbeddingProvider:
    - OpenAIEmbeddingProvider - text-embedding-3-small (1536 dims), also
      usable against any OpenAI-compatible endpoint via OPENAI_BASE_URL.
    - OllamaEmbeddingProvider - nomic-embed-text via a local Ollama server
      (768 dims).
"""

from initiative_rag.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from initiative_rag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider", "OllamaEmbeddingProvider"]
