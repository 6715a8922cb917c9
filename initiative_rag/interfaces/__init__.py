"""Public interface definitions for every external collaborator.

Business logic talks to embedding models, completion models, the chunk
store, object storage, and the relational store only through the abstract
base classes in this package.  Concrete adapters live in
``initiative_rag/providers/`` and are wired in ``initiative_rag/main.py``;
tests inject fakes in their place.
"""

from initiative_rag.interfaces.attachment_storage import IAttachmentStorage
from initiative_rag.interfaces.chunk_store import IChunkStore
from initiative_rag.interfaces.embedding_provider import IEmbeddingProvider
from initiative_rag.interfaces.initiative_repository import IInitiativeRepository
from initiative_rag.interfaces.llm_provider import ILLMProvider

__all__ = [
    "IAttachmentStorage",
    "IChunkStore",
    "IEmbeddingProvider",
    "IInitiativeRepository",
    "ILLMProvider",
]
