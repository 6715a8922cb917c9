"""DocChunk store implementations.

SQLiteChunkStore is the default: transactional replace, numpy cosine
search.  ChromaDBChunkStore is selected with CHUNK_STORE_BACKEND=chromadb
and is imported lazily by main.py so the SQLite path never loads chromadb.
"""

from initiative_rag.providers.chunk_store.sqlite_chunk_store import SQLiteChunkStore

__all__ = ["SQLiteChunkStore"]
