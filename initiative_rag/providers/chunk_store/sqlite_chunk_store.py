"""SQLite-backed DocChunk store.

Persists embedded chunks to a local SQLite database using ``aiosqlite`` for
async I/O and ``numpy`` for similarity scoring.  Vectors are stored as
little-endian float32 blobs.

Replacing an initiative's chunks runs as one ``BEGIN IMMEDIATE``
transaction: the delete and the inserts commit together or not at all, and
the write lock keeps a second writer (another process included) from
interleaving.  ``UNIQUE(initiative_id, chunk_index)`` enforces the
no-duplicate-index invariant at the schema level.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import aiosqlite
import numpy as np
import structlog

from initiative_rag.interfaces.chunk_store import IChunkStore
from initiative_rag.models.rag import DocChunk, MatchRow
from initiative_rag.utils.errors import IndexingError, RAGError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/initiatives.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS doc_chunks (
    id             TEXT    PRIMARY KEY,
    initiative_id  TEXT    NOT NULL,
    source         TEXT    NOT NULL,
    chunk_index    INTEGER NOT NULL,
    content        TEXT    NOT NULL,
    embedding      BLOB    NOT NULL,
    dimension      INTEGER NOT NULL,
    created_at     TEXT    NOT NULL,
    UNIQUE(initiative_id, chunk_index)
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_doc_chunks_initiative ON doc_chunks(initiative_id);",
]

_INSERT_SQL = """\
INSERT INTO doc_chunks
    (id, initiative_id, source, chunk_index, content, embedding, dimension, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?);
"""


def _to_blob(vector: list[float]) -> bytes:
    return np.asarray(vector, dtype="<f4").tobytes()


def _from_blob(blob: bytes) -> np.ndarray:
    return np.frombuffer(blob, dtype="<f4")


class SQLiteChunkStore(IChunkStore):
    """DocChunk persistence and brute-force cosine search over SQLite.

    Parameters
    ----------
    db_path:
        Database file; created with its parent directory on ``initialize``.
    dimension:
        Expected embedding length.  ``None`` accepts any length but still
        requires every vector in one write to agree.
    busy_timeout:
        Seconds a connection waits on another writer's lock.
    """

    def __init__(
        self,
        db_path: str | Path = _DEFAULT_DB_PATH,
        dimension: int | None = None,
        busy_timeout: float = 10.0,
    ) -> None:
        self._db_path = Path(db_path)
        self._dimension = dimension
        self._busy_timeout = busy_timeout

    def _connect(self) -> aiosqlite.Connection:
        return aiosqlite.connect(str(self._db_path), timeout=self._busy_timeout)

    async def initialize(self) -> None:
        """Create the doc_chunks table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with self._connect() as db:
                await db.execute(_CREATE_TABLE_SQL)
                for idx_sql in _CREATE_INDICES_SQL:
                    await db.execute(idx_sql)
                await db.commit()
        except aiosqlite.Error as exc:
            raise IndexingError(
                message=f"Could not create doc_chunks: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("chunk_store_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def replace_initiative_chunks(
        self, initiative_id: str, chunks: list[DocChunk]
    ) -> int:
        self._check_rows(initiative_id, chunks)
        rows = [
            (
                c.id,
                c.initiative_id,
                c.source,
                c.chunk_index,
                c.content,
                _to_blob(c.embedding),
                len(c.embedding),
                c.created_at.isoformat(),
            )
            for c in chunks
        ]

        try:
            async with self._connect() as db:
                await db.execute("BEGIN IMMEDIATE")
                try:
                    cursor = await db.execute(
                        "DELETE FROM doc_chunks WHERE initiative_id = ?", (initiative_id,)
                    )
                    deleted = cursor.rowcount
                    await db.executemany(_INSERT_SQL, rows)
                    await db.commit()
                except BaseException:
                    await db.rollback()
                    raise
        except aiosqlite.Error as exc:
            raise IndexingError(
                message=f"Could not replace chunks for initiative {initiative_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug(
            "chunks_replaced",
            initiative_id=initiative_id,
            deleted=deleted,
            inserted=len(rows),
        )
        return len(rows)

    async def delete_initiative_chunks(self, initiative_id: str) -> int:
        try:
            async with self._connect() as db:
                cursor = await db.execute(
                    "DELETE FROM doc_chunks WHERE initiative_id = ?", (initiative_id,)
                )
                await db.commit()
                return cursor.rowcount
        except aiosqlite.Error as exc:
            raise IndexingError(
                message=f"Could not delete chunks for initiative {initiative_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def purge_all(self) -> int:
        try:
            async with self._connect() as db:
                cursor = await db.execute("DELETE FROM doc_chunks")
                await db.commit()
                purged = cursor.rowcount
        except aiosqlite.Error as exc:
            raise IndexingError(
                message=f"Could not purge chunk store: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("chunk_store_purged", purged=purged)
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
        """Score every stored vector against the query and keep the best.

        Vectors of a different dimension than the query are ignored.
        Cosine similarity is clamped to [0, 1]; opposite-direction vectors
        score 0.
        """
        if match_count < 1:
            return []

        query = np.asarray(query_embedding, dtype=np.float32)
        query_norm = float(np.linalg.norm(query))
        if query_norm == 0.0:
            return []

        try:
            async with self._connect() as db:
                cursor = await db.execute(
                    "SELECT id, initiative_id, source, content, embedding FROM doc_chunks "
                    "WHERE dimension = ? ORDER BY initiative_id, chunk_index",
                    (len(query),),
                )
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise RAGError(
                message=f"Similarity query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not rows:
            return []

        matrix = np.vstack([_from_blob(row[4]) for row in rows])
        norms = np.linalg.norm(matrix, axis=1)
        norms[norms == 0.0] = np.inf
        scores = np.clip((matrix @ query) / (norms * query_norm), 0.0, 1.0)

        # Stable sort keeps storage order among equal scores.
        order = np.argsort(-scores, kind="stable")
        matches: list[MatchRow] = []
        for i in order:
            score = float(scores[i])
            if score < min_similarity:
                break
            row = rows[i]
            matches.append(
                MatchRow(
                    id=row[0],
                    initiative_id=row[1],
                    source=row[2],
                    content=row[3],
                    similarity=score,
                )
            )
            if len(matches) >= match_count:
                break
        return matches

    async def count(self, initiative_id: str | None = None) -> int:
        try:
            async with self._connect() as db:
                if initiative_id is None:
                    cursor = await db.execute("SELECT COUNT(*) FROM doc_chunks")
                else:
                    cursor = await db.execute(
                        "SELECT COUNT(*) FROM doc_chunks WHERE initiative_id = ?",
                        (initiative_id,),
                    )
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise RAGError(
                message=f"Could not count chunks: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return int(row[0]) if row else 0

    async def list_chunks(self, initiative_id: str) -> list[DocChunk]:
        try:
            async with self._connect() as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(
                    "SELECT * FROM doc_chunks WHERE initiative_id = ? ORDER BY chunk_index",
                    (initiative_id,),
                )
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise RAGError(
                message=f"Could not list chunks for initiative {initiative_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return [
            DocChunk(
                id=row["id"],
                initiative_id=row["initiative_id"],
                source=row["source"],
                chunk_index=row["chunk_index"],
                content=row["content"],
                embedding=_from_blob(row["embedding"]).tolist(),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    def get_provider_name(self) -> str:
        return "sqlite_chunk_store"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_rows(self, initiative_id: str, chunks: list[DocChunk]) -> None:
        """Reject a generation that would break the store's invariants."""
        expected = self._dimension
        seen: set[int] = set()
        for chunk in chunks:
            if chunk.initiative_id != initiative_id:
                raise IndexingError(
                    message=f"Chunk {chunk.id} belongs to {chunk.initiative_id}, not {initiative_id}",
                    provider_name=self.get_provider_name(),
                )
            if chunk.chunk_index in seen:
                raise IndexingError(
                    message=f"Duplicate chunk_index {chunk.chunk_index} for {initiative_id}",
                    provider_name=self.get_provider_name(),
                )
            seen.add(chunk.chunk_index)
            if expected is None:
                expected = len(chunk.embedding)
            elif len(chunk.embedding) != expected:
                raise IndexingError(
                    message=(
                        f"Embedding dimension mismatch: got {len(chunk.embedding)}, "
                        f"expected {expected}"
                    ),
                    provider_name=self.get_provider_name(),
                )
