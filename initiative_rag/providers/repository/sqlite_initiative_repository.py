"""SQLite-backed relational store for users, initiatives, attachments,
status history, and feedback.

Uses ``aiosqlite`` for async I/O.  Foreign keys are enforced per
connection; status changes write the new status and the audit row in a
single transaction.  Any ``aiosqlite.Error`` surfaces as a retryable
:class:`RepositoryError` carrying the driver message.
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator

import aiosqlite
import structlog

from initiative_rag.interfaces.initiative_repository import IInitiativeRepository
from initiative_rag.models.initiative import (
    Attachment,
    Feedback,
    Initiative,
    InitiativeStatus,
    StatusChange,
    UserIdentity,
    UserRole,
)
from initiative_rag.utils.errors import InputValidationError, NotFoundError, RepositoryError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/initiatives.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS app_users (
    id          TEXT PRIMARY KEY,
    email       TEXT NOT NULL UNIQUE,
    role        TEXT NOT NULL DEFAULT 'user',
    created_at  TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS initiatives (
    id           TEXT PRIMARY KEY,
    author_id    TEXT NOT NULL,
    title        TEXT NOT NULL,
    description  TEXT NOT NULL DEFAULT '',
    status       TEXT NOT NULL DEFAULT 'submitted',
    created_at   TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS initiative_attachments (
    id             TEXT    PRIMARY KEY,
    initiative_id  TEXT    NOT NULL REFERENCES initiatives(id),
    path           TEXT    NOT NULL UNIQUE,
    mime_type      TEXT,
    size_bytes     INTEGER NOT NULL DEFAULT 0,
    created_at     TEXT    NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS initiative_status_history (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    initiative_id       TEXT NOT NULL REFERENCES initiatives(id),
    changed_by_user_id  TEXT NOT NULL,
    from_status         TEXT,
    to_status           TEXT NOT NULL,
    changed_at          TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS feedback (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    message        TEXT    NOT NULL,
    category       TEXT    NOT NULL DEFAULT 'other',
    email          TEXT,
    page           TEXT,
    initiative_id  TEXT,
    rating         INTEGER,
    user_id        TEXT,
    created_at     TEXT    NOT NULL
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_initiatives_status ON initiatives(status);",
    "CREATE INDEX IF NOT EXISTS idx_initiatives_author ON initiatives(author_id);",
    "CREATE INDEX IF NOT EXISTS idx_attachments_initiative ON initiative_attachments(initiative_id);",
    "CREATE INDEX IF NOT EXISTS idx_history_initiative ON initiative_status_history(initiative_id);",
]


def _now() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


def _row_to_user(row: aiosqlite.Row) -> UserIdentity:
    return UserIdentity(id=row["id"], email=row["email"], role=UserRole(row["role"]))


def _row_to_initiative(row: aiosqlite.Row) -> Initiative:
    return Initiative(
        id=row["id"],
        author_id=row["author_id"],
        title=row["title"],
        description=row["description"],
        status=InitiativeStatus(row["status"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_attachment(row: aiosqlite.Row) -> Attachment:
    return Attachment(
        id=row["id"],
        initiative_id=row["initiative_id"],
        path=row["path"],
        mime_type=row["mime_type"],
        size_bytes=row["size_bytes"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class SQLiteInitiativeRepository(IInitiativeRepository):
    """SQLite persistence for the initiative workflow."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH, busy_timeout: float = 10.0) -> None:
        self._db_path = Path(db_path)
        self._busy_timeout = busy_timeout

    async def _connect(self) -> aiosqlite.Connection:
        db = await aiosqlite.connect(str(self._db_path), timeout=self._busy_timeout)
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA foreign_keys = ON")
        return db

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        """Yield an open connection; close it and wrap driver errors on exit."""
        db: aiosqlite.Connection | None = None
        try:
            db = await self._connect()
            yield db
        except aiosqlite.Error as exc:
            logger.error("initiative_db_error", operation=operation, error=str(exc))
            raise RepositoryError(
                message=f"{operation} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        finally:
            if db is not None:
                await db.close()

    def get_provider_name(self) -> str:
        return "sqlite_repository"

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._session("initialize") as db:
            for sql in _CREATE_TABLES_SQL:
                await db.execute(sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("initiative_db_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def upsert_user(self, email: str, role: UserRole = UserRole.USER) -> UserIdentity:
        email = email.strip().lower()
        if not email:
            raise InputValidationError(message="email required")
        async with self._session("upsert_user") as db:
            await db.execute(
                "INSERT INTO app_users (id, email, role, created_at) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(email) DO UPDATE SET role = excluded.role",
                (str(uuid.uuid4()), email, role.value, _now()),
            )
            await db.commit()
            cursor = await db.execute("SELECT * FROM app_users WHERE email = ?", (email,))
            row = await cursor.fetchone()
        return _row_to_user(row)

    async def get_user(self, user_id: str) -> UserIdentity | None:
        async with self._session("get_user") as db:
            cursor = await db.execute("SELECT * FROM app_users WHERE id = ?", (user_id,))
            row = await cursor.fetchone()
        return _row_to_user(row) if row else None

    # ------------------------------------------------------------------
    # Initiatives
    # ------------------------------------------------------------------

    async def create_initiative(self, author_id: str, title: str, description: str) -> Initiative:
        initiative = Initiative(
            id=str(uuid.uuid4()),
            author_id=author_id,
            title=title,
            description=description,
        )
        async with self._session("create_initiative") as db:
            await db.execute(
                "INSERT INTO initiatives (id, author_id, title, description, status, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    initiative.id,
                    initiative.author_id,
                    initiative.title,
                    initiative.description,
                    initiative.status.value,
                    initiative.created_at.isoformat(),
                ),
            )
            await db.commit()
        logger.info("initiative_created", initiative_id=initiative.id, author_id=author_id)
        return initiative

    async def get_initiative(self, initiative_id: str) -> Initiative | None:
        async with self._session("get_initiative") as db:
            cursor = await db.execute("SELECT * FROM initiatives WHERE id = ?", (initiative_id,))
            row = await cursor.fetchone()
        return _row_to_initiative(row) if row else None

    async def list_initiatives(
        self,
        status: InitiativeStatus | None = None,
        author_id: str | None = None,
    ) -> list[Initiative]:
        clauses: list[str] = []
        params: list[str] = []
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if author_id is not None:
            clauses.append("author_id = ?")
            params.append(author_id)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""

        async with self._session("list_initiatives") as db:
            cursor = await db.execute(
                f"SELECT * FROM initiatives{where} ORDER BY created_at DESC, id", params
            )
            rows = await cursor.fetchall()
        return [_row_to_initiative(r) for r in rows]

    async def update_status(
        self,
        initiative_id: str,
        new_status: InitiativeStatus,
        changed_by: str,
    ) -> Initiative:
        async with self._session("update_status") as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                cursor = await db.execute(
                    "SELECT status FROM initiatives WHERE id = ?", (initiative_id,)
                )
                row = await cursor.fetchone()
                if row is None:
                    raise NotFoundError(message=f"Initiative not found: {initiative_id}")
                from_status = row["status"]
                if from_status == new_status.value:
                    raise InputValidationError(
                        message=f"Initiative is already {new_status.value}"
                    )
                await db.execute(
                    "UPDATE initiatives SET status = ? WHERE id = ?",
                    (new_status.value, initiative_id),
                )
                await db.execute(
                    "INSERT INTO initiative_status_history "
                    "(initiative_id, changed_by_user_id, from_status, to_status, changed_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (initiative_id, changed_by, from_status, new_status.value, _now()),
                )
                await db.commit()
            except BaseException:
                await db.rollback()
                raise
            cursor = await db.execute("SELECT * FROM initiatives WHERE id = ?", (initiative_id,))
            updated = await cursor.fetchone()

        logger.info(
            "initiative_status_changed",
            initiative_id=initiative_id,
            from_status=from_status,
            to_status=new_status.value,
            changed_by=changed_by,
        )
        return _row_to_initiative(updated)

    async def list_status_history(self, initiative_id: str) -> list[StatusChange]:
        async with self._session("list_status_history") as db:
            cursor = await db.execute(
                "SELECT * FROM initiative_status_history WHERE initiative_id = ? ORDER BY id",
                (initiative_id,),
            )
            rows = await cursor.fetchall()
        return [
            StatusChange(
                id=r["id"],
                initiative_id=r["initiative_id"],
                changed_by_user_id=r["changed_by_user_id"],
                from_status=InitiativeStatus(r["from_status"]) if r["from_status"] else None,
                to_status=InitiativeStatus(r["to_status"]),
                changed_at=datetime.fromisoformat(r["changed_at"]),
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    async def add_attachment(
        self,
        initiative_id: str,
        path: str,
        mime_type: str | None,
        size_bytes: int,
    ) -> Attachment:
        attachment = Attachment(
            id=str(uuid.uuid4()),
            initiative_id=initiative_id,
            path=path,
            mime_type=mime_type or None,
            size_bytes=size_bytes,
        )
        async with self._session("add_attachment") as db:
            try:
                await db.execute(
                    "INSERT INTO initiative_attachments "
                    "(id, initiative_id, path, mime_type, size_bytes, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        attachment.id,
                        attachment.initiative_id,
                        attachment.path,
                        attachment.mime_type,
                        attachment.size_bytes,
                        attachment.created_at.isoformat(),
                    ),
                )
                await db.commit()
            except aiosqlite.IntegrityError as exc:
                raise InputValidationError(
                    message=f"Could not record attachment {path}: {exc}"
                ) from exc
        return attachment

    async def get_attachment(self, attachment_id: str) -> Attachment | None:
        async with self._session("get_attachment") as db:
            cursor = await db.execute(
                "SELECT * FROM initiative_attachments WHERE id = ?", (attachment_id,)
            )
            row = await cursor.fetchone()
        return _row_to_attachment(row) if row else None

    async def list_attachments(self, initiative_id: str) -> list[Attachment]:
        async with self._session("list_attachments") as db:
            cursor = await db.execute(
                "SELECT * FROM initiative_attachments WHERE initiative_id = ? "
                "ORDER BY created_at, rowid",
                (initiative_id,),
            )
            rows = await cursor.fetchall()
        return [_row_to_attachment(r) for r in rows]

    async def delete_attachment(self, attachment_id: str) -> bool:
        async with self._session("delete_attachment") as db:
            cursor = await db.execute(
                "DELETE FROM initiative_attachments WHERE id = ?", (attachment_id,)
            )
            await db.commit()
            deleted = cursor.rowcount > 0
        return deleted

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    async def add_feedback(self, feedback: Feedback) -> int:
        async with self._session("add_feedback") as db:
            cursor = await db.execute(
                "INSERT INTO feedback "
                "(message, category, email, page, initiative_id, rating, user_id, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    feedback.message,
                    feedback.category.value,
                    feedback.email,
                    feedback.page,
                    feedback.initiative_id,
                    feedback.rating,
                    feedback.user_id,
                    _now(),
                ),
            )
            await db.commit()
            feedback_id = cursor.lastrowid
        logger.info("feedback_recorded", feedback_id=feedback_id, category=feedback.category.value)
        return int(feedback_id)
