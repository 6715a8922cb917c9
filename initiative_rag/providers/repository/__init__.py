"""Relational persistence for initiatives, users, attachments, and feedback."""

from initiative_rag.providers.repository.sqlite_initiative_repository import (
    SQLiteInitiativeRepository,
)

__all__ = ["SQLiteInitiativeRepository"]
