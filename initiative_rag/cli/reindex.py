"""Standalone CLI for maintaining the DocChunk index.

Usage::

    python -m initiative_rag.cli reindex --initiative 6f1c...
    python -m initiative_rag.cli reindex --all
    python -m initiative_rag.cli stats
    python -m initiative_rag.cli token --email admin@example.org --admin

Commands run with the administrative system identity, so the author /
admin check that guards the HTTP ingest endpoint does not apply here.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any

from initiative_rag.models.initiative import UserIdentity, UserRole
from initiative_rag.utils.errors import InitiativeRAGError


def _load_components() -> dict[str, Any]:
    """Build the same component graph the API server uses.

    Deferred import: pulling in ``initiative_rag.main`` configures logging
    and reads Settings, which ``--help`` should not need.
    """
    from initiative_rag.main import build_components, settings

    return build_components(settings)


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_reindex(args: argparse.Namespace, components: dict[str, Any]) -> int:
    writer = components["index_writer"]

    if args.all:
        result = await writer.reindex_all()
        print("Reindexed all initiatives")
        print("=" * 40)
        print(f"  Purged chunks:    {result.purged}")
        print(f"  Initiatives:      {result.initiatives}")
        print(f"  Inserted chunks:  {result.inserted}")
        print(f"  Elapsed:          {result.elapsed_seconds:.2f}s")
        for path in result.skipped_attachments:
            print(f"  Skipped:          {path}")
        return 0

    result = await writer.reindex(args.initiative, UserIdentity.system())
    print(f"Reindexed initiative {result.initiative_id}")
    print(f"  Initiative chunks: {result.initiative_chunks}")
    print(f"  Attachment chunks: {result.attachment_chunks}")
    print(f"  Inserted:          {result.inserted}")
    for path in result.skipped_attachments:
        print(f"  Skipped:           {path}")
    return 0


async def _handle_stats(components: dict[str, Any]) -> int:
    store = components["chunk_store"]
    repository = components["repository"]

    total = await store.count()
    initiatives = await repository.list_initiatives()

    print("Chunk Store Statistics")
    print("=" * 40)
    print(f"  Backend:          {store.get_provider_name()}")
    print(f"  Total chunks:     {total}")
    print(f"  Initiatives:      {len(initiatives)}")

    if initiatives:
        print("\n  Chunks by initiative:")
        for initiative in initiatives:
            count = await store.count(initiative.id)
            print(f"    {initiative.id}  {count:>5}  {initiative.title[:40]}")
    return 0


async def _handle_token(args: argparse.Namespace, components: dict[str, Any]) -> int:
    role = UserRole.ADMIN if args.admin else UserRole.USER
    user = await components["repository"].upsert_user(args.email, role)
    token = components["session_signer"].issue(user.id)
    print(f"User:  {user.email} ({user.role.value}, id={user.id})")
    print(f"Token: {token}")
    return 0


async def _run(args: argparse.Namespace, components: dict[str, Any]) -> int:
    await components["repository"].initialize()
    await components["chunk_store"].initialize()

    if args.command == "reindex":
        return await _handle_reindex(args, components)
    if args.command == "stats":
        return await _handle_stats(components)
    if args.command == "token":
        return await _handle_token(args, components)
    return 1


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m initiative_rag.cli",
        description="Maintain the initiative-rag chunk index.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- reindex --
    reindex_parser = subparsers.add_parser("reindex", help="Rebuild DocChunk rows")
    target = reindex_parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--initiative", help="Initiative id to rebuild")
    target.add_argument(
        "--all", action="store_true", help="Purge the store and rebuild every initiative"
    )

    # -- stats --
    subparsers.add_parser("stats", help="Show chunk counts")

    # -- token --
    token_parser = subparsers.add_parser("token", help="Issue a session token for a user")
    token_parser.add_argument("--email", required=True, help="User e-mail (created if new)")
    token_parser.add_argument("--admin", action="store_true", help="Grant the admin role")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the command, and return the process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    components = _load_components()
    try:
        return asyncio.run(_run(args, components))
    except InitiativeRAGError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
