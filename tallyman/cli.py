"""Maintenance commands for a Tallyman database.

Run ``python -m tallyman.cli dedupe --database-url URL`` to collapse
duplicate pull requests and (unless ``--skip-index``) install the unique
natural-key index afterwards.
"""

from __future__ import annotations

import argparse
import asyncio
import os

from sqlalchemy.ext.asyncio import async_sessionmaker

from tallyman.logging import configure_logging
from tallyman.store.storage import (
    build_engine,
    ensure_pull_request_key_index,
    init_storage,
)
from tallyman.webhooks.cleanup import DuplicatePullRequestResolver


async def _dedupe(database_url: str, *, create_index: bool) -> int:
    engine = build_engine(database_url)
    try:
        await init_storage(engine)
        resolver = DuplicatePullRequestResolver(
            async_sessionmaker(engine, expire_on_commit=False)
        )
        deleted = await resolver.cleanup()
        if create_index:
            await ensure_pull_request_key_index(engine)
    finally:
        await engine.dispose()
    return deleted


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tallyman", description=__doc__)
    commands = parser.add_subparsers(dest="command", required=True)

    dedupe = commands.add_parser(
        "dedupe", help="Delete duplicate pull requests sharing a natural key"
    )
    dedupe.add_argument(
        "--database-url",
        default=os.environ.get("TALLYMAN_DATABASE_URL"),
        help="SQLAlchemy async URL (defaults to TALLYMAN_DATABASE_URL)",
    )
    dedupe.add_argument(
        "--skip-index",
        action="store_true",
        help="Do not create the unique natural-key index after cleanup",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run a maintenance command.

    Parameters
    ----------
    argv : list[str] | None, optional
        Command-line arguments. ``None`` defaults to ``sys.argv``.

    Returns
    -------
    int
        Exit code: 0 on success, 2 when no database URL is available.

    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.database_url:
        parser.error("--database-url or TALLYMAN_DATABASE_URL is required")

    configure_logging(os.environ.get("TALLYMAN_LOG_LEVEL"))
    deleted = asyncio.run(
        _dedupe(args.database_url, create_index=not args.skip_index)
    )
    print(f"deleted {deleted} duplicate pull request(s)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
