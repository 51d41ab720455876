#!/usr/bin/env python3
"""One-shot purge of expired sessions and password reset tokens."""

from __future__ import annotations

import argparse
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from authcore.auth.errors import StoreError
from authcore.auth.models import utcnow
from authcore.auth.repository import Repositories, build_repositories
from authcore.core.config import AppConfig

DEFAULT_APP_ROOT = Path(__file__).resolve().parent.parent


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Delete expired sessions and reset tokens past retention from the auth store."
    )
    parser.add_argument(
        "--app-root",
        type=Path,
        default=DEFAULT_APP_ROOT,
        help="Directory that relative STORAGE_DATA_DIR paths resolve against.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Count expired records without deleting them.",
    )
    return parser.parse_args(argv)


def _count_expired(repositories: Repositories, now: datetime) -> tuple[int, int]:
    """Count expired records without mutating the stores."""
    return (
        repositories.sessions.count_expired(now),
        repositories.reset_tokens.count_expired(now),
    )


def purge_expired(repositories: Repositories, now: datetime) -> tuple[int, int]:
    """Delete expired sessions and reset tokens; return deleted counts."""
    return (
        repositories.sessions.delete_expired(now),
        repositories.reset_tokens.delete_expired(now),
    )


def main(argv: list[str] | None = None) -> int:
    """Execute purge or dry-run flow."""
    args = _parse_args(argv)
    load_dotenv()
    config = AppConfig.from_env()
    now = utcnow()

    repositories = None
    try:
        repositories = build_repositories(config.storage, app_root=args.app_root)
        if args.dry_run:
            sessions, tokens = _count_expired(repositories, now)
        else:
            sessions, tokens = purge_expired(repositories, now)
        print(f"Expired sessions: {sessions}")
        print(f"Expired reset tokens: {tokens}")
        print(f"Mode: {'dry-run' if args.dry_run else 'write'}")
        return 0
    except StoreError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        if repositories is not None:
            repositories.close()


if __name__ == "__main__":
    raise SystemExit(main())
