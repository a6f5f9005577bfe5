"""
Apply thread retention to every project that has an assistant.

Usage examples:
  python scripts/cleanup_threads.py
  python scripts/cleanup_threads.py --keep 1

Notes:
 - Defaults to THREADS_TO_KEEP from app.config.settings.
 - Remote deletions that fail are logged; the local record is removed anyway.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

# Ensure we can import the app package when running as a script
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from app.config.settings import settings  # noqa: E402
from app.core.database import create_tables, session_scope  # noqa: E402
from app.core.dependencies import container  # noqa: E402
from app.repositories.implementations.sql_assistant_repository import SQLAssistantRepository  # noqa: E402


async def cleanup(keep: Optional[int]) -> int:
    with session_scope() as session:
        manager = container.assistant_manager(session)
        total = 0
        for assistant in await SQLAssistantRepository(session).get_all():
            removed = await manager.cleanup_threads(assistant.project_id, keep=keep)
            print(f"  {assistant.project_id}: removed {removed} thread(s)")
            total += removed
        return total


def main():
    parser = argparse.ArgumentParser(description="Delete old conversation threads")
    parser.add_argument(
        "--keep",
        type=int,
        default=None,
        help=f"Threads to keep per project (default {settings.threads_to_keep})",
    )
    args = parser.parse_args()
    if args.keep is not None and args.keep < 0:
        parser.error("--keep must be zero or more")

    create_tables()
    print("Cleaning up threads:")
    total = asyncio.run(cleanup(args.keep))
    print(f"Done. Removed {total} thread(s).")


if __name__ == "__main__":
    main()
