"""
Find remote assistants that no local record points at.

An assistant can be left behind when it was created remotely but the local
record never got saved. Only assistants named with the configured prefix and
older than the grace period are considered.

Usage examples:
  python scripts/reconcile_assistants.py
  python scripts/reconcile_assistants.py --grace-seconds 7200 --apply --yes

Notes:
 - Uses app.config.settings for DATABASE_URL and the assistant name prefix.
 - Without --apply nothing is deleted.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Ensure we can import the app package when running as a script
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from app.config.settings import settings  # noqa: E402
from app.core.database import create_tables, session_scope  # noqa: E402
from app.core.dependencies import container  # noqa: E402


async def reconcile(grace_seconds: int, apply: bool) -> None:
    with session_scope() as session:
        manager = container.assistant_manager(session)
        orphans = await manager.find_orphaned_remote_assistants(grace_seconds)
        if not orphans:
            print("No orphaned assistants found.")
            return

        print(f"Orphaned assistants ({len(orphans)}):")
        for orphan in orphans:
            print(f"  - {orphan.id}  {orphan.name}")

        if not apply:
            print("Dry run, nothing deleted. Re-run with --apply to delete them.")
            return

        removed = await manager.reconcile_orphaned_assistants(grace_seconds, apply=True)
        print(f"Deleted {len(removed)} of {len(orphans)} orphaned assistants.")


def main():
    parser = argparse.ArgumentParser(description="Reconcile remote assistants with local records")
    parser.add_argument(
        "--grace-seconds", type=int, default=3600, help="Ignore assistants younger than this"
    )
    parser.add_argument("--apply", action="store_true", help="Delete the orphaned assistants")
    parser.add_argument("--yes", action="store_true", help="Run without interactive confirmation")
    args = parser.parse_args()

    print("Reconcile plan:")
    print(f"  Name prefix: {settings.assistant_name_prefix}-")
    print(f"  Grace period: {args.grace_seconds}s")
    print(f"  Mode: {'apply' if args.apply else 'dry run'}")
    if args.apply and not args.yes:
        resp = input("Proceed? (y/N): ").strip().lower()
        if resp not in {"y", "yes"}:
            print("Aborted.")
            return

    create_tables()
    asyncio.run(reconcile(args.grace_seconds, args.apply))
    print("Done.")


if __name__ == "__main__":
    main()
