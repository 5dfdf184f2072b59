#!/usr/bin/env python3
"""Run one notification sweep (or one user's evaluation) and print the counts.

Usage:
    python scripts/run_sweep.py            # every user with pending work
    python scripts/run_sweep.py USER_ID    # a single user

Exit 0 on success, 1 if any user's evaluation failed.
"""
import asyncio
import logging
import sys
from pathlib import Path

# Ensure the backend package is on path when run as script
_backend = Path(__file__).resolve().parent.parent
if str(_backend) not in sys.path:
    sys.path.insert(0, str(_backend))

from pillar.infra.db import base as db_base
from pillar.infra.db.models import TaskModel  # noqa: F401
from pillar.services.notification_service import NotificationRunner


async def run(user_id: str | None) -> int:
    runner = NotificationRunner(db_base.AsyncSessionLocal)
    try:
        if user_id:
            result = await runner.run_for_user(user_id)
            print(f"User {user_id}: {result.reminders} reminders, {result.overdue} overdue, "
                  f"{result.daily_summaries} daily summaries, {result.anomalies} skipped")
            if result.timed_out:
                print("  (timed out; counts are partial)")
            return 0

        sweep = await runner.run_sweep()
        print(f"Swept {sweep.users} users: {sweep.reminders} reminders, {sweep.overdue} overdue, "
              f"{sweep.daily_summaries} daily summaries")
        if sweep.timed_out_users:
            print(f"  Timed out: {', '.join(sweep.timed_out_users)}")
        if sweep.failed_users:
            print(f"  Failed: {', '.join(sweep.failed_users)}")
            return 1
        return 0
    finally:
        await db_base.engine.dispose()


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    return asyncio.run(run(sys.argv[1] if len(sys.argv) > 1 else None))


if __name__ == "__main__":
    sys.exit(main())
