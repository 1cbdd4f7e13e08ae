#!/usr/bin/env python3
"""
Replay a user's stored health samples through challenge progress (sync).

Use this after a bulk backfill or a data correction for one user.

Usage:
    python scripts/reconcile_user.py <user_id> <start_date> [end_date]
    python scripts/reconcile_user.py 6f1c... 2024-03-01 2024-03-10

Dates are YYYY-MM-DD; end_date defaults to start_date.
"""

import os
import sys

# Ensure fitquest is on path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Load env before importing fitquest modules
from dotenv import load_dotenv

load_dotenv()

from fitquest.services.tasks.progress_tasks import reconcile_user_progress_task


def main(argv) -> int:
    if len(argv) < 2:
        print(__doc__)
        return 2

    user_id, start_date = argv[0], argv[1]
    end_date = argv[2] if len(argv) > 2 else start_date

    print("\n" + "=" * 60)
    print(f"Reconciling challenge progress for {user_id} ({start_date} -> {end_date})")
    print("=" * 60 + "\n")

    # .apply() runs the task synchronously in the current process (no worker needed)
    result = reconcile_user_progress_task.apply(args=(user_id, start_date, end_date))
    payload = result.result if isinstance(result.result, dict) else {}

    print("\n" + "=" * 60)
    print("Result:")
    print(payload or result.result)
    print("=" * 60 + "\n")

    return 0 if payload.get("success") else 1


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
