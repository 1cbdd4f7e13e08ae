#!/usr/bin/env python3
"""
Start a Celery worker for the challenge progress core.

By default the worker consumes both queues: "celery" (maintenance, daily sync,
baseline capture, reconcile) and "challenge_progress" (health samples). Busy
deployments run dedicated sample workers with --queue challenge_progress.

Windows has no fork(), so the solo pool is used there.

Usage:
    python scripts/run_celery_worker.py
    python scripts/run_celery_worker.py --beat
    python scripts/run_celery_worker.py --queue challenge_progress --concurrency 8
"""
import argparse
import subprocess
import sys
from typing import List

QUEUES = ["celery", "challenge_progress"]


def build_command(args: argparse.Namespace) -> List[str]:
    cmd = [
        sys.executable,
        "-m",
        "celery",
        "-A",
        "celery_worker",
        "worker",
        f"--loglevel={args.loglevel}",
        "-Q",
        ",".join(args.queue or QUEUES),
    ]
    if sys.platform == "win32":
        cmd.append("--pool=solo")
    elif args.concurrency:
        cmd.append(f"--concurrency={args.concurrency}")
    if args.beat:
        cmd.append("--beat")
    return cmd


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the challenge progress worker")
    parser.add_argument("--beat", action="store_true", help="Embed Celery beat")
    parser.add_argument(
        "--queue",
        action="append",
        choices=QUEUES,
        help="Queue to consume (repeatable, default: all)",
    )
    parser.add_argument("--concurrency", type=int, default=None)
    parser.add_argument("--loglevel", default="info")
    args = parser.parse_args()

    cmd = build_command(args)
    print(f"🚀 Starting worker: {' '.join(cmd[2:])}")
    return subprocess.call(cmd)


if __name__ == "__main__":
    sys.exit(main())
