#!/usr/bin/env python3
# =============================================================================
# scripts/start_worker.py - Celery Worker Entry Point
# =============================================================================
# Starts a Celery worker for webhook processing and scheduled jobs.
#
# Usage:
#   # Worker with the embedded beat scheduler (development)
#   poetry run python scripts/start_worker.py --beat
#
#   # Worker only (production runs beat as its own process)
#   poetry run python scripts/start_worker.py
#
#   # Or use Celery CLI directly
#   poetry run celery -A workers.celery_app worker -Q default,webhooks --loglevel=info
#   poetry run celery -A workers.celery_app beat --loglevel=info
#
# Prerequisites:
#   - Redis must be running (REDIS_URL)
#   - Environment variables must be set (.env file)
# =============================================================================

import argparse
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from workers.celery_app import celery_app


def main():
    """Start the Celery worker."""
    parser = argparse.ArgumentParser(description="DesignAuto Celery worker")
    parser.add_argument("--beat", action="store_true", help="Also run the periodic scheduler")
    parser.add_argument("--concurrency", type=int, default=2)
    args = parser.parse_args()

    print("=" * 60)
    print("DesignAuto Celery Worker")
    print("=" * 60)
    print()
    print("Queues: default, webhooks")
    if args.beat:
        print("Beat: expire-subscriptions, retry-failed-webhooks, recalculate-leaderboard")
    print("Press Ctrl+C to stop")
    print()

    argv = [
        "worker",
        "--loglevel=info",
        f"--concurrency={args.concurrency}",
        "-Q", "default,webhooks",
    ]
    if args.beat:
        argv.append("--beat")

    celery_app.worker_main(argv)


if __name__ == "__main__":
    main()
