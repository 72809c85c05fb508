#!/usr/bin/env python3
"""
recover_scans.py

Marks scans stuck in pending / in_progress as failed. Scan workers live
inside the web process, so a restart or crash leaves their scans
non-terminal forever. Findings persisted before the interruption are kept.

Usage:
    # Dry run (lists stale scans, no changes):
    python recover_scans.py

    # Only scans started more than 2 hours ago, and apply:
    python recover_scans.py --minutes 120 --commit

Run from backend/ with the same environment as the web app.
"""

import argparse
from datetime import timedelta

from reconsuite import create_app
from reconsuite.scanner.orchestrator import fail_stale_scans, find_stale_scans


def recover(minutes=60, commit=False):
    app = create_app()
    orchestrator = app.extensions["scan_orchestrator"]
    older_than = timedelta(minutes=minutes)

    try:
        with app.app_context():
            stale = find_stale_scans(orchestrator.storage, older_than)
            if not stale:
                print(f"No scans stuck for more than {minutes} minutes.")
                return

            print(f"Found {len(stale)} stale scan(s):\n")
            for scan in stale:
                print(f"  #{scan.id:<6} {scan.status.value:<12} {scan.scan_type.value:<15} "
                      f"{scan.target[:50]:<50} started {scan.started_at:%Y-%m-%d %H:%M}")

            if commit:
                failed = fail_stale_scans(orchestrator.storage, older_than)
                print(f"\nDONE: {len(failed)} scan(s) marked failed.")
            else:
                print("\nDRY RUN: no changes made. Run with --commit to apply.")
    finally:
        orchestrator.shutdown(wait=False)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Fail scans left running by a dead worker.")
    parser.add_argument("--minutes", type=int, default=60,
                        help="only scans started at least this long ago (default 60)")
    parser.add_argument("--commit", action="store_true", help="apply the changes")
    args = parser.parse_args()
    recover(minutes=args.minutes, commit=args.commit)
