#!/usr/bin/env python
"""
Mirror every collection to a folder (e.g. a network share).

Usage:
    # One-shot sync to SYNC_PATH (or --path)
    python scripts/sync_data.py --path /mnt/share/portal

    # Keep syncing every N minutes until interrupted
    python scripts/sync_data.py --path /mnt/share/portal --every 5

Environment:
    STORAGE_BACKEND, DATA_DIR / DATABASE_URL / S3_*: where the collections live
    SYNC_PATH: default destination
"""
from __future__ import annotations

import argparse
import logging
import sys
import time

from _storage_utils import script_config, script_storage

from app.portal.sync import SyncBridge, SyncScheduler


def main() -> None:
    parser = argparse.ArgumentParser(description="Sync collections to a folder")
    parser.add_argument("--path", help="Destination folder (default: SYNC_PATH)")
    parser.add_argument("--every", type=int, default=0, help="Repeat every N minutes (0 = once)")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = script_config()
    dest = (args.path or config.get("SYNC_PATH") or "").strip()
    if not dest:
        print("ERROR: no destination. Pass --path or set SYNC_PATH.", flush=True)
        sys.exit(1)

    bridge = SyncBridge(script_storage(config))
    written = bridge.run(dest)
    print(f"Synced {len(written)} collection(s) to {dest}", flush=True)
    if args.every <= 0:
        return

    scheduler = SyncScheduler(args.every * 60, lambda: bridge.run(dest))
    scheduler.start()
    print(f"Syncing every {args.every} minute(s); Ctrl+C to stop.", flush=True)
    try:
        while scheduler.running:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.cancel()


if __name__ == "__main__":
    main()
