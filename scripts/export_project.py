#!/usr/bin/env python
"""
Package the project archive and optionally run the build command.

Usage:
    python scripts/export_project.py --out portal-project.zip
    python scripts/export_project.py --out portal-project.zip --build

Environment:
    PROJECT_ROOT, EXPORT_FILES (comma separated), BUILD_COMMAND
"""
from __future__ import annotations

import argparse
import logging
import sys

from _storage_utils import script_config

from app.portal.errors import BuildError
from app.portal.sync import export_archive, run_build


def main() -> None:
    parser = argparse.ArgumentParser(description="Export the project archive")
    parser.add_argument("--out", default="portal-project.zip", help="Archive path")
    parser.add_argument("--build", action="store_true", help="Run BUILD_COMMAND after packaging")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = script_config()
    added = export_archive(config["PROJECT_ROOT"], config["EXPORT_FILES"], args.out)
    print(f"Wrote {args.out} ({len(added)} of {len(config['EXPORT_FILES'])} files)", flush=True)

    if args.build:
        try:
            output = run_build(config["BUILD_COMMAND"], cwd=config["PROJECT_ROOT"])
        except BuildError as e:
            print(f"Build failed: {e}", flush=True)
            if e.output:
                print(e.output, flush=True)
            sys.exit(1)
        print(output, flush=True)


if __name__ == "__main__":
    main()
