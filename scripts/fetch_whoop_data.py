#!/usr/bin/env python3
"""Fetch Whoop data once and write data/all-data.json.

Entry point for an external scheduler (cron, CI workflow). Exits non-zero
on failure, after writing the error snapshot.

Usage:
    python scripts/fetch_whoop_data.py
"""

import asyncio
import sys

from whoopdash.config.logs import configure_logging
from whoopdash.config.settings import settings
from whoopdash.sync import run_sync


def main() -> int:
    configure_logging(settings.log_level, settings.log_format)
    return asyncio.run(run_sync())


if __name__ == "__main__":
    sys.exit(main())
