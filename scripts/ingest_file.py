#!/usr/bin/env python3
"""
Ingest a pending or dispatch order export from the command line.

    python scripts/ingest_file.py exports/outstanding.xlsx --ledger pending
    python scripts/ingest_file.py exports/dispatch.csv --ledger dispatched --batch-size 5000

Exit status is 0 on a complete run, 1 when the run stopped early (earlier
batches stay applied) and 2 when the file was rejected.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add project root to Python path
script_dir = Path(__file__).resolve().parent
project_root = script_dir.parent
sys.path.insert(0, str(project_root))

from ledger_sync.config import settings
from ledger_sync.db.init_db import create_tables
from ledger_sync.db.session import AsyncSessionLocal, engine
from ledger_sync.errors import FileDecodeError, UnsupportedFileError
from ledger_sync.logging_config import configure_logging
from ledger_sync.services.ingest_service import ingest
from ledger_sync.utils.enums.ledger import LedgerType


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Ingest an order file into the pending or history ledger")
    parser.add_argument("path", help="CSV, XLS or XLSX file")
    parser.add_argument(
        "--ledger",
        required=True,
        choices=["pending", "dispatched"],
        help="pending: outstanding orders export, dispatched: dispatch export",
    )
    parser.add_argument("--batch-size", type=int, default=None, help=f"rows per bulk write (default {settings.INGEST_BATCH_SIZE})")
    parser.add_argument("--source", default="cli", help="channel tag stored on each record")
    return parser.parse_args(argv)


async def run(args) -> int:
    if settings.DATABASE_URL.startswith("sqlite"):
        await create_tables(engine)
    try:
        async with AsyncSessionLocal() as db:
            summary = await ingest(
                db,
                args.path,
                LedgerType(args.ledger.upper()),
                batch_size=args.batch_size,
                source=args.source,
            )
    except (UnsupportedFileError, FileDecodeError) as e:
        print(f"Rejected: {e}", file=sys.stderr)
        return 2
    finally:
        await engine.dispose()

    print(json.dumps(summary.to_dict(), indent=2))
    return 0 if summary.completed else 1


if __name__ == "__main__":
    configure_logging()
    sys.exit(asyncio.run(run(parse_args())))
