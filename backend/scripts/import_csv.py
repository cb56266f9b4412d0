#!/usr/bin/env python3
"""
Import daily trading record CSV files from disk.

Runs each file through the same pipeline as the upload endpoint.

Usage:
    python scripts/import_csv.py data/2023-01.csv [data/2023-02.csv ...] [--show-rejected 5]
"""

import asyncio
import os
import sys
from argparse import ArgumentParser

# Add backend to path
sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from stockdb.core.database import close_db, init_db
from stockdb.core.config import settings
from stockdb.core.exceptions import MalformedCsvError, PersistenceError
from stockdb.core.logging import get_logger, setup_logging
from stockdb.services.stock_ingestion_service import StockIngestionService
from stockdb.services.stock_record_store import StockRecordStore

setup_logging()
logger = get_logger("import_csv")


async def import_files(paths: list[str], show_rejected: int = 5) -> int:
    """Ingest each file; returns the number of files that failed."""
    if settings.DB_CREATE_ALL:
        await init_db()

    service = StockIngestionService(StockRecordStore())
    failures = 0

    try:
        for path in paths:
            if not os.path.isfile(path):
                logger.error(f"✗ {path}: no such file")
                failures += 1
                continue
            try:
                report = await service.ingest_path(path)
            except (MalformedCsvError, PersistenceError) as e:
                logger.error(f"✗ {path}: {e.message}")
                failures += 1
                continue

            logger.info(
                f"✓ {path}: {report.total} rows, {report.accepted} stored, "
                f"{report.rejected} rejected"
            )
            for rejected in report.rejected_rows[:show_rejected]:
                logger.warning(f"  row {rejected.row_number}: {rejected.reason}")
    finally:
        await close_db()

    return failures


def main():
    parser = ArgumentParser(description="Import daily trading record CSV files")
    parser.add_argument("paths", nargs="+", help="CSV files to import")
    parser.add_argument(
        "--show-rejected",
        type=int,
        default=5,
        help="Rejected rows to print per file (default: 5)"
    )
    args = parser.parse_args()

    failures = asyncio.run(import_files(args.paths, show_rejected=args.show_rejected))
    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
