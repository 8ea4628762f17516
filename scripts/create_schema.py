#!/usr/bin/env python
"""Create the payroll tax engine tables.

Usage:
    python scripts/create_schema.py
    python scripts/create_schema.py --database-url postgresql+asyncpg://...
    python scripts/create_schema.py --dry-run
"""

import argparse
import asyncio
import logging
import sys

from payroll_tax_engine.config import configure_logging, get_settings
from payroll_tax_engine.database import Database
from payroll_tax_engine.models import Base

logger = logging.getLogger("create_schema")


def redact(url: str) -> str:
    """Drop credentials from a database URL before printing it."""
    return url.split("@")[-1] if "@" in url else url


async def create_schema(database_url: str, echo: bool) -> None:
    db = Database(database_url, echo=echo)
    try:
        await db.create_all()
    finally:
        await db.dispose()


def main() -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Create payroll tax engine tables")
    parser.add_argument(
        "--database-url",
        default=settings.database_url,
        help="Async SQLAlchemy database URL (default: DATABASE_URL)",
    )
    parser.add_argument("--echo", action="store_true", help="Log emitted SQL")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the tables that would be created without connecting",
    )
    args = parser.parse_args()
    configure_logging()

    print("Payroll Tax Engine Schema")
    print("=" * 50)
    print(f"Database: {redact(args.database_url)}")
    print()

    tables = sorted(Base.metadata.tables)
    print(f"Tables: {len(tables)}")
    for name in tables:
        print(f"  {name}")
    print()

    if args.dry_run:
        print("[DRY RUN] Nothing created.")
        return 0

    try:
        asyncio.run(create_schema(args.database_url, args.echo))
    except Exception:
        logger.exception("Schema creation failed")
        return 1

    print("OK")
    return 0


if __name__ == "__main__":
    sys.exit(main())
