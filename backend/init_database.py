#!/usr/bin/env python3
"""
Database initialization CLI for Asset Transforms.

This script provides a command-line interface for creating the transform
tables and checking their status.
"""

import argparse
import json
import sys

import psycopg

from asset_transforms.config import settings
from asset_transforms.database import SyncDatabase
from asset_transforms.database.exceptions import SchemaOperationError
from asset_transforms.database.schema import SchemaManager
from asset_transforms.services.logger import configure_logging


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Asset Transforms Database Initialization",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                    # Create missing transform tables
  %(prog)s --status           # Check which tables exist
  %(prog)s --status --json    # Status as JSON
        """,
    )

    parser.add_argument(
        "--status",
        action="store_true",
        help="Check database status instead of initializing",
    )
    parser.add_argument("--json", action="store_true", help="Output results as JSON")
    parser.add_argument(
        "--database-url", help="Connection URL (defaults to ASSET_TRANSFORMS_DATABASE_URL)"
    )

    args = parser.parse_args(argv)
    configure_logging(settings.log_level, settings.log_file)
    manager = SchemaManager(args.database_url)

    try:
        if args.status:
            status = manager.get_database_info()
            status["pool"] = _pool_status(args.database_url)

            if args.json:
                print(json.dumps(status, indent=2, default=str))
            else:
                _print_status(status)
        else:
            manager.ensure_schema()

            if args.json:
                print(json.dumps({"success": True}))
            else:
                print("✅ Transform tables are ready")

    except SchemaOperationError as e:
        if args.json:
            print(json.dumps({"error": str(e), "success": False}))
        else:
            print(f"❌ {e}")
        return 1

    return 0


def _pool_status(database_url=None):
    """Open a pool against the database, report its health, and close it."""
    database = SyncDatabase(database_url)
    try:
        database.initialize()
    except (psycopg.Error, ConnectionError, OSError):
        return {"pool_initialized": False, "healthy": False}

    try:
        stats = database.get_pool_stats()
        stats["healthy"] = database.check_pool_health()
        return stats
    finally:
        database.close()


def _print_status(status):
    """Print human-readable status information."""
    print("📊 Database Status")
    print("=" * 18)
    print(f"Fresh database: {status['is_fresh']}")
    for table, exists in status["tables"].items():
        print(f"{table}: {'present' if exists else 'missing'}")
    pool = status.get("pool", {})
    print(f"Connection pool healthy: {pool.get('healthy', False)}")


if __name__ == "__main__":
    sys.exit(main())
