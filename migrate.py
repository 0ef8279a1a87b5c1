"""
migrate.py
----------
Apply pending SQL migrations from chat_api/db/migrations.
The API runs the same migrations on startup; use this for deploy-time setup.

Usage:
    python migrate.py                  # apply everything pending
    python migrate.py --rollback-last  # forget the latest migration record
"""

import argparse
import asyncio

from chat_api.core.logging import configure_logging, get_logger
from chat_api.db.migrations.runner import MigrationRunner
from chat_api.db.session import Database

logger = get_logger("migrate")


async def main(rollback_last: bool = False) -> None:
    database = Database()
    runner = MigrationRunner(database)
    try:
        if rollback_last:
            name = await runner.rollback_last()
            print(f"Rolled back: {name}" if name else "Nothing to roll back.")
        else:
            applied = await runner.run()
            print(f"Applied {len(applied)} migration(s).")
    except Exception:
        logger.error("Migration command failed", exc_info=True)
        raise
    finally:
        await database.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run database migrations")
    parser.add_argument(
        "--rollback-last",
        action="store_true",
        help="Remove the most recent migration record so it runs again",
    )
    args = parser.parse_args()
    configure_logging()
    asyncio.run(main(rollback_last=args.rollback_last))
