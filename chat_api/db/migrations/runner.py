"""
db/migrations/runner.py
-----------------------
Ordered one-shot SQL migrations.

  - Every *.sql file in this directory is a migration, applied in ascending
    filename order (hence the NNN_ prefixes).
  - Applied files are recorded by name in the `migrations` table and never
    run again.
  - A script and its tracking row share one transaction. Any failure raises
    MigrationError; the lifespan lets it propagate so the service never
    starts on a half-migrated schema.
"""

from pathlib import Path
from typing import List, Optional

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    delete,
    func,
    insert,
    select,
)
from sqlalchemy.exc import SQLAlchemyError

from chat_api.core.logging import get_logger
from chat_api.db.base import utcnow
from chat_api.db.session import Database

logger = get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent

_metadata = MetaData()

migrations_table = Table(
    "migrations",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("executed_at", DateTime, nullable=False, server_default=func.now()),
)


class MigrationError(RuntimeError):
    pass


def split_statements(script: str) -> List[str]:
    """
    Split a script into single statements; drivers reject multi-statement
    strings.

    ``--`` comments run to end of line and are dropped, inline ones
    included. A ``;`` inside a single-quoted literal ('' escapes included)
    does not end a statement. Dollar-quoted bodies and ``/* */`` comments
    are not understood, so migrations must not use them.
    """
    statements: List[str] = []
    current: List[str] = []
    in_string = in_comment = False
    i = 0
    while i < len(script):
        ch = script[i]
        if in_comment:
            if ch == "\n":
                in_comment = False
                current.append(ch)
        elif in_string:
            current.append(ch)
            if ch == "'":
                in_string = False
        elif ch == "'":
            in_string = True
            current.append(ch)
        elif script.startswith("--", i):
            in_comment = True
            i += 1
        elif ch == ";":
            statements.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1
    statements.append("".join(current))
    return [s.strip() for s in statements if s.strip()]



class MigrationRunner:

    def __init__(self, database: Database, directory: Optional[Path] = None) -> None:
        self._db = database
        self._directory = directory or MIGRATIONS_DIR

    def migration_files(self) -> List[str]:
        return sorted(p.name for p in self._directory.glob("*.sql"))

    async def _ensure_table(self) -> None:
        async with self._db.engine.begin() as conn:
            await conn.run_sync(_metadata.create_all)

    async def executed_migrations(self) -> List[str]:
        await self._ensure_table()
        async with self._db.engine.connect() as conn:
            result = await conn.execute(
                select(migrations_table.c.name).order_by(migrations_table.c.id)
            )
            return [row[0] for row in result]

    async def run(self) -> List[str]:
        """
        Apply every pending migration.

        Returns:
            Names of the files applied by this call (empty if up to date).
        """
        logger.info("Running database migrations", directory=str(self._directory))
        try:
            executed = set(await self.executed_migrations())
        except SQLAlchemyError as exc:
            raise MigrationError(f"Could not read migration history: {exc}") from exc

        applied: List[str] = []
        for filename in self.migration_files():
            if filename in executed:
                logger.debug("Skipping already executed migration", migration=filename)
                continue
            await self._execute(filename)
            applied.append(filename)

        if applied:
            logger.info("Migrations applied", count=len(applied), migrations=applied)
        else:
            logger.info("Database is up to date")
        return applied

    async def _execute(self, filename: str) -> None:
        script = (self._directory / filename).read_text(encoding="utf-8")
        logger.info("Executing migration", migration=filename)
        try:
            async with self._db.engine.begin() as conn:
                for statement in split_statements(script):
                    await conn.exec_driver_sql(statement)
                await conn.execute(
                    insert(migrations_table).values(name=filename, executed_at=utcnow())
                )
        except SQLAlchemyError as exc:
            logger.error("Migration failed", migration=filename, error=str(exc))
            raise MigrationError(f"Migration {filename} failed: {exc}") from exc

    async def rollback_last(self) -> Optional[str]:
        """
        Forget the most recently recorded migration so it runs again.
        Only the tracking row is removed; schema changes are left in place.
        """
        await self._ensure_table()
        async with self._db.engine.begin() as conn:
            result = await conn.execute(
                select(migrations_table.c.id, migrations_table.c.name)
                .order_by(migrations_table.c.id.desc())
                .limit(1)
            )
            row = result.first()
            if row is None:
                logger.info("No migrations to roll back")
                return None
            await conn.execute(delete(migrations_table).where(migrations_table.c.id == row.id))

        logger.info("Rolled back migration record", migration=row.name)
        return row.name
