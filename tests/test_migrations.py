import pytest
from sqlalchemy import inspect

from chat_api.db.migrations.runner import (
    MigrationError,
    MigrationRunner,
    split_statements,
)
from chat_api.db.session import Database


@pytest.fixture()
async def empty_database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'fresh.db'}", echo=False)
    yield db
    await db.dispose()


async def _table_names(db: Database):
    async with db.engine.connect() as conn:
        return await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())


def test_split_statements_drops_comments_and_blanks():
    script = """
    -- users table
    CREATE TABLE a (id INTEGER);

    CREATE INDEX idx_a ON a (id);
    ;
    """
    assert split_statements(script) == [
        "CREATE TABLE a (id INTEGER)",
        "CREATE INDEX idx_a ON a (id)",
    ]


def test_split_statements_handles_inline_comments_and_literals():
    script = (
        "CREATE TABLE t (id INTEGER); -- first; not a statement\n"
        "INSERT INTO t VALUES ('a;b'), ('it''s; fine');\n"
        "INSERT INTO t VALUES ('dash -- kept');"
    )
    assert split_statements(script) == [
        "CREATE TABLE t (id INTEGER)",
        "INSERT INTO t VALUES ('a;b'), ('it''s; fine')",
        "INSERT INTO t VALUES ('dash -- kept')",
    ]


async def test_run_applies_in_order_and_records(empty_database):
    runner = MigrationRunner(empty_database)
    applied = await runner.run()

    assert applied == runner.migration_files()
    assert applied == sorted(applied)
    assert await runner.executed_migrations() == applied
    tables = await _table_names(empty_database)
    assert {"users", "messages", "migrations"} <= set(tables)


async def test_second_run_is_a_noop(empty_database):
    runner = MigrationRunner(empty_database)
    await runner.run()
    assert await runner.run() == []


async def test_rollback_last_forgets_latest_record(empty_database):
    runner = MigrationRunner(empty_database)
    applied = await runner.run()

    assert await runner.rollback_last() == applied[-1]
    assert await runner.executed_migrations() == applied[:-1]


async def test_rollback_on_empty_history(empty_database):
    assert await MigrationRunner(empty_database).rollback_last() is None


async def test_failing_migration_raises_and_is_not_recorded(empty_database, tmp_path):
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    (migrations / "001_ok.sql").write_text("CREATE TABLE ok_table (id INTEGER);")
    (migrations / "002_broken.sql").write_text("CREATE TABLE broken (;")

    runner = MigrationRunner(empty_database, directory=migrations)
    with pytest.raises(MigrationError):
        await runner.run()

    assert await runner.executed_migrations() == ["001_ok.sql"]
