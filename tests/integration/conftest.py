from collections.abc import AsyncGenerator, Generator
from pathlib import Path

import pytest
from sqlalchemy import Connection, Engine, MetaData, event, insert, text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

AUTHORS = [{"name": "Ursula"}, {"name": "Octavia"}, {"name": "Iain"}]
BOOKS = [
    {"author_id": 1, "title": "The Dispossessed"},
    {"author_id": 2, "title": "Kindred"},
    {"author_id": 3, "title": "Excession"},
]
TAGS = [{"label": "classic"}, {"label": "space"}]


def populate(connection: Connection, metadata: MetaData) -> None:
    """Fill every table of the shared metadata and commit."""
    connection.execute(insert(metadata.tables["authors"]), AUTHORS)
    connection.execute(insert(metadata.tables["books"]), BOOKS)
    connection.execute(insert(metadata.tables["tags"]), TAGS)
    connection.execute(insert(metadata.tables["alembic_version"]), {"version_num": "abc123"})
    connection.commit()


@pytest.fixture()
def populated(sqlite_engine: Engine, metadata: MetaData) -> Generator[Connection, None, None]:
    """A connection to a database holding data in every table and a view over ``books``."""
    with sqlite_engine.connect() as connection:
        metadata.create_all(connection)
        connection.execute(text("CREATE VIEW book_titles AS SELECT title FROM books"))
        connection.commit()
        populate(connection, metadata)
        yield connection


@pytest.fixture()
async def async_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'async_cleaner.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _connection_record) -> None:  # type: ignore[no-untyped-def]
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    yield engine
    await engine.dispose()


@pytest.fixture()
async def async_populated(async_engine: AsyncEngine, metadata: MetaData) -> AsyncGenerator[AsyncConnection, None]:
    async with async_engine.connect() as connection:
        await connection.run_sync(metadata.create_all)
        await connection.commit()
        await connection.run_sync(populate, metadata)
        yield connection
