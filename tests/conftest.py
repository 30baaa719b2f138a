import logging
from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy import Column, Engine, ForeignKey, Integer, MetaData, String, Table, create_engine, event


@pytest.fixture(autouse=True, scope="session")
def configure_logging() -> None:
    """Keep SQLAlchemy quiet and let the cleaner log at debug level."""
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("alchemy_cleaner").setLevel(logging.DEBUG)


@pytest.fixture()
def metadata() -> MetaData:
    """Authors and books with AUTOINCREMENT keys, plus a plain tags table and Alembic's version table."""
    metadata = MetaData()
    Table(
        "authors",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("name", String(50), nullable=False),
        sqlite_autoincrement=True,
    )
    Table(
        "books",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("author_id", Integer, ForeignKey("authors.id"), nullable=False),
        Column("title", String(100), nullable=False),
        sqlite_autoincrement=True,
    )
    Table(
        "tags",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("label", String(50), nullable=False),
    )
    Table(
        "alembic_version",
        metadata,
        Column("version_num", String(32), primary_key=True),
    )
    return metadata


@pytest.fixture()
def sqlite_engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """File-backed SQLite engine with foreign key enforcement switched on for every connection."""
    engine = create_engine(f"sqlite:///{tmp_path / 'cleaner.db'}")

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _connection_record) -> None:  # type: ignore[no-untyped-def]
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    yield engine
    engine.dispose()
