"""Clean all user data out of a database between test runs.

Usage:
    >>> with engine.connect() as connection:
    ...     DatabaseCleaner(connection).clean()

    >>> async with async_engine.connect() as connection:
    ...     await AsyncDatabaseCleaner(connection).clean(CleanupOptions(fast=True))
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Optional, Union

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from alchemy_cleaner import integrity
from alchemy_cleaner.config import CleanupOptions
from alchemy_cleaner.dialects import get_capabilities, resolve_dialect
from alchemy_cleaner.exceptions import wrap_statement_error
from alchemy_cleaner.inventory import TableInventory
from alchemy_cleaner.strategies import CleanupStats, StatementRunner, truncate_tables

if TYPE_CHECKING:
    from collections.abc import Generator, Sequence

    from alchemy_cleaner.dialects import Dialect

__all__ = (
    "DEFAULT_VERSION_TABLE_NAME",
    "AsyncDatabaseCleaner",
    "DatabaseCleaner",
    "async_clean",
    "clean",
)

logger = logging.getLogger("alchemy_cleaner")

DEFAULT_VERSION_TABLE_NAME = "alembic_version"
"""Alembic's migration bookkeeping table; never cleaned."""


class DatabaseCleaner:
    """Empties the tables reachable through one connection.

    The dialect is resolved once, when the cleaner is created. Table and view
    names are cached on the connection (see :class:`~alchemy_cleaner.inventory.TableInventory`)
    and the table set to clean is recomputed on every call.

    Args:
        connection: Connection to clean through. It is used sequentially and is never closed.
        schema: Schema to clean, ``None`` for the connection's default schema.
        version_table_name: Migration bookkeeping table that is always preserved.
        dialect: Explicit strategy family, bypassing detection.
        commit: Commit the work once the statements have run. Pass ``False`` when
            the caller manages the transaction.

    Raises:
        UnsupportedDialectError: If the connection's dialect has no registered strategy.
    """

    def __init__(
        self,
        connection: Connection,
        *,
        schema: Optional[str] = None,
        version_table_name: str = DEFAULT_VERSION_TABLE_NAME,
        dialect: Optional[Dialect] = None,
        commit: bool = True,
    ) -> None:
        self.connection = connection
        self.schema = schema
        self.version_table_name = version_table_name
        self.commit = commit
        self.dialect = resolve_dialect(connection, dialect)
        self.capabilities = get_capabilities(self.dialect)

    @property
    def inventory(self) -> TableInventory:
        return TableInventory.for_connection(self.connection, self.schema)

    def tables_to_clean(self, options: CleanupOptions) -> list[str]:
        """Resolve the tables a clean with ``options`` would target.

        Args:
            options: Filters for this run.

        Returns:
            list[str]: Table names in introspection order.
        """
        candidates = self.inventory.tables(self.connection)
        if options.only is not None:
            unknown = options.only.difference(candidates)
            if unknown:
                logger.debug("ignoring unknown tables in `only`: %s", ", ".join(sorted(unknown)))
            candidates = tuple(name for name in candidates if name in options.only)
        skip = options.exclude | self.inventory.views(self.connection) | {self.version_table_name}
        return [name for name in candidates if name not in skip]

    @contextmanager
    def referential_integrity_disabled(
        self,
        tables: Optional[Sequence[str]] = None,
        stats: Optional[CleanupStats] = None,
    ) -> Generator[StatementRunner, None, None]:
        """Suspend foreign key enforcement while the block runs.

        Args:
            tables: Tables whose constraints are suspended by per-table mechanisms;
                defaults to every table in the inventory, cleaned or not.
            stats: Statistics to record statements into.

        Yields:
            StatementRunner: A runner bound to this cleaner's connection.
        """
        if tables is None:
            tables = self.inventory.tables(self.connection)
        runner = StatementRunner(self.connection, stats or CleanupStats(dialect=self.dialect), self.schema)
        with integrity.referential_integrity_disabled(runner, self.capabilities.referential_integrity_toggle, tables):
            yield runner

    def clean(self, options: Optional[CleanupOptions] = None) -> CleanupStats:
        """Empty every selected table.

        Statements stop at the first failure. Tables emptied before it stay
        empty; foreign key enforcement is restored either way.

        With ``commit=True`` pending work on the connection is committed
        first, and no transaction is left open afterwards.

        Args:
            options: Filters and strategy switches; defaults to cleaning everything.

        Raises:
            CleanupError: If a statement fails, or if SQLite foreign keys cannot be
                switched off because the caller left a transaction open with ``commit=False``.

        Returns:
            CleanupStats: What was done.
        """
        options = options or CleanupOptions()
        stats = CleanupStats(dialect=self.dialect)
        start_time = time.perf_counter()
        try:
            tables = self.tables_to_clean(options)
            if not tables:
                logger.debug("no tables to clean")
                stats.strategy_used = "noop"
                self._commit_open_transaction()
                return stats
            self._commit_open_transaction()
            try:
                with self.referential_integrity_disabled(stats=stats) as runner:
                    try:
                        truncate_tables(
                            runner, self.capabilities, tables, fast=options.fast, reset_ids=options.reset_ids
                        )
                    except BaseException:
                        if self.commit:
                            self._commit_partial()
                        raise
                    if self.commit:
                        with wrap_statement_error("COMMIT"):
                            self.connection.commit()
            except BaseException:
                if self.commit and self.connection.in_transaction():
                    self._commit_partial()
                raise
            # restoring integrity may have begun a new transaction
            self._commit_open_transaction()
        finally:
            stats.duration_seconds = time.perf_counter() - start_time
        logger.info(
            "cleaned %d of %d table(s) on %s in %.3fs",
            len(stats.tables_cleaned),
            len(tables),
            self.dialect.value,
            stats.duration_seconds,
        )
        return stats

    def _commit_open_transaction(self) -> None:
        if self.commit and self.connection.in_transaction():
            with wrap_statement_error("COMMIT"):
                self.connection.commit()

    def _commit_partial(self) -> None:
        try:
            self.connection.commit()
        except SQLAlchemyError as exc:
            logger.warning("failed to commit partial cleanup: %s", exc)


class AsyncDatabaseCleaner:
    """Asynchronous front end for :class:`DatabaseCleaner`.

    The synchronous cleaner runs on the connection's underlying sync
    connection through :meth:`~sqlalchemy.ext.asyncio.AsyncConnection.run_sync`.

    Raises:
        UnsupportedDialectError: If the connection's dialect has no registered strategy.
    """

    def __init__(
        self,
        connection: AsyncConnection,
        *,
        schema: Optional[str] = None,
        version_table_name: str = DEFAULT_VERSION_TABLE_NAME,
        dialect: Optional[Dialect] = None,
        commit: bool = True,
    ) -> None:
        self.connection = connection
        self.schema = schema
        self.version_table_name = version_table_name
        self.commit = commit
        self.dialect = resolve_dialect(connection, dialect)

    def _sync_cleaner(self, connection: Connection) -> DatabaseCleaner:
        return DatabaseCleaner(
            connection,
            schema=self.schema,
            version_table_name=self.version_table_name,
            dialect=self.dialect,
            commit=self.commit,
        )

    async def tables_to_clean(self, options: CleanupOptions) -> list[str]:
        return await self.connection.run_sync(lambda sync_conn: self._sync_cleaner(sync_conn).tables_to_clean(options))

    async def clean(self, options: Optional[CleanupOptions] = None) -> CleanupStats:
        """Empty every selected table; see :meth:`DatabaseCleaner.clean`."""
        return await self.connection.run_sync(lambda sync_conn: self._sync_cleaner(sync_conn).clean(options))


def clean(
    bind: Union[Connection, Engine],
    options: Optional[CleanupOptions] = None,
    **kwargs: Any,
) -> CleanupStats:
    """Clean a database through a connection or an engine.

    An engine is asked for a connection that is returned to the pool afterwards.

    Args:
        bind: Connection or engine to clean through.
        options: Filters and strategy switches.
        **kwargs: Keyword arguments for :class:`DatabaseCleaner`.

    Returns:
        CleanupStats: What was done.
    """
    if isinstance(bind, Engine):
        with bind.connect() as connection:
            return DatabaseCleaner(connection, **kwargs).clean(options)
    return DatabaseCleaner(bind, **kwargs).clean(options)


async def async_clean(
    bind: Union[AsyncConnection, AsyncEngine],
    options: Optional[CleanupOptions] = None,
    **kwargs: Any,
) -> CleanupStats:
    """Async variant of :func:`clean`."""
    if isinstance(bind, AsyncEngine):
        async with bind.connect() as connection:
            return await AsyncDatabaseCleaner(connection, **kwargs).clean(options)
    return await AsyncDatabaseCleaner(bind, **kwargs).clean(options)
