"""Per-dialect truncation strategies.

:func:`truncate_tables` is the single entry point. It reads the dialect's
:class:`~alchemy_cleaner.dialects.DialectCapabilities`, optionally narrows the
table list with the dialect's fast-path checks, and then emits the statements.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from alchemy_cleaner.dialects import Dialect, StatementForm
from alchemy_cleaner.exceptions import wrap_statement_error

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.engine import Connection

    from alchemy_cleaner.dialects import DialectCapabilities

__all__ = (
    "POSTGRES_CASCADE_VERSION",
    "POSTGRES_RESTART_IDENTITY_VERSION",
    "CleanupStats",
    "StatementRunner",
    "truncate_tables",
)

logger = logging.getLogger("alchemy_cleaner")

POSTGRES_CASCADE_VERSION = (8, 2)
POSTGRES_RESTART_IDENTITY_VERSION = (8, 4)


@dataclass
class CleanupStats:
    """Statistics from a cleanup run.

    Attributes:
        dialect: Strategy family that handled the run.
        strategy_used: ``"fast"`` or ``"plain"``, or ``"noop"`` when no table qualified.
        tables_cleaned: Tables a truncate or delete statement was issued for, in order.
        statements_executed: Number of statements sent, including pre-checks.
        fallback_used: Whether any ``TRUNCATE`` had to degrade to ``DELETE``.
        duration_seconds: Wall time of the run.
    """

    dialect: Optional[Dialect] = None
    strategy_used: str = ""
    tables_cleaned: list[str] = field(default_factory=list)
    statements_executed: int = 0
    fallback_used: bool = False
    duration_seconds: float = 0.0


class StatementRunner:
    """Sends cleanup SQL over one connection and keeps count in a :class:`CleanupStats`."""

    def __init__(self, connection: Connection, stats: CleanupStats, schema: Optional[str] = None) -> None:
        self.connection = connection
        self.stats = stats
        self.schema = schema
        self._preparer = connection.dialect.identifier_preparer

    @property
    def server_version(self) -> Optional[tuple[Any, ...]]:
        """Server version reported by the dialect, ``None`` before the first connect."""
        return getattr(self.connection.dialect, "server_version_info", None)

    def quote(self, name: str) -> str:
        """Quote an identifier for this dialect when it needs quoting."""
        return self._preparer.quote(name)

    def quote_table(self, table: str) -> str:
        """Quote a table name, qualified with the runner's schema when one is set."""
        if self.schema:
            return f"{self._preparer.quote_schema(self.schema)}.{self._preparer.quote(table)}"
        return self._preparer.quote(table)

    def execute(self, sql: str, table: Optional[str] = None, **params: Any) -> None:
        """Execute a statement; failures surface as ``CleanupError``."""
        logger.debug("executing: %s", sql)
        self.stats.statements_executed += 1
        with wrap_statement_error(sql, table):
            self.connection.execute(text(sql), params)

    def scalar(self, sql: str, table: Optional[str] = None, **params: Any) -> Any:
        """Execute a query and return the first column of its first row."""
        logger.debug("executing: %s", sql)
        self.stats.statements_executed += 1
        with wrap_statement_error(sql, table):
            return self.connection.execute(text(sql), params).scalar()

    def rows(self, sql: str, **params: Any) -> list[Any]:
        """Execute a query and return every row."""
        logger.debug("executing: %s", sql)
        self.stats.statements_executed += 1
        with wrap_statement_error(sql):
            return list(self.connection.execute(text(sql), params).all())

    def attempt(self, sql: str) -> bool:
        """Execute a statement whose failure the caller is prepared to handle.

        Returns:
            bool: ``False`` if the database rejected the statement.
        """
        logger.debug("executing: %s", sql)
        self.stats.statements_executed += 1
        try:
            self.connection.execute(text(sql))
        except DBAPIError as exc:
            logger.debug("statement rejected: %s: %s", sql, exc)
            return False
        return True

    def probe(self, sql: str, **params: Any) -> Any:
        """Fetch a scalar inside a savepoint, returning ``None`` if the query fails.

        The savepoint keeps a failed probe from aborting the surrounding
        transaction on databases such as PostgreSQL.
        """
        logger.debug("probing: %s", sql)
        self.stats.statements_executed += 1
        try:
            with self.connection.begin_nested():
                return self.connection.execute(text(sql), params).scalar()
        except DBAPIError as exc:
            logger.debug("probe failed: %s: %s", sql, exc)
            return None


# MySQL


def _mysql_has_rows(runner: StatementRunner, table: str) -> bool:
    return bool(runner.scalar(f"SELECT EXISTS(SELECT 1 FROM {runner.quote_table(table)} LIMIT 1)", table))  # noqa: S608


def _mysql_auto_increment_used(runner: StatementRunner, table: str) -> bool:
    # Heuristic: a counter above 1 means rows were inserted at some point, but
    # an explicit counter reset or stale information_schema statistics defeat it.
    params: dict[str, Any] = {"table_name": table}
    if runner.schema:
        params["schema"] = runner.schema
        schema_clause = "table_schema = :schema"
    else:
        schema_clause = "table_schema = DATABASE()"
    auto_increment = runner.scalar(
        f"SELECT auto_increment FROM information_schema.tables WHERE {schema_clause} AND table_name = :table_name",
        table,
        **params,
    )
    return auto_increment is not None and int(auto_increment) > 1


def _mysql_fast_filter(runner: StatementRunner, tables: Sequence[str], reset_ids: bool) -> list[str]:
    if not reset_ids:
        return [table for table in tables if _mysql_has_rows(runner, table)]
    return [table for table in tables if _mysql_has_rows(runner, table) or _mysql_auto_increment_used(runner, table)]


# PostgreSQL


def _postgres_has_rows(runner: StatementRunner, table: str) -> bool:
    return runner.scalar(f"SELECT 1 FROM {runner.quote_table(table)} LIMIT 1", table) is not None  # noqa: S608


def _postgres_sequence_used(runner: StatementRunner, table: str) -> bool:
    # currval() fails when the sequence was never read in this session or does
    # not exist; such tables are treated as untouched and skipped.
    current = runner.probe("SELECT currval(:sequence)", sequence=runner.quote_table(f"{table}_id_seq"))
    return current is not None and int(current) > 0


def _postgres_fast_filter(runner: StatementRunner, tables: Sequence[str], reset_ids: bool) -> list[str]:
    if reset_ids:
        return [table for table in tables if _postgres_sequence_used(runner, table)]
    return [table for table in tables if _postgres_has_rows(runner, table)]


_FAST_FILTERS: dict[Dialect, Callable[[StatementRunner, Sequence[str], bool], list[str]]] = {
    Dialect.MYSQL: _mysql_fast_filter,
    Dialect.POSTGRESQL: _postgres_fast_filter,
}


# SQLite


def _sqlite_sequence_exists(runner: StatementRunner) -> bool:
    # sqlite_sequence only exists once a table declared with AUTOINCREMENT is created.
    master = f"{runner.quote(runner.schema)}.sqlite_master" if runner.schema else "sqlite_master"
    found = runner.scalar(f"SELECT 1 FROM {master} WHERE type = 'table' AND name = 'sqlite_sequence'")  # noqa: S608
    return found is not None


def _sqlite_sequence_table(runner: StatementRunner) -> str:
    return f"{runner.quote(runner.schema)}.sqlite_sequence" if runner.schema else "sqlite_sequence"


# Statements


def _batched_truncate_sql(
    runner: StatementRunner, capabilities: DialectCapabilities, tables: Sequence[str], reset_ids: bool
) -> str:
    parts = [capabilities.truncate_keyword, ", ".join(runner.quote_table(table) for table in tables)]
    if capabilities.statement_form is StatementForm.TRUNCATE_WITH_CASCADE:
        version = runner.server_version
        restart_supported = not version or version >= POSTGRES_RESTART_IDENTITY_VERSION
        if reset_ids and capabilities.supports_identity_reset and restart_supported:
            parts.append("RESTART IDENTITY")
        if not version or version >= POSTGRES_CASCADE_VERSION:
            parts.append("CASCADE")
    if capabilities.truncate_suffix:
        parts.append(capabilities.truncate_suffix)
    return " ".join(parts)


def _truncate_sql(runner: StatementRunner, capabilities: DialectCapabilities, table: str) -> str:
    return f"{capabilities.truncate_keyword} {runner.quote_table(table)} {capabilities.truncate_suffix}".rstrip()


def _sqlserver_reseed_sql(runner: StatementRunner, table: str) -> str:
    # DELETE keeps the IDENTITY counter; tables without an identity column make CHECKIDENT fail.
    name = runner.quote_table(table).replace("'", "''")
    return (
        f"IF OBJECTPROPERTY(OBJECT_ID('{name}'), 'TableHasIdentity') = 1 "
        f"DBCC CHECKIDENT ('{name}', RESEED, 0)"
    )


def _truncate_or_delete(
    runner: StatementRunner, capabilities: DialectCapabilities, table: str, reset_ids: bool
) -> None:
    if runner.attempt(_truncate_sql(runner, capabilities, table)):
        return
    logger.debug("TRUNCATE rejected for %s, falling back to DELETE", table)
    runner.stats.fallback_used = True
    runner.execute(f"DELETE FROM {runner.quote_table(table)}", table)  # noqa: S608
    if reset_ids and capabilities.supports_identity_reset and capabilities.dialect is Dialect.SQLSERVER:
        runner.execute(_sqlserver_reseed_sql(runner, table), table)


def _delete_all(
    runner: StatementRunner, capabilities: DialectCapabilities, tables: Sequence[str], reset_ids: bool
) -> None:
    reset_sequence = reset_ids and capabilities.supports_identity_reset and _sqlite_sequence_exists(runner)
    for table in tables:
        runner.execute(f"DELETE FROM {runner.quote_table(table)}", table)  # noqa: S608
        if reset_sequence:
            sequence_table = _sqlite_sequence_table(runner)
            runner.execute(f"DELETE FROM {sequence_table} WHERE name = :name", table, name=table)  # noqa: S608
        runner.stats.tables_cleaned.append(table)


def truncate_tables(
    runner: StatementRunner,
    capabilities: DialectCapabilities,
    tables: Sequence[str],
    *,
    fast: bool = False,
    reset_ids: bool = True,
) -> list[str]:
    """Empty ``tables`` using the strategy described by ``capabilities``.

    Tables are processed in the given order. Referential integrity is expected
    to be suspended by the caller.

    Args:
        runner: Runner bound to the target connection.
        capabilities: The dialect's capability record.
        tables: Candidate tables, already filtered by the caller.
        fast: Skip tables the dialect can cheaply prove don't need emptying.
        reset_ids: Rewind identity counters where supported.

    Raises:
        CleanupError: If a statement fails, other than a ``TRUNCATE`` that may degrade to ``DELETE``.

    Returns:
        list[str]: The tables that statements were issued for.
    """
    fast_filter = _FAST_FILTERS.get(capabilities.dialect)
    if fast and (fast_filter is None or not capabilities.supports_fast_empty_check):
        logger.debug("dialect %s has no fast path, using the plain strategy", capabilities.dialect.value)
        fast = False
    runner.stats.strategy_used = "fast" if fast else "plain"

    targets = list(tables)
    if fast and fast_filter is not None:
        targets = fast_filter(runner, targets, reset_ids)
    elif capabilities.dialect is Dialect.MYSQL and not reset_ids:
        # TRUNCATE always rewinds AUTO_INCREMENT, so leave empty tables alone.
        targets = [table for table in targets if _mysql_has_rows(runner, table)]

    if len(targets) < len(tables):
        logger.debug("skipping %d table(s) that need no cleaning", len(tables) - len(targets))
    if not targets:
        return []

    form = capabilities.statement_form
    if capabilities.supports_batched_truncate:
        runner.execute(_batched_truncate_sql(runner, capabilities, targets, reset_ids))
        runner.stats.tables_cleaned.extend(targets)
    elif form is StatementForm.DELETE:
        _delete_all(runner, capabilities, targets, reset_ids)
    else:
        for table in targets:
            if form is StatementForm.TRUNCATE_OR_DELETE:
                _truncate_or_delete(runner, capabilities, table, reset_ids)
            else:
                runner.execute(_truncate_sql(runner, capabilities, table), table)
            runner.stats.tables_cleaned.append(table)
    return targets
