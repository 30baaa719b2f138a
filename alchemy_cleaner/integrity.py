"""Session-scoped suspension of foreign key enforcement."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from alchemy_cleaner.dialects import IntegrityToggle
from alchemy_cleaner.exceptions import CleanupError

if TYPE_CHECKING:
    from collections.abc import Generator, Sequence

    from alchemy_cleaner.strategies import StatementRunner

__all__ = ("referential_integrity_disabled",)

logger = logging.getLogger("alchemy_cleaner")


def _mysql_disable(runner: StatementRunner, tables: Sequence[str]) -> Any:
    previous = runner.scalar("SELECT @@FOREIGN_KEY_CHECKS")
    runner.execute("SET FOREIGN_KEY_CHECKS = 0")
    return previous


def _mysql_restore(runner: StatementRunner, tables: Sequence[str], previous: Any) -> None:
    runner.execute(f"SET FOREIGN_KEY_CHECKS = {1 if previous is None else int(previous)}")


def _sqlite_disable(runner: StatementRunner, tables: Sequence[str]) -> Any:
    # PRAGMA foreign_keys is a no-op inside an open transaction.
    previous = runner.scalar("PRAGMA foreign_keys")
    runner.execute("PRAGMA foreign_keys = OFF")
    if previous and runner.scalar("PRAGMA foreign_keys"):
        raise CleanupError(
            detail="PRAGMA foreign_keys cannot change while a transaction is open; commit or roll back pending work",
            statement="PRAGMA foreign_keys = OFF",
        )
    return previous


def _sqlite_restore(runner: StatementRunner, tables: Sequence[str], previous: Any) -> None:
    runner.execute(f"PRAGMA foreign_keys = {'ON' if previous else 'OFF'}")


def _sqlserver_disable(runner: StatementRunner, tables: Sequence[str]) -> Any:
    for table in tables:
        runner.execute(f"ALTER TABLE {runner.quote_table(table)} NOCHECK CONSTRAINT ALL", table)
    return None


def _sqlserver_restore(runner: StatementRunner, tables: Sequence[str], previous: Any) -> None:
    for table in tables:
        runner.execute(f"ALTER TABLE {runner.quote_table(table)} WITH CHECK CHECK CONSTRAINT ALL", table)


_ORACLE_FOREIGN_KEYS = (
    "SELECT table_name, constraint_name FROM {catalog} WHERE constraint_type = 'R' AND status = 'ENABLED'{owner}"
)


def _oracle_disable(runner: StatementRunner, tables: Sequence[str]) -> Any:
    # Oracle refuses to TRUNCATE a table referenced by an enabled foreign key, even an empty one.
    if runner.schema:
        sql = _ORACLE_FOREIGN_KEYS.format(catalog="all_constraints", owner=" AND owner = :owner")
        rows = runner.rows(sql, owner=runner.schema.upper())
    else:
        rows = runner.rows(_ORACLE_FOREIGN_KEYS.format(catalog="user_constraints", owner=""))
    constraints = [(str(table), str(name)) for table, name in rows]
    for table, name in constraints:
        runner.execute(f"ALTER TABLE {runner.quote_table(table)} DISABLE CONSTRAINT {runner.quote(name)}", table)
    return constraints


def _oracle_restore(runner: StatementRunner, tables: Sequence[str], previous: Any) -> None:
    for table, name in previous:
        runner.execute(f"ALTER TABLE {runner.quote_table(table)} ENABLE CONSTRAINT {runner.quote(name)}", table)


def _db2_alter_foreign_key(runner: StatementRunner, table: str, name: str, state: str) -> None:
    runner.execute(f"ALTER TABLE {runner.quote_table(table)} ALTER FOREIGN KEY {runner.quote(name)} {state}", table)


def _db2_disable(runner: StatementRunner, tables: Sequence[str]) -> Any:
    # TRUNCATE is rejected on the parent of an enforced referential constraint.
    schema_clause = "tabschema = :schema" if runner.schema else "tabschema = CURRENT SCHEMA"
    params = {"schema": runner.schema.upper()} if runner.schema else {}
    rows = runner.rows(
        f"SELECT tabname, constname FROM syscat.tabconst WHERE type = 'F' AND enforced = 'Y' AND {schema_clause}",
        **params,
    )
    constraints = [(str(table).strip(), str(name).strip()) for table, name in rows]
    for table, name in constraints:
        _db2_alter_foreign_key(runner, table, name, "NOT ENFORCED")
    return constraints


def _db2_restore(runner: StatementRunner, tables: Sequence[str], previous: Any) -> None:
    for table, name in previous:
        _db2_alter_foreign_key(runner, table, name, "ENFORCED")


_TOGGLES = {
    IntegrityToggle.MYSQL_FOREIGN_KEY_CHECKS: (_mysql_disable, _mysql_restore),
    IntegrityToggle.SQLITE_FOREIGN_KEYS_PRAGMA: (_sqlite_disable, _sqlite_restore),
    IntegrityToggle.SQLSERVER_NOCHECK_CONSTRAINTS: (_sqlserver_disable, _sqlserver_restore),
    IntegrityToggle.ORACLE_DISABLE_CONSTRAINTS: (_oracle_disable, _oracle_restore),
    IntegrityToggle.DB2_NOT_ENFORCED_CONSTRAINTS: (_db2_disable, _db2_restore),
}


@contextmanager
def referential_integrity_disabled(
    runner: StatementRunner,
    toggle: IntegrityToggle,
    tables: Sequence[str],
) -> Generator[None, None, None]:
    """Suspend foreign key enforcement for the duration of the block.

    Enforcement is restored on every exit path. When the block raises, a
    failure to restore is logged and the original exception propagates.

    Args:
        runner: Runner bound to the target connection.
        toggle: The dialect's integrity mechanism.
        tables: Tables whose constraints are suspended by per-table mechanisms.

    Yields:
        None
    """
    if toggle not in _TOGGLES:
        yield
        return

    disable, restore = _TOGGLES[toggle]
    previous = disable(runner, tables)
    try:
        yield
    except BaseException:
        try:
            restore(runner, tables, previous)
        except CleanupError as exc:
            logger.warning("failed to restore referential integrity after a failed cleanup: %s", exc)
        raise
    restore(runner, tables, previous)
