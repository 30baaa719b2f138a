"""Dialect detection and truncation capabilities.

Every supported database is described by a static :class:`DialectCapabilities`
record. The strategy engine never inspects the dialect directly; it reads the
record and dispatches on it.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Union

from alchemy_cleaner.exceptions import UnsupportedDialectError

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection
    from sqlalchemy.ext.asyncio import AsyncConnection

__all__ = (
    "DIALECT_ALIASES",
    "Dialect",
    "DialectCapabilities",
    "IntegrityToggle",
    "StatementForm",
    "get_capabilities",
    "resolve_dialect",
)


class Dialect(enum.Enum):
    """Database families with a dedicated truncation strategy."""

    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"
    DB2 = "db2"
    ORACLE = "oracle"
    SQLSERVER = "sqlserver"
    GENERIC = "generic"


class StatementForm(enum.Enum):
    """Shape of the statement used to empty a table."""

    TRUNCATE = "truncate"
    DELETE = "delete"
    TRUNCATE_WITH_CASCADE = "truncate_with_cascade"
    TRUNCATE_OR_DELETE = "truncate_or_delete"


class IntegrityToggle(enum.Enum):
    """Mechanism used to suspend foreign key enforcement for a session."""

    NONE = "none"
    MYSQL_FOREIGN_KEY_CHECKS = "mysql_foreign_key_checks"
    SQLITE_FOREIGN_KEYS_PRAGMA = "sqlite_foreign_keys_pragma"
    SQLSERVER_NOCHECK_CONSTRAINTS = "sqlserver_nocheck_constraints"
    ORACLE_DISABLE_CONSTRAINTS = "oracle_disable_constraints"
    DB2_NOT_ENFORCED_CONSTRAINTS = "db2_not_enforced_constraints"


@dataclass(frozen=True)
class DialectCapabilities:
    """What a dialect can do when emptying tables."""

    dialect: Dialect
    statement_form: StatementForm
    supports_batched_truncate: bool = False
    """All target tables go into a single ``TRUNCATE`` statement."""
    supports_identity_reset: bool = False
    """Emptying a table can also rewind its identity/auto-increment counter."""
    supports_fast_empty_check: bool = False
    """The dialect has a cheap pre-check that lets ``fast`` mode skip untouched tables."""
    referential_integrity_toggle: IntegrityToggle = IntegrityToggle.NONE
    truncate_keyword: str = "TRUNCATE TABLE"
    truncate_suffix: str = ""
    """Trailing keyword required by the dialect's ``TRUNCATE`` grammar."""


_CAPABILITIES: dict[Dialect, DialectCapabilities] = {
    Dialect.MYSQL: DialectCapabilities(
        dialect=Dialect.MYSQL,
        statement_form=StatementForm.TRUNCATE,
        supports_identity_reset=True,
        supports_fast_empty_check=True,
        referential_integrity_toggle=IntegrityToggle.MYSQL_FOREIGN_KEY_CHECKS,
    ),
    Dialect.POSTGRESQL: DialectCapabilities(
        dialect=Dialect.POSTGRESQL,
        statement_form=StatementForm.TRUNCATE_WITH_CASCADE,
        supports_batched_truncate=True,
        supports_identity_reset=True,
        supports_fast_empty_check=True,
    ),
    Dialect.SQLITE: DialectCapabilities(
        dialect=Dialect.SQLITE,
        statement_form=StatementForm.DELETE,
        supports_identity_reset=True,
        referential_integrity_toggle=IntegrityToggle.SQLITE_FOREIGN_KEYS_PRAGMA,
    ),
    Dialect.DB2: DialectCapabilities(
        dialect=Dialect.DB2,
        statement_form=StatementForm.TRUNCATE,
        truncate_keyword="TRUNCATE",
        truncate_suffix="IMMEDIATE",
        referential_integrity_toggle=IntegrityToggle.DB2_NOT_ENFORCED_CONSTRAINTS,
    ),
    Dialect.ORACLE: DialectCapabilities(
        dialect=Dialect.ORACLE,
        statement_form=StatementForm.TRUNCATE,
        referential_integrity_toggle=IntegrityToggle.ORACLE_DISABLE_CONSTRAINTS,
    ),
    Dialect.SQLSERVER: DialectCapabilities(
        dialect=Dialect.SQLSERVER,
        statement_form=StatementForm.TRUNCATE_OR_DELETE,
        supports_identity_reset=True,
        referential_integrity_toggle=IntegrityToggle.SQLSERVER_NOCHECK_CONSTRAINTS,
    ),
    Dialect.GENERIC: DialectCapabilities(
        dialect=Dialect.GENERIC,
        statement_form=StatementForm.TRUNCATE_OR_DELETE,
    ),
}

DIALECT_ALIASES: dict[str, Dialect] = {
    "mysql": Dialect.MYSQL,
    "mariadb": Dialect.MYSQL,
    "postgresql": Dialect.POSTGRESQL,
    "sqlite": Dialect.SQLITE,
    "ibm_db_sa": Dialect.DB2,
    "db2": Dialect.DB2,
    "oracle": Dialect.ORACLE,
    "mssql": Dialect.SQLSERVER,
    "duckdb": Dialect.GENERIC,
    "cockroachdb": Dialect.GENERIC,
}
"""SQLAlchemy dialect names mapped to the strategy family that handles them."""


def get_capabilities(dialect: Dialect) -> DialectCapabilities:
    """Return the capability record for ``dialect``.

    Args:
        dialect: The resolved dialect.

    Raises:
        UnsupportedDialectError: If no record is registered.

    Returns:
        DialectCapabilities: The static capability record.
    """
    try:
        return _CAPABILITIES[dialect]
    except KeyError as exc:
        raise UnsupportedDialectError(str(dialect)) from exc


def resolve_dialect(connection: Union[Connection, AsyncConnection], override: Optional[Dialect] = None) -> Dialect:
    """Determine the strategy family for a live connection.

    Args:
        connection: The connection to inspect.
        override: Explicit dialect that bypasses detection.

    Raises:
        UnsupportedDialectError: If the connection's dialect name is unknown.

    Returns:
        Dialect: The dialect family.
    """
    if override is not None:
        return override
    name = connection.dialect.name
    try:
        return DIALECT_ALIASES[name]
    except KeyError:
        raise UnsupportedDialectError(name) from None
