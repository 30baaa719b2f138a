"""Tests for alchemy_cleaner.dialects."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.dialects import mssql, mysql, oracle, postgresql, sqlite
from sqlalchemy.engine.default import DefaultDialect

from alchemy_cleaner.dialects import (
    Dialect,
    IntegrityToggle,
    StatementForm,
    get_capabilities,
    resolve_dialect,
)
from alchemy_cleaner.exceptions import UnsupportedDialectError


def _connection_for(dialect: object) -> MagicMock:
    connection = MagicMock()
    connection.dialect = dialect
    return connection


@pytest.mark.parametrize(
    ("sqlalchemy_dialect", "expected"),
    [
        (mysql.dialect(), Dialect.MYSQL),
        (postgresql.dialect(), Dialect.POSTGRESQL),
        (sqlite.dialect(), Dialect.SQLITE),
        (oracle.dialect(), Dialect.ORACLE),
        (mssql.dialect(), Dialect.SQLSERVER),
    ],
)
def test_resolve_dialect_from_connection(sqlalchemy_dialect: object, expected: Dialect) -> None:
    assert resolve_dialect(_connection_for(sqlalchemy_dialect)) is expected


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("mariadb", Dialect.MYSQL),
        ("ibm_db_sa", Dialect.DB2),
        ("duckdb", Dialect.GENERIC),
        ("cockroachdb", Dialect.GENERIC),
    ],
)
def test_resolve_dialect_aliases(name: str, expected: Dialect) -> None:
    fake = MagicMock()
    fake.name = name
    assert resolve_dialect(_connection_for(fake)) is expected


def test_resolve_dialect_unknown_raises() -> None:
    with pytest.raises(UnsupportedDialectError, match="default") as exc_info:
        resolve_dialect(_connection_for(DefaultDialect()))
    assert exc_info.value.dialect_name == "default"


def test_resolve_dialect_override_skips_detection() -> None:
    assert resolve_dialect(_connection_for(DefaultDialect()), Dialect.DB2) is Dialect.DB2


def test_every_dialect_has_capabilities() -> None:
    for dialect in Dialect:
        assert get_capabilities(dialect).dialect is dialect


def test_capability_table() -> None:
    postgres = get_capabilities(Dialect.POSTGRESQL)
    assert postgres.statement_form is StatementForm.TRUNCATE_WITH_CASCADE
    assert postgres.supports_batched_truncate
    assert postgres.supports_fast_empty_check

    mysql_caps = get_capabilities(Dialect.MYSQL)
    assert mysql_caps.referential_integrity_toggle is IntegrityToggle.MYSQL_FOREIGN_KEY_CHECKS
    assert not mysql_caps.supports_batched_truncate

    sqlite_caps = get_capabilities(Dialect.SQLITE)
    assert sqlite_caps.statement_form is StatementForm.DELETE
    assert not sqlite_caps.supports_fast_empty_check

    db2 = get_capabilities(Dialect.DB2)
    assert (db2.truncate_keyword, db2.truncate_suffix) == ("TRUNCATE", "IMMEDIATE")
    assert db2.referential_integrity_toggle is IntegrityToggle.DB2_NOT_ENFORCED_CONSTRAINTS
    assert get_capabilities(Dialect.ORACLE).referential_integrity_toggle is IntegrityToggle.ORACLE_DISABLE_CONSTRAINTS

    for dialect in (Dialect.SQLSERVER, Dialect.GENERIC):
        assert get_capabilities(dialect).statement_form is StatementForm.TRUNCATE_OR_DELETE
