from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any, Callable, Optional
from unittest.mock import MagicMock

import pytest
from sqlalchemy.engine import Connection
from sqlalchemy.engine.interfaces import Dialect as SQLAlchemyDialect
from sqlalchemy.exc import OperationalError

MockConnectionFactory = Callable[..., "tuple[MagicMock, list[str]]"]


def rejected(sql: str) -> OperationalError:
    return OperationalError(sql, None, Exception("permission denied"))


@pytest.fixture()
def mock_connection() -> MockConnectionFactory:
    """Build a ``Connection`` mock backed by a real SQLAlchemy dialect.

    ``responses`` maps SQL fragments to the value ``scalar()`` returns; a
    callable receives the bound parameters and may raise, an iterator yields
    one value per execution, and a list is also returned by ``all()``.
    Statements containing any of the ``failing`` fragments raise
    ``OperationalError``. ``in_transaction()`` reports ``False``.

    Returns a ``(connection, executed)`` pair where ``executed`` lists every SQL
    string in order.
    """

    def factory(
        dialect: SQLAlchemyDialect,
        responses: Optional[Mapping[str, Any]] = None,
        failing: tuple[str, ...] = (),
    ) -> tuple[MagicMock, list[str]]:
        executed: list[str] = []

        def execute(statement: Any, parameters: Optional[dict[str, Any]] = None) -> MagicMock:
            sql = str(statement)
            executed.append(sql)
            if any(fragment in sql for fragment in failing):
                raise rejected(sql)
            value = None
            for fragment, response in (responses or {}).items():
                if fragment in sql:
                    if isinstance(response, Iterator):
                        value = next(response)
                    elif callable(response):
                        value = response(parameters or {})
                    else:
                        value = response
                    break
            result = MagicMock()
            result.scalar.return_value = value
            result.all.return_value = value if isinstance(value, list) else []
            return result

        connection = MagicMock(spec=Connection)
        connection.dialect = dialect
        connection.info = {}
        connection.execute.side_effect = execute
        connection.in_transaction.return_value = False
        return connection, executed

    return factory
