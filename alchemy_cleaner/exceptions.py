from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator, Optional

from sqlalchemy.exc import SQLAlchemyError

__all__ = (
    "AlchemyCleanerError",
    "CleanupError",
    "ImproperConfigurationError",
    "UnsupportedDialectError",
    "wrap_statement_error",
)


class AlchemyCleanerError(Exception):
    """Base exception class from which all Alchemy Cleaner exceptions inherit."""

    detail: str

    def __init__(self, *args: Any, detail: str = "") -> None:
        """Initialize ``AlchemyCleanerError``.

        Args:
            *args: args are converted to :class:`str` before passing to :class:`Exception`
            detail: detail of the exception.
        """
        str_args = [str(arg) for arg in args if arg]
        if not detail:
            if str_args:
                detail, *str_args = str_args
            elif hasattr(self, "detail"):
                detail = self.detail
        self.detail = detail
        super().__init__(*str_args)

    def __repr__(self) -> str:
        if self.detail:
            return f"{self.__class__.__name__} - {self.detail}"
        return self.__class__.__name__

    def __str__(self) -> str:
        return " ".join((*self.args, self.detail)).strip()


class ImproperConfigurationError(AlchemyCleanerError):
    """Improper Configuration error.

    This exception is raised when cleanup options are malformed.

    Args:
        *args: Variable length argument list passed to parent class.
        detail: Detailed error message.
    """


class UnsupportedDialectError(AlchemyCleanerError):
    """Raised when a connection's dialect has no truncation capabilities registered.

    Args:
        dialect_name: The SQLAlchemy dialect name reported by the connection.
    """

    def __init__(self, dialect_name: str) -> None:
        self.dialect_name = dialect_name
        super().__init__(detail=f"no truncation strategy is registered for dialect {dialect_name!r}")


class CleanupError(AlchemyCleanerError):
    """A statement issued during cleanup failed.

    Args:
        *args: Variable length argument list passed to parent class.
        detail: Detailed error message.
        statement: The SQL text that failed, when known.
        table: The table the statement targeted, when known.
    """

    def __init__(
        self,
        *args: Any,
        detail: str = "",
        statement: Optional[str] = None,
        table: Optional[str] = None,
    ) -> None:
        self.statement = statement
        self.table = table
        super().__init__(*args, detail=detail)


@contextmanager
def wrap_statement_error(statement: str, table: Optional[str] = None) -> Generator[None, None, None]:
    """Raise a ``CleanupError`` chained from any ``SQLAlchemyError`` raised within the context.

        >>> try:
        ...     with wrap_statement_error("TRUNCATE TABLE t", "t"):
        ...         raise SQLAlchemyError("Original Exception")
        ... except CleanupError as exc:
        ...     print(exc.table, type(exc.__cause__).__name__)
        t SQLAlchemyError
    """
    try:
        yield
    except SQLAlchemyError as exc:
        target = f" on table {table!r}" if table is not None else ""
        raise CleanupError(
            detail=f"cleanup statement failed{target}: {statement!r}: {exc}",
            statement=statement,
            table=table,
        ) from exc
