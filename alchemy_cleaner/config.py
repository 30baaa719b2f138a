"""Configuration for a single cleanup run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from alchemy_cleaner.exceptions import ImproperConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy import MetaData

__all__ = ("CleanupOptions",)


def _to_names(value: Iterable[str], option: str) -> frozenset[str]:
    if isinstance(value, (str, bytes)):
        msg = f"`{option}` expects a collection of table names, got the string {value!r}"
        raise ImproperConfigurationError(detail=msg)
    return frozenset(value)


@dataclass(frozen=True)
class CleanupOptions:
    """Options for one invocation of :meth:`~alchemy_cleaner.cleaner.DatabaseCleaner.clean`.

    Options are never persisted; pass a new instance for every call that needs
    different filters.

    Example:
        Clean everything except the lookup tables::

            CleanupOptions(exclude={"countries", "currencies"})

        Clean two tables and keep their identity counters::

            CleanupOptions(only={"users", "orders"}, reset_ids=False)
    """

    only: Optional[frozenset[str]] = None
    """Restrict cleaning to these tables.

    The names are intersected with the tables that actually exist. ``None``
    means every table; an empty collection means no table at all.
    """

    exclude: frozenset[str] = field(default_factory=frozenset)
    """Tables that are never cleaned. Wins over :attr:`only`."""

    fast: bool = False
    """Use the dialect's pre-checks to skip tables that don't need emptying.

    Dialects without a pre-check silently use the plain strategy.
    """

    reset_ids: bool = True
    """Rewind identity/auto-increment counters where the dialect allows it."""

    def __post_init__(self) -> None:
        if self.only is not None:
            object.__setattr__(self, "only", _to_names(self.only, "only"))
        object.__setattr__(self, "exclude", _to_names(self.exclude, "exclude"))

    @classmethod
    def from_metadata(cls, metadata: MetaData, **kwargs: Any) -> CleanupOptions:
        """Build options that restrict cleaning to the tables declared in ``metadata``.

        Args:
            metadata: Metadata whose tables should be cleaned.
            **kwargs: Any other :class:`CleanupOptions` field.

        Returns:
            CleanupOptions: The new options.
        """
        return cls(only=frozenset(table.name for table in metadata.sorted_tables), **kwargs)
