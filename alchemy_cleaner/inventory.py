"""Table and view discovery, memoized per database connection."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from alchemy_cleaner.exceptions import CleanupError

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

__all__ = (
    "INVENTORY_INFO_KEY",
    "TableInventory",
    "invalidate_inventory",
)

logger = logging.getLogger("alchemy_cleaner")

INVENTORY_INFO_KEY = "alchemy_cleaner.inventory"
"""Key under which inventories are stored in ``Connection.info``."""


class TableInventory:
    """Cached table and view names for one schema of one connection.

    The schema is assumed not to change while tests run. Call
    :meth:`invalidate` (or :func:`invalidate_inventory`) after altering it.
    """

    def __init__(self, schema: Optional[str] = None) -> None:
        self.schema = schema
        self._tables: Optional[tuple[str, ...]] = None
        self._views: Optional[frozenset[str]] = None

    @classmethod
    def for_connection(cls, connection: Connection, schema: Optional[str] = None) -> TableInventory:
        """Return the inventory attached to ``connection``, creating it on first use.

        ``Connection.info`` follows the DBAPI connection, so the inventory
        survives pool check-in and check-out.

        Args:
            connection: The connection that owns the cache.
            schema: Schema to inventory, ``None`` for the default schema.

        Returns:
            TableInventory: The shared inventory.
        """
        inventories: dict[Optional[str], TableInventory] = connection.info.setdefault(INVENTORY_INFO_KEY, {})
        inventory = inventories.get(schema)
        if inventory is None:
            inventory = inventories[schema] = cls(schema)
        return inventory

    def tables(self, connection: Connection) -> tuple[str, ...]:
        """Base table names in introspection order.

        Raises:
            CleanupError: If the catalog cannot be read.
        """
        if self._tables is None:
            try:
                names = inspect(connection).get_table_names(schema=self.schema)
            except SQLAlchemyError as exc:
                raise CleanupError(detail=f"failed to list tables: {exc}") from exc
            self._tables = tuple(dict.fromkeys(names))
        return self._tables

    def views(self, connection: Connection) -> frozenset[str]:
        """View names; empty when the dialect cannot list them."""
        if self._views is None:
            try:
                self._views = frozenset(inspect(connection).get_view_names(schema=self.schema))
            except (SQLAlchemyError, NotImplementedError) as exc:
                logger.warning("unable to list views, assuming there are none: %s", exc)
                self._views = frozenset()
        return self._views

    def invalidate(self) -> None:
        self._tables = None
        self._views = None


def invalidate_inventory(connection: Connection) -> None:
    """Drop every cached inventory attached to ``connection``."""
    connection.info.pop(INVENTORY_INFO_KEY, None)
