from alchemy_cleaner.__metadata__ import __version__
from alchemy_cleaner import cleaner, config, dialects, exceptions, integrity, inventory, strategies
from alchemy_cleaner.cleaner import AsyncDatabaseCleaner, DatabaseCleaner, async_clean, clean
from alchemy_cleaner.config import CleanupOptions
from alchemy_cleaner.dialects import Dialect, DialectCapabilities, get_capabilities, resolve_dialect
from alchemy_cleaner.inventory import TableInventory, invalidate_inventory
from alchemy_cleaner.strategies import CleanupStats

__all__ = (
    "AsyncDatabaseCleaner",
    "CleanupOptions",
    "CleanupStats",
    "DatabaseCleaner",
    "Dialect",
    "DialectCapabilities",
    "TableInventory",
    "__version__",
    "async_clean",
    "clean",
    "cleaner",
    "config",
    "dialects",
    "exceptions",
    "get_capabilities",
    "integrity",
    "invalidate_inventory",
    "inventory",
    "resolve_dialect",
    "strategies",
)
