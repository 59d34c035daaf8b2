# ward_planner/storage/__init__.py

"""Storage module initialization.

Low-level database connection handling shared by the SQLite-backed stores.
"""

from .sqlite_base import (
    open_sqlite_connection,
    get_sqlite_db_connection,
    init_sqlite_db,
    close_sqlite_db_connection
)

# Export public API for database operations
__all__ = [
    "open_sqlite_connection",
    "get_sqlite_db_connection",
    "init_sqlite_db",
    "close_sqlite_db_connection"
]
