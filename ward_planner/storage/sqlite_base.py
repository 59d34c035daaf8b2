# ward_planner/storage/sqlite_base.py
import sqlite3
import logging
from pathlib import Path
from typing import Optional

from ..settings import settings

logger = logging.getLogger(__name__)

# Global connection instance to ensure single connection per application lifecycle
_db_connection: Optional[sqlite3.Connection] = None


def open_sqlite_connection(db_path: str) -> sqlite3.Connection:
    """
    Open a SQLite connection and make sure the schema exists.

    Args:
        db_path: Filesystem path of the database, or ':memory:'

    Returns:
        sqlite3.Connection: Connection with name-based row access

    Raises:
        sqlite3.Error: If the database cannot be opened or initialized
    """
    if db_path != ":memory:":
        resolved = Path(db_path).resolve()
        # Ensure the database directory structure exists
        resolved.parent.mkdir(parents=True, exist_ok=True)
        db_path = str(resolved)

    logger.info(f"Attempting to connect to SQLite DB at: {db_path}")
    # Access is serialized by the stores, calls may come from worker threads
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    logger.info(f"Successfully connected to SQLite DB: {db_path}")

    init_sqlite_db(conn)
    return conn


def get_sqlite_db_connection() -> sqlite3.Connection:
    """
    Get or create the process-wide SQLite connection at `settings.sqlite_db_path`.

    Raises:
        sqlite3.Error: If database connection fails
    """
    global _db_connection
    if _db_connection is None:
        try:
            _db_connection = open_sqlite_connection(settings.sqlite_db_path)
        except sqlite3.Error as e:
            logger.error(
                f"Error connecting to SQLite database at {settings.sqlite_db_path}: {e}",
                exc_info=True
            )
            raise
    return _db_connection


def init_sqlite_db(conn: sqlite3.Connection) -> None:
    """
    Create the ward table if it does not exist yet.

    Uses IF NOT EXISTS so repeated or concurrent initialization is harmless.
    """
    cursor = conn.cursor()

    # One row per ward. `data` holds the serialized plan document as JSON text.
    cursor.execute('''
    CREATE TABLE IF NOT EXISTS wards (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        passphrase TEXT NOT NULL,
        data TEXT
    )
    ''')
    logger.info("Ensured 'wards' table exists.")

    conn.commit()
    logger.info("SQLite database schema initialized/verified.")


def close_sqlite_db_connection() -> None:
    """Close the process-wide connection, if one was opened."""
    global _db_connection
    if _db_connection is not None:
        logger.info("Closing SQLite DB connection.")
        _db_connection.close()
        _db_connection = None
        logger.info("SQLite DB connection closed.")
