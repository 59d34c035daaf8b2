# ward_planner/tenants/sqlite_tenant_store.py
import asyncio
import sqlite3
import logging
import json
from typing import Any, Callable, Iterable, List, Optional, TypeVar

from pydantic import ValidationError

from .storage_interfaces import AbstractTenantStore
from .models import Tenant, TenantDocument, TenantSeed
from .seed import load_seed_wards
from ..errors import StorageUnavailableError
from ..storage.sqlite_base import get_sqlite_db_connection, open_sqlite_connection

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SQLiteTenantStore(AbstractTenantStore):
    """SQLite implementation of the ward storage interface."""

    def __init__(self, db_path: Optional[str] = None):
        """
        Args:
            db_path: Private database to open. When omitted the process-wide
                connection at `settings.sqlite_db_path` is used.
        """
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = asyncio.Lock()

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = open_sqlite_connection(self.db_path) if self.db_path else get_sqlite_db_connection()
        return self._conn

    async def _run(self, operation: Callable[[sqlite3.Connection], T]) -> T:
        """
        Run a blocking database operation in a worker thread.

        Operations are serialized by a lock; the event loop stays free while
        sqlite works.

        Raises:
            StorageUnavailableError: If sqlite reports any error
        """
        async with self._lock:
            try:
                return await asyncio.to_thread(self._run_sync, operation)
            except sqlite3.Error as e:
                logger.error(f"SQLite error in ward store: {e}", exc_info=True)
                raise StorageUnavailableError(f"Ward database error: {e}") from e

    def _run_sync(self, operation: Callable[[sqlite3.Connection], T]) -> T:
        conn = self._connection()
        try:
            result = operation(conn)
            conn.commit()
            return result
        except sqlite3.Error:
            conn.rollback()
            raise

    async def initialize(self, seeds: Optional[Iterable[TenantSeed]] = None) -> None:
        """Ensure the table exists and seed it when it holds no ward yet."""
        seed_list = list(seeds) if seeds is not None else load_seed_wards()
        empty_document = json.dumps(TenantDocument().to_wire())

        def _seed(conn: sqlite3.Connection) -> int:
            row = conn.execute("SELECT COUNT(*) AS total FROM wards").fetchone()
            if row["total"] > 0:
                return 0
            inserted = 0
            for seed in seed_list:
                # INSERT OR IGNORE keeps a concurrent cold start from duplicating or overwriting
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO wards (id, name, passphrase, data) VALUES (?, ?, ?, ?)",
                    (seed.id, seed.name, seed.effective_passphrase, empty_document),
                )
                inserted += cursor.rowcount
            return inserted

        inserted = await self._run(_seed)
        if inserted:
            logger.info(f"SQLiteTenantStore seeded {inserted} ward(s).")
        logger.info("SQLiteTenantStore initialized.")

    async def teardown(self) -> None:
        """Close a private connection. The shared connection is closed by the app lifespan."""
        if self.db_path and self._conn is not None:
            self._conn.close()
            self._conn = None
        logger.info("SQLiteTenantStore teardown complete.")

    def _row_to_tenant(self, row: Optional[sqlite3.Row]) -> Optional[Tenant]:
        """
        Convert a database row to a Tenant.

        A NULL or unreadable `data` column reads as an empty plan rather than
        failing the lookup.
        """
        if not row:
            return None

        document = TenantDocument()
        raw_data = row["data"]
        if raw_data:
            try:
                document = TenantDocument.model_validate(json.loads(raw_data))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.error(f"Stored plan for ward '{row['id']}' is unreadable, using an empty plan: {e}")

        return Tenant(
            id=row["id"],
            name=row["name"],
            passphrase=row["passphrase"],
            data=document,
        )

    async def _fetchone(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        return await self._run(lambda conn: conn.execute(query, params).fetchone())

    async def find_by_passphrase(self, candidate: str) -> Optional[Tenant]:
        # Plain '=' on TEXT is binary collation: exact and case-sensitive
        row = await self._fetchone(
            "SELECT id, name, passphrase, data FROM wards WHERE passphrase = ? ORDER BY id LIMIT 1",
            (candidate,),
        )
        return self._row_to_tenant(row)

    async def find_by_id(self, tenant_id: str) -> Optional[Tenant]:
        row = await self._fetchone(
            "SELECT id, name, passphrase, data FROM wards WHERE id = ?",
            (tenant_id,),
        )
        return self._row_to_tenant(row)

    async def replace_document(self, tenant_id: str, document: TenantDocument) -> bool:
        serialized = json.dumps(document.to_wire())

        def _update(conn: sqlite3.Connection) -> int:
            return conn.execute(
                "UPDATE wards SET data = ? WHERE id = ?", (serialized, tenant_id)
            ).rowcount

        updated = await self._run(_update)
        if not updated:
            logger.warning(f"replace_document: ward '{tenant_id}' does not exist.")
            return False
        logger.debug(f"replace_document: plan for ward '{tenant_id}' overwritten.")
        return True

    async def list_tenants(self) -> List[Tenant]:
        rows: List[Any] = await self._run(
            lambda conn: conn.execute("SELECT id, name, passphrase, data FROM wards ORDER BY id").fetchall()
        )
        return [tenant for row in rows if (tenant := self._row_to_tenant(row)) is not None]
