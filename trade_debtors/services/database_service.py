"""
Database Service Module
Handles SQLite database operations
"""

import aiosqlite
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..config import config
from ..utils.logger import logger


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS trade_debtors (
    id TEXT PRIMARY KEY,
    account_code TEXT NOT NULL UNIQUE,
    customer_name TEXT,
    short_name TEXT,
    classification TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    is_active INTEGER NOT NULL DEFAULT 1,
    data TEXT NOT NULL,
    created_by TEXT,
    updated_by TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_trade_debtors_status ON trade_debtors (status, is_active);
CREATE INDEX IF NOT EXISTS idx_trade_debtors_classification ON trade_debtors (classification)
"""


class DatabaseService:
    """Service for SQLite database operations"""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or config.database.path
        self._connection: Optional[aiosqlite.Connection] = None
        self._initialized = False

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection"""
        if self._connection is None:
            db_file = Path(self.db_path)
            db_file.parent.mkdir(parents=True, exist_ok=True)

            self._connection = await aiosqlite.connect(self.db_path, timeout=30.0)
            self._connection.row_factory = aiosqlite.Row

            # WAL avoids "database is locked" between readers and the writer
            await self._connection.execute("PRAGMA journal_mode=WAL")
            await self._connection.execute("PRAGMA busy_timeout=30000")

            if not self._initialized:
                await self.create_tables()

            logger.info(f"Connected to SQLite database: {self.db_path}")

        return self._connection

    async def connect(self) -> None:
        """Open database connection"""
        await self._get_connection()

    async def disconnect(self) -> None:
        """Close database connection"""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.info("Database connection closed")

    async def create_tables(self) -> None:
        """Create the trade_debtors table and its indexes"""
        conn = self._connection or await self._get_connection()
        statements = [s.strip() for s in SCHEMA_SQL.split(";") if s.strip()]
        for stmt in statements:
            await conn.execute(stmt)
        await conn.commit()
        self._initialized = True
        logger.debug("Database tables ensured")

    async def execute(self, query: str, params: Tuple = ()) -> int:
        """Execute a query and return affected rows"""
        conn = await self._get_connection()

        try:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.rowcount
        except Exception as e:
            logger.error(f"Query execution failed: {e}\nQuery: {query[:200]}...")
            raise

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Dict[str, Any]]:
        """Fetch all rows from query"""
        conn = await self._get_connection()

        try:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]
        except Exception as e:
            logger.error(f"Fetch failed: {e}")
            raise

    async def fetch_one(self, query: str, params: Tuple = ()) -> Optional[Dict[str, Any]]:
        """Fetch single row from query"""
        conn = await self._get_connection()

        try:
            cursor = await conn.execute(query, params)
            row = await cursor.fetchone()
            return dict(row) if row else None
        except Exception as e:
            logger.error(f"Fetch one failed: {e}")
            raise

    async def fetch_scalar(self, query: str, params: Tuple = ()) -> Any:
        """Fetch single value from query"""
        result = await self.fetch_one(query, params)
        if result:
            return list(result.values())[0]
        return None

    async def get_database_size(self) -> int:
        """Get database file size in bytes"""
        db_file = Path(self.db_path)
        return db_file.stat().st_size if db_file.exists() else 0


# Global service instance
database_service = DatabaseService()
