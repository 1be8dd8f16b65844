"""
Database utilities for the Import/Export Orchestrator

Provides connection pool management, schema setup for the history ledger and
per-job execution scopes that each own a pooled connection.
"""

import asyncpg
from typing import Optional, AsyncIterator
from contextlib import asynccontextmanager

from ..core.context import ExecutionScope, TenantContextService
from ..core.exceptions import DatabaseError
from ..services.history_ledger import PostgresHistoryLedger, HISTORY_TABLE


SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS {HISTORY_TABLE} (
    id TEXT PRIMARY KEY,
    job_id TEXT NOT NULL,
    entity_type VARCHAR(100) NOT NULL,
    operation_type VARCHAR(20) NOT NULL,
    file_name TEXT NOT NULL DEFAULT '',
    format VARCHAR(20) NOT NULL DEFAULT '',
    organization_id TEXT NOT NULL,
    imported_by TEXT NOT NULL DEFAULT '',
    status VARCHAR(20) NOT NULL DEFAULT 'Pending',
    progress INTEGER NOT NULL DEFAULT 0,
    total_rows INTEGER NOT NULL DEFAULT 0,
    success_count INTEGER NOT NULL DEFAULT 0,
    updated_count INTEGER NOT NULL DEFAULT 0,
    skipped_count INTEGER NOT NULL DEFAULT 0,
    error_count INTEGER NOT NULL DEFAULT 0,
    file_size_bytes BIGINT NOT NULL DEFAULT 0,
    file_path TEXT,
    download_url TEXT,
    duplicate_handling_strategy VARCHAR(20),
    error_report_id TEXT,
    applied_filters TEXT,
    error_message TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    started_at TIMESTAMPTZ,
    completed_at TIMESTAMPTZ,
    expires_at TIMESTAMPTZ
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_{HISTORY_TABLE}_job ON {HISTORY_TABLE}(job_id);
CREATE INDEX IF NOT EXISTS idx_{HISTORY_TABLE}_org_entity
    ON {HISTORY_TABLE}(organization_id, entity_type, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_{HISTORY_TABLE}_expires
    ON {HISTORY_TABLE}(expires_at) WHERE expires_at IS NOT NULL;
"""


class DatabaseManager:
    """
    Manages the asyncpg pool backing the history ledger.

    Each background job opens its own scope through :meth:`create_scope`, so
    concurrent jobs never share a connection.
    """

    def __init__(self, connection_string: str, pool_size: int = 10, max_overflow: int = 20):
        """
        Initialize database manager.

        Args:
            connection_string: PostgreSQL connection string
            pool_size: Base connection pool size
            max_overflow: Maximum additional connections
        """
        self.connection_string = connection_string
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.pool: Optional[asyncpg.Pool] = None

    async def initialize(self) -> None:
        """Initialize database connection pool."""
        if self.pool:
            return
        try:
            self.pool = await asyncpg.create_pool(
                self.connection_string,
                min_size=min(5, self.pool_size),
                max_size=self.pool_size + self.max_overflow,
                command_timeout=60
            )
        except Exception as e:
            raise DatabaseError("initialization", f"Failed to create connection pool: {str(e)}")

    async def close(self) -> None:
        """Close database connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None

    async def is_healthy(self) -> bool:
        """Check database connectivity."""
        try:
            async with self.get_connection() as connection:
                await connection.execute("SELECT 1")
                return True
        except Exception:
            return False

    async def ensure_schema(self) -> None:
        """Create the history table and its indexes if missing."""
        try:
            async with self.get_connection() as connection:
                await connection.execute(SCHEMA_SQL)
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("ensure_schema", str(e), HISTORY_TABLE)

    @asynccontextmanager
    async def get_connection(self):
        """Get a database connection from the pool."""
        if not self.pool:
            raise DatabaseError("connection", "Database pool not initialized")

        async with self.pool.acquire() as connection:
            yield connection

    @asynccontextmanager
    async def create_scope(self) -> AsyncIterator[ExecutionScope]:
        """Execution scope owning one pooled connection."""
        async with self.get_connection() as connection:
            yield ExecutionScope(
                history=PostgresHistoryLedger(connection),
                tenant=TenantContextService(),
                unit_of_work=connection,
            )
