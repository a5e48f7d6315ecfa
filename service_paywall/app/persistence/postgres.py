"""
PostgreSQL ledger reader for the Paywall Service.
"""

import asyncio
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional

import asyncpg
from shared.config import is_safe_table_identifier
from shared.errors import AccessLayerException, ConfigurationError, LedgerQueryError
from shared.logging import get_logger
from ..models import PaymentEvent


def quote_table(table: str) -> str:
    """Quote a configured (optionally schema-qualified) table name."""
    if not is_safe_table_identifier(table):
        raise ConfigurationError("Ledger table is not a safe identifier", {"table": table})
    return ".".join(f'"{part}"' for part in table.split("."))


class PostgreSQLLedger:
    """Reads transfers from the ingested ledger table.

    The table name is validated and quoted once, at construction; sender and
    recipient are always bound as query parameters.
    """

    def __init__(self, dsn: str, table: str, pool: Optional[asyncpg.Pool] = None):
        self.dsn = dsn
        self.table = table
        self.logger = get_logger("paywall.persistence.postgres")
        self.pool = pool
        self._payments_query = f"""
            SELECT from_addr, to_addr, value, created_at
            FROM {quote_table(table)}
            WHERE from_addr = $1 AND to_addr = $2
            ORDER BY created_at ASC
        """

    async def start(self):
        """Start the persistence layer."""
        if self.pool is not None:
            return
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=2,
                max_size=10,
                command_timeout=30
            )
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")

            self.logger.info("PostgreSQL ledger started", table=self.table)

        except (asyncpg.PostgresError, OSError) as e:
            self.logger.error("Failed to start PostgreSQL ledger", error=str(e))
            raise AccessLayerException("POSTGRES_START_FAILED", str(e))

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL ledger stopped")

    async def fetch_payments(self, sender: str, recipient: str) -> List[PaymentEvent]:
        """Transfers from ``sender`` to ``recipient``, oldest first."""
        if self.pool is None:
            raise LedgerQueryError("Ledger is not connected")

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(self._payments_query, sender, recipient)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, asyncio.TimeoutError, OSError) as e:
            self.logger.error("Ledger query failed", sender=sender, error=str(e))
            raise LedgerQueryError(details={"error": str(e)})

        return [self._row_to_event(row) for row in rows]

    def _row_to_event(self, row) -> PaymentEvent:
        """Convert database row to PaymentEvent."""
        created_at = row["created_at"]
        value = row["value"]
        if not isinstance(created_at, datetime) or value is None:
            self.logger.error("Malformed ledger row", created_at=repr(created_at), value=repr(value))
            raise LedgerQueryError("Malformed ledger row")

        try:
            amount = value if isinstance(value, Decimal) else Decimal(str(value))
        except InvalidOperation:
            self.logger.error("Malformed ledger row", value=repr(value))
            raise LedgerQueryError("Malformed ledger row")

        return PaymentEvent(
            timestamp=created_at,
            amount=amount,
            sender=row["from_addr"],
            recipient=row["to_addr"],
        )

    async def health_check(self) -> bool:
        """Check database health."""
        if self.pool is None:
            return False
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError):
            return False
