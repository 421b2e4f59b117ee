"""
Cooldown ledger using aiosqlite for Funding Alert Bot.
Remembers when each (venue, symbol) pair was last alerted so the same
condition is not re-sent more often than the cooldown interval, across restarts.
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import aiosqlite

from core.errors import LedgerError
from core.models import SentRecord, signal_key, utcnow

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _format_time(value: datetime) -> str:
    return _to_utc(value).isoformat(timespec="microseconds")


def _parse_time(raw) -> datetime:
    if not isinstance(raw, str):
        raise ValueError(f"unexpected timestamp value {raw!r}")
    return _to_utc(datetime.fromisoformat(raw))


class CooldownLedger:
    """
    Async SQLite-backed record of sent alerts.

    Reads fail open: if the stored state cannot be read, can_send() allows the
    alert rather than blocking it. Writes are serialized with a lock so the
    monitoring loop and the periodic cleanup task never interleave.
    """

    def __init__(self, db_path: str, clock: Callable[[], datetime] = utcnow):
        """Initialize ledger with database path and clock."""
        self.db_path = db_path
        self.conn: Optional[aiosqlite.Connection] = None
        self.persistent = db_path != MEMORY_PATH
        self._clock = clock
        self._write_lock = asyncio.Lock()

    async def connect(self):
        """
        Open the ledger, creating the table if needed.

        A missing, unreadable or corrupt ledger never fails startup: the
        ledger falls back to an empty in-memory database and keeps working.
        """
        try:
            self.conn = await aiosqlite.connect(self.db_path)
            await self._create_tables()
            logger.info(f"Ledger connected: {self.db_path}")
        except aiosqlite.Error as e:
            logger.error(f"Cannot open ledger {self.db_path}: {e}; using empty in-memory ledger")
            if self.conn:
                try:
                    await self.conn.close()
                except aiosqlite.Error as close_error:
                    logger.debug(f"Error closing broken ledger connection: {close_error}")
            self.conn = await aiosqlite.connect(MEMORY_PATH)
            self.persistent = False
            await self._create_tables()

    async def close(self):
        """Close ledger connection."""
        if self.conn:
            await self.conn.close()
            self.conn = None
            logger.info("Ledger connection closed")

    async def _create_tables(self):
        """Create the ledger table if it doesn't exist."""
        self.conn.row_factory = aiosqlite.Row
        await self.conn.execute("""
            CREATE TABLE IF NOT EXISTS sent_signals (
                signal_key TEXT PRIMARY KEY,
                venue TEXT NOT NULL,
                symbol TEXT NOT NULL,
                last_sent_time TEXT NOT NULL
            )
        """)
        await self.conn.commit()

    async def _last_sent_time(self, key: str) -> Optional[datetime]:
        if self.conn is None:
            raise LedgerError("ledger is not connected", key)
        try:
            cursor = await self.conn.execute(
                "SELECT last_sent_time FROM sent_signals WHERE signal_key = ?", (key,)
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return _parse_time(row['last_sent_time'])
        except (aiosqlite.Error, ValueError, TypeError) as e:
            raise LedgerError(str(e), key) from e

    async def can_send(self, venue: str, symbol: str, interval_hours: float = 8) -> bool:
        """
        Check whether an alert for this pair may be sent now.

        Returns:
            True if never sent, or the last send is at least interval_hours old.
            Also True when the ledger cannot be read (fail open).
        """
        key = signal_key(venue, symbol)
        try:
            last_sent = await self._last_sent_time(key)
        except LedgerError as e:
            logger.warning(f"Ledger read failed, allowing alert: {e}")
            return True

        if last_sent is None:
            return True

        elapsed = self._clock() - last_sent
        allowed = elapsed >= timedelta(hours=interval_hours)
        if not allowed:
            logger.info(f"{key} in cooldown: last sent {last_sent.isoformat()}, interval {interval_hours}h")
        return allowed

    async def record_send(self, venue: str, symbol: str, timestamp: Optional[datetime] = None) -> bool:
        """Insert or overwrite the record for this pair. Returns False on write failure."""
        key = signal_key(venue, symbol)
        sent_at = timestamp or self._clock()
        async with self._write_lock:
            try:
                await self.conn.execute("""
                    INSERT INTO sent_signals (signal_key, venue, symbol, last_sent_time)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(signal_key) DO UPDATE SET last_sent_time=excluded.last_sent_time
                """, (key, venue, symbol, _format_time(sent_at)))
                await self.conn.commit()
                return True
            except (aiosqlite.Error, AttributeError) as e:
                logger.error(f"Error recording send for {key}: {e}")
                return False

    async def cleanup(self, retention_hours: float = 24) -> Optional[int]:
        """
        Remove records older than the retention window.

        Returns:
            Number of records removed, or None if the ledger could not be written
        """
        cutoff = self._clock() - timedelta(hours=retention_hours)
        async with self._write_lock:
            try:
                cursor = await self.conn.execute(
                    "SELECT signal_key, last_sent_time FROM sent_signals"
                )
                rows = await cursor.fetchall()

                stale = []
                for row in rows:
                    try:
                        if _parse_time(row['last_sent_time']) < cutoff:
                            stale.append(row['signal_key'])
                    except (ValueError, TypeError):
                        logger.warning(f"Dropping unreadable ledger row {row['signal_key']}")
                        stale.append(row['signal_key'])

                if stale:
                    await self.conn.executemany(
                        "DELETE FROM sent_signals WHERE signal_key = ?",
                        [(key,) for key in stale]
                    )
                    await self.conn.commit()
                    logger.info(f"Ledger cleanup removed {len(stale)} record(s) older than {retention_hours}h")
                return len(stale)
            except (aiosqlite.Error, AttributeError) as e:
                logger.error(f"Error cleaning up ledger: {e}")
                return None

    async def all_records(self) -> List[SentRecord]:
        """List every readable record, oldest first."""
        cursor = await self.conn.execute(
            "SELECT venue, symbol, last_sent_time FROM sent_signals"
        )
        rows = await cursor.fetchall()

        records = []
        for row in rows:
            try:
                records.append(SentRecord(
                    venue=row['venue'],
                    symbol=row['symbol'],
                    last_sent_time=_parse_time(row['last_sent_time'])
                ))
            except (ValueError, TypeError):
                continue
        records.sort(key=lambda record: record.last_sent_time)
        return records

    async def count(self) -> int:
        """Number of records in the ledger."""
        cursor = await self.conn.execute("SELECT COUNT(*) FROM sent_signals")
        row = await cursor.fetchone()
        return row[0]
