"""
Redis-backed shared table store.

Holds the authoritative Table for rooms served by more than one process.
Every mutation is an optimistic read-modify-write: the table key is
WATCHed, the engine runs against the snapshot that was read, and the new
table is written in a MULTI/EXEC that fails if anyone else wrote the key
in between. Failed transactions are retried up to STORE_MAX_RETRIES times,
then reported as CONFLICT.

The engine's own preconditions (turn ownership, phase) reject actions that
were valid against an older snapshot, so a retried action is re-checked
against the fresh table.

Key patterns:
- flip7:table:{room_code}   -> JSON {"version": int, "table": {...}}
- flip7:rooms:active        -> Set (active room codes)
"""

import json
import logging
from datetime import timedelta
from typing import Callable, Optional

import redis.asyncio as redis
from redis.exceptions import WatchError

from config import config
from game import Table
from models.results import ActionResult, ErrorKind
from rounds import force_end_round

logger = logging.getLogger(__name__)

TableOperation = Callable[[Table], ActionResult]


def encode_table(table: Table, version: int) -> str:
    return json.dumps({"version": version, "table": table.to_dict()})


def decode_table(raw) -> tuple[Table, int]:
    data = json.loads(raw)
    return Table.from_dict(data["table"]), data["version"]


class TableStore:
    """Redis-backed table store with optimistic concurrency."""

    # Key patterns
    TABLE_KEY = "flip7:table:{room_code}"
    ACTIVE_ROOMS_KEY = "flip7:rooms:active"

    def __init__(
        self,
        redis_client: redis.Redis,
        max_retries: Optional[int] = None,
        ttl: Optional[timedelta] = None,
    ):
        """
        Initialize table store with Redis client.

        Args:
            redis_client: Async Redis client.
            max_retries: Transaction attempts before giving up with CONFLICT.
            ttl: Expiry for idle tables, refreshed on every write.
        """
        self.redis = redis_client
        self.max_retries = max_retries if max_retries is not None else config.STORE_MAX_RETRIES
        self.ttl = ttl or timedelta(hours=config.TABLE_TTL_HOURS)

    @classmethod
    async def create(cls, redis_url: str) -> "TableStore":
        """
        Create a TableStore with a new Redis connection.

        Args:
            redis_url: Redis connection URL.

        Returns:
            Configured TableStore instance.
        """
        client = redis.from_url(redis_url, decode_responses=False)
        # Test connection
        await client.ping()
        logger.info("TableStore connected to Redis")
        return cls(client)

    async def close(self) -> None:
        """Close the Redis connection."""
        await self.redis.close()

    def _key(self, room_code: str) -> str:
        return self.TABLE_KEY.format(room_code=room_code)

    @property
    def _ttl_seconds(self) -> int:
        return int(self.ttl.total_seconds())

    # -------------------------------------------------------------------------
    # Table Operations
    # -------------------------------------------------------------------------

    async def create_table(self, table: Table) -> bool:
        """
        Store a new table at version 0.

        Returns:
            False if a table with this room code already exists.
        """
        created = await self.redis.set(
            self._key(table.room_code),
            encode_table(table, 0),
            ex=self._ttl_seconds,
            nx=True,
        )
        if not created:
            return False
        await self.redis.sadd(self.ACTIVE_ROOMS_KEY, table.room_code)
        logger.debug(f"Created table {table.room_code}")
        return True

    async def get_table(self, room_code: str) -> Optional[tuple[Table, int]]:
        """
        Load a table and its version.

        Returns:
            (table, version), or None if not found.
        """
        raw = await self.redis.get(self._key(room_code))
        if raw is None:
            return None
        return decode_table(raw)

    async def delete_table(self, room_code: str) -> None:
        await self.redis.delete(self._key(room_code))
        await self.redis.srem(self.ACTIVE_ROOMS_KEY, room_code)
        logger.debug(f"Deleted table {room_code}")

    async def get_active_rooms(self) -> set[str]:
        """Get all active room codes."""
        rooms = await self.redis.smembers(self.ACTIVE_ROOMS_KEY)
        return {r.decode() if isinstance(r, bytes) else r for r in rooms}

    async def apply(
        self,
        room_code: str,
        operation: TableOperation,
        expected_version: Optional[int] = None,
    ) -> ActionResult:
        """
        Apply an engine operation to the stored table transactionally.

        A hit that fails with EMPTY_DECK ends the round instead.

        Args:
            room_code: Room whose table to update.
            operation: Function taking the table and returning an ActionResult.
            expected_version: Version the client acted on, if it sent one.

        Returns:
            The engine's result, or STALE_VERSION / CONFLICT failures.
        """
        key = self._key(room_code)

        for attempt in range(1, self.max_retries + 1):
            async with self.redis.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if raw is None:
                        await pipe.unwatch()
                        return ActionResult.failure(
                            ErrorKind.ACTION_NOT_ALLOWED, f"Room {room_code} not found",
                        )

                    table, version = decode_table(raw)
                    if expected_version is not None and expected_version != version:
                        await pipe.unwatch()
                        return ActionResult.failure(
                            ErrorKind.STALE_VERSION,
                            f"Table changed (version {version}), refresh and retry",
                        )

                    result = operation(table)
                    if not result.ok and result.error_kind == ErrorKind.EMPTY_DECK:
                        result = force_end_round(table)
                    if not result.ok:
                        await pipe.unwatch()
                        return result

                    pipe.multi()
                    pipe.set(key, encode_table(result.table, version + 1), ex=self._ttl_seconds)
                    await pipe.execute()
                    return result
                except WatchError:
                    logger.debug(f"Write conflict on {room_code} (attempt {attempt})")

        logger.warning(f"Giving up on {room_code} after {self.max_retries} conflicting writes")
        return ActionResult.failure(
            ErrorKind.CONFLICT,
            f"Table {room_code} kept changing, try again",
        )


# Global table store instance (initialized on first use)
_table_store: Optional[TableStore] = None


async def get_table_store(redis_url: Optional[str] = None) -> TableStore:
    """
    Get or create the global table store instance.

    Args:
        redis_url: Redis connection URL (defaults to config.REDIS_URL).

    Returns:
        TableStore instance.
    """
    global _table_store
    if _table_store is None:
        _table_store = await TableStore.create(redis_url or config.REDIS_URL)
    return _table_store


async def close_table_store() -> None:
    """Close the global table store connection."""
    global _table_store
    if _table_store is not None:
        await _table_store.close()
        _table_store = None
