# src/txn_stress_test/db/redis_backend.py
"""Redis/Valkey backend binding."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Set, Any
import logging

import redis

from ..core.config import Config, RedisConfig
from ..core.errors import Status
from .base import StorageBackend, FieldValueMap

logger = logging.getLogger(__name__)


def create_connection_pool(config: RedisConfig) -> redis.ConnectionPool:
    """Create the connection pool shared by all client threads."""
    pool = redis.ConnectionPool(
        host=config.host,
        port=config.port,
        db=config.db,
        password=config.password,
        max_connections=config.max_connections,
        socket_timeout=config.socket_timeout,
        socket_connect_timeout=config.socket_connect_timeout,
        socket_keepalive=True,
        decode_responses=False,  # values stay bytes
    )
    logger.info(f"Created Redis pool: {config.host}:{config.port} "
                f"(max_connections={config.max_connections})")
    return pool


class RedisTable:
    """Key layout of one table: a hash per record plus a sorted key index."""

    def __init__(self, name: str):
        self.name = name
        self.index_key = f"{name}:__index__"

    def record_key(self, key: str) -> str:
        return f"{self.name}:{key}"


@dataclass
class _RedisTransaction:
    """An open optimistic transaction."""
    pipeline: Any
    start_timestamp_us: int
    queued: bool = False


class RedisBackend(StorageBackend):
    """
    Transactional backend on Redis/Valkey.

    A transaction takes its start timestamp from the server clock, WATCHes
    every key it reads before its first write, queues writes in a MULTI
    block and EXECs them at commit. A concurrent change to a watched key
    makes the commit fail with ``Status.CONFLICT``.

    Singleton operations are single commands, atomic on the server.
    """

    def __init__(self, connection_pool: redis.ConnectionPool):
        super().__init__()
        self._client = redis.Redis(connection_pool=connection_pool)
        self._txn: Optional[_RedisTransaction] = None

    @classmethod
    def factory(cls, config: Config) -> Callable[[], "RedisBackend"]:
        pool = create_connection_pool(config.redis)
        return lambda: cls(pool)

    def init(self) -> None:
        try:
            self._client.ping()
        except redis.RedisError as e:
            logger.error(f"Cannot reach Redis: {e}")
            raise

    def cleanup(self) -> None:
        if self._txn is not None:
            logger.warning("Resetting transaction left open at cleanup")
            self._txn.pipeline.reset()
            self._txn = None
        self._client.close()

    def _open_table(self, table: str) -> RedisTable:
        return RedisTable(table)

    @property
    def in_transaction(self) -> bool:
        return self._txn is not None

    def start_transaction(self) -> Status:
        if self._txn is not None:
            logger.warning("start_transaction called while a transaction is open")
            return Status.ERROR

        try:
            seconds, microseconds = self._client.time()
        except redis.RedisError as e:
            logger.debug(f"Failed to get start timestamp: {e}")
            return Status.ERROR

        self._txn = _RedisTransaction(
            pipeline=self._client.pipeline(transaction=True),
            start_timestamp_us=int(seconds) * 1_000_000 + int(microseconds),
        )
        return Status.OK

    def commit_transaction(self) -> Status:
        if self._txn is None:
            logger.warning("commit_transaction called without an open transaction")
            return Status.ERROR

        txn, self._txn = self._txn, None
        try:
            if txn.queued:
                txn.pipeline.execute()
            return Status.OK
        except redis.WatchError:
            logger.debug(f"Transaction started at {txn.start_timestamp_us} lost a write conflict")
            return Status.CONFLICT
        except redis.RedisError as e:
            logger.debug(f"Commit failed: {e}")
            return Status.ERROR
        finally:
            txn.pipeline.reset()

    @staticmethod
    def _fetch(executor: Any,
               record_key: str,
               fields: Optional[Set[str]],
               result: FieldValueMap) -> Status:
        if fields is None:
            data = executor.hgetall(record_key)
            if not data:
                return Status.NOT_FOUND
            for name, value in data.items():
                result[name.decode() if isinstance(name, bytes) else name] = value
            return Status.OK

        names = sorted(fields)
        values = executor.hmget(record_key, names)
        if all(value is None for value in values):
            return Status.NOT_FOUND
        for name, value in zip(names, values):
            if value is not None:
                result[name] = value
        return Status.OK

    def read(self, table, key, fields, result) -> Status:
        txn = self._txn
        if txn is None:
            logger.debug(f"read of {key} outside a transaction")
            return Status.ERROR

        record_key = self.get_table(table).record_key(key)
        try:
            if txn.queued:
                # Past MULTI the pipeline only queues, read committed state directly
                return self._fetch(self._client, record_key, fields, result)
            txn.pipeline.watch(record_key)
            return self._fetch(txn.pipeline, record_key, fields, result)
        except redis.RedisError as e:
            logger.debug(f"Error doing read of {key}: {e}")
            return Status.ERROR

    def _queue_write(self, table: str, key: str, values: FieldValueMap, index: bool) -> Status:
        txn = self._txn
        if txn is None:
            logger.debug(f"write of {key} outside a transaction")
            return Status.ERROR

        handle = self.get_table(table)
        if not txn.queued:
            txn.pipeline.multi()
            txn.queued = True
        txn.pipeline.hset(handle.record_key(key), mapping=values)
        if index:
            txn.pipeline.zadd(handle.index_key, {key: 0})
        return Status.OK

    def update(self, table, key, values) -> Status:
        return self._queue_write(table, key, values, index=False)

    def insert(self, table, key, values) -> Status:
        return self._queue_write(table, key, values, index=True)

    def scan(self, table, start_key, record_count, fields, result) -> Status:
        if self._txn is None:
            logger.debug(f"scan from {start_key} outside a transaction")
            return Status.ERROR

        handle = self.get_table(table)
        try:
            keys = self._client.zrangebylex(handle.index_key, f"[{start_key}", "+",
                                            start=0, num=record_count)
            for key in keys:
                row: FieldValueMap = {}
                name = key.decode() if isinstance(key, bytes) else key
                if self._fetch(self._client, handle.record_key(name), fields, row) == Status.OK:
                    result.append(row)
            return Status.OK
        except redis.RedisError as e:
            logger.debug(f"Error doing scan from {start_key}: {e}")
            return Status.ERROR

    def singleton_read(self, table, key, fields, result) -> Status:
        if self._txn is not None:
            logger.error("Client performed singleton read while in transaction context")
            return Status.SINGLETON_WHILE_IN_TRANSACTION

        record_key = self.get_table(table).record_key(key)
        try:
            return self._fetch(self._client, record_key, fields, result)
        except redis.RedisError as e:
            logger.debug(f"Error doing singleton read of {key}: {e}")
            return Status.ERROR

    def singleton_update(self, table, key, values) -> Status:
        if self._txn is not None:
            logger.error("Client performed singleton update while in transaction context")
            return Status.SINGLETON_WHILE_IN_TRANSACTION

        record_key = self.get_table(table).record_key(key)
        try:
            self._client.hset(record_key, mapping=values)
            return Status.OK
        except redis.RedisError as e:
            logger.debug(f"Error doing singleton update of {key}: {e}")
            return Status.ERROR
