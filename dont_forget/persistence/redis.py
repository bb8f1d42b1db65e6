import json
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
from uuid import uuid4

from opentelemetry.instrumentation.redis import RedisInstrumentor
from redis.asyncio import Connection, ConnectionPool, Redis, SSLConnection
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import (
    BusyLoadingError,
    ConnectionError as RedisConnectionError,
    RedisError,
)

from dont_forget.helpers.cache import lru_acache
from dont_forget.helpers.config_models.flags import RedisModel
from dont_forget.helpers.logging import logger
from dont_forget.models.error import PersistenceError
from dont_forget.models.readiness import ReadinessEnum
from dont_forget.persistence.iflags import IFlagStore

# Instrument redis
RedisInstrumentor().instrument()


class RedisFlagStore(IFlagStore):
    """
    Flags stored in Redis, one hash per user flag, one field per first level key.

    Values are JSON encoded. Merge and delete are native hash operations, replace is a transaction.
    """

    _config: RedisModel

    def __init__(self, config: RedisModel):
        self._config = config

    async def readiness(self) -> ReadinessEnum:
        """
        Check the readiness of the Redis flags.

        This will validate the ACID properties of the database: Create, Read, Update, Delete.
        """
        test_name = self._redis_key(str(uuid4()), "readiness", "test")
        test_field = "test"
        test_value = "test"
        try:
            async with self._use_client() as client:
                # Test the item does not exist
                assert await client.hget(test_name, test_field) is None
                # Create a new item
                await client.hset(test_name, test_field, test_value)
                # Test the item is the same
                assert (await client.hget(test_name, test_field)).decode() == test_value
                # Delete the item
                await client.delete(test_name)
                # Test the item does not exist
                assert await client.hget(test_name, test_field) is None
            return ReadinessEnum.OK
        except AssertionError:
            logger.exception("Readiness test failed")
        except RedisError:
            logger.exception("Error requesting Redis")
        except Exception:
            logger.exception("Unknown error while checking Redis readiness")
        return ReadinessEnum.FAIL

    async def get(
        self,
        user_id: str,
        namespace: str,
        key: str,
    ) -> dict[str, Any] | None:
        """
        Get a flag.

        If the flag does not exist, return `None`. Raises `PersistenceError` if Redis cannot be read.
        """
        redis_key = self._redis_key(user_id, namespace, key)
        try:
            async with self._use_client() as client:
                fields: dict[bytes, bytes] = await client.hgetall(redis_key)
        except RedisError as e:
            logger.exception("Error getting flag")
            raise PersistenceError(
                f"Failed to read flag {namespace}/{key} of {user_id}"
            ) from e
        if not fields:
            return None
        res = {}
        for field, value in fields.items():
            try:
                res[field.decode()] = json.loads(value)
            except json.JSONDecodeError:
                logger.warning("Skipping invalid JSON for flag field %s", field)
        return res

    async def replace(
        self,
        user_id: str,
        namespace: str,
        key: str,
        value: dict[str, Any],
    ) -> bool:
        """
        Replace the whole flag, in a single transaction.
        """
        redis_key = self._redis_key(user_id, namespace, key)
        try:
            async with self._use_client() as client:
                async with client.pipeline(transaction=True) as pipe:
                    pipe.delete(redis_key)
                    if value:
                        pipe.hset(redis_key, mapping=self._encode(value))
                    await pipe.execute()
        except RedisError:
            logger.exception("Error replacing flag")
            return False
        return True

    async def merge(
        self,
        user_id: str,
        namespace: str,
        key: str,
        value: dict[str, Any],
    ) -> bool:
        """
        Merge the first level keys into the flag, create it if missing.
        """
        if not value:
            return True
        redis_key = self._redis_key(user_id, namespace, key)
        try:
            async with self._use_client() as client:
                await client.hset(redis_key, mapping=self._encode(value))
        except RedisError:
            logger.exception("Error merging flag")
            return False
        return True

    async def delete(
        self,
        user_id: str,
        namespace: str,
        key: str,
        sub_key: str,
    ) -> bool:
        """
        Delete a single key from the flag.
        """
        redis_key = self._redis_key(user_id, namespace, key)
        try:
            async with self._use_client() as client:
                await client.hdel(redis_key, sub_key)
        except RedisError:
            logger.exception("Error deleting flag key")
            return False
        return True

    @lru_acache()
    async def _use_connection_pool(self) -> ConnectionPool:
        """
        Generate the Redis connection pool.
        """
        logger.info("Using Redis flags %s:%s", self._config.host, self._config.port)

        return ConnectionPool(
            # Database location
            db=self._config.database,
            # Reliability
            health_check_interval=10,  # Check the health of the connection every 10 secs
            retry_on_error=[BusyLoadingError, RedisConnectionError],
            retry_on_timeout=True,
            retry=Retry(backoff=ExponentialBackoff(), retries=3),
            socket_connect_timeout=5,  # Give the system sufficient time to connect even under higher CPU conditions
            socket_timeout=5,  # Flags are the primary storage, allow slow writes
            # Deployment
            connection_class=SSLConnection if self._config.ssl else Connection,
            host=self._config.host,
            port=self._config.port,
            # Authentication
            password=self._config.password.get_secret_value()
            if self._config.password
            else None,
        )

    @asynccontextmanager
    async def _use_client(self) -> AsyncGenerator[Redis]:
        """
        Return a Redis connection.
        """
        async with Redis(
            auto_close_connection_pool=False,
            connection_pool=await self._use_connection_pool(),
        ) as client:
            yield client

    def _redis_key(self, user_id: str, namespace: str, key: str) -> str:
        return f"{self._config.prefix}:{self._flag_key(user_id, namespace, key)}"

    @staticmethod
    def _encode(value: dict[str, Any]) -> dict[str, str]:
        return {field: json.dumps(item) for field, item in value.items()}
