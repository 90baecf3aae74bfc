"""Redis client and key-value backend implementation."""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import redis.asyncio as redis_async
from redis.asyncio.client import Redis
from redis.exceptions import RedisError

from src.domain.errors import BackendUnavailableError
from src.logger.logger import get_logger
from src.logger.types import Category, param

if TYPE_CHECKING:
    from src.config.settings import RedisConfig


class RedisClient:
    """Redis connection holder with startup retry logic."""

    def __init__(self, config: "RedisConfig") -> None:
        """
        Initialize Redis client.

        Args:
            config: Redis configuration with host, port, db
        """
        self.config = config
        self.redis: Redis | None = None

    async def connect(self, max_retries: int | None = None, initial_delay: float = 1.0) -> None:
        """
        Connect to Redis with retry logic.

        Args:
            max_retries: Maximum connection attempts (default from config)
            initial_delay: Initial delay between retries in seconds (default 1.0)

        Raises:
            ConnectionError: If unable to connect after max_retries
        """
        logger = get_logger().with_category(Category.BACKEND)
        max_retries = max_retries or self.config.max_retries
        delay = initial_delay
        last_error: Exception | None = None

        for attempt in range(1, max_retries + 1):
            try:
                self.redis = redis_async.Redis(
                    host=self.config.host,
                    port=self.config.port,
                    db=self.config.db,
                    password=self.config.password,
                    decode_responses=True,
                    socket_keepalive=True,
                    socket_connect_timeout=5,
                    socket_timeout=self.config.socket_timeout,
                    retry_on_timeout=True,
                )

                # Проверяем подключение
                await self.redis.ping()  # type: ignore[misc]
                return

            except RedisError as e:
                last_error = e
                if self.redis is not None:
                    await self.redis.aclose()
                    self.redis = None
                if attempt < max_retries:
                    logger.warn(
                        f"Redis connection attempt {attempt}/{max_retries} failed, retrying...",
                        param("host", self.config.host),
                        param("port", self.config.port),
                        param("delay", delay),
                        param("error", str(e)),
                    )
                    await asyncio.sleep(delay)
                    delay = min(delay * 2, 30.0)  # Exponential backoff, max 30s

        logger.error(
            f"Failed to connect to Redis after {max_retries} attempts",
            last_error,
            param("host", self.config.host),
            param("port", self.config.port),
        )
        raise ConnectionError(
            f"Failed to connect to Redis at {self.config.host}:{self.config.port} "
            f"after {max_retries} attempts"
        )

    async def close(self) -> None:
        """Close Redis connection."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None

    def get_redis(self) -> Redis:
        """
        Get Redis client instance.

        Returns:
            Redis client

        Raises:
            RuntimeError: If not connected
        """
        if self.redis is None:
            raise RuntimeError("RedisClient not connected. Call connect() first.")
        return self.redis

    async def health(self) -> dict[str, Any]:
        """
        Probe Redis: PING latency and server version.

        Returns:
            Dict with connected flag, version and response time (or error)
        """
        try:
            redis = self.get_redis()
            start = time.monotonic()
            await redis.ping()  # type: ignore[misc]
            response_ms = int((time.monotonic() - start) * 1000)
            info = await redis.info("server")
            return {
                "connected": True,
                "version": str(info.get("redis_version", "unknown")),
                "response_time": f"{response_ms}ms",
            }
        except (RedisError, RuntimeError) as e:
            get_logger().with_category(Category.BACKEND).error(
                "Redis health check failed", e
            )
            return {"connected": False, "error": str(e)}


class RedisBackend:
    """KeyValueBackend over Redis strings and sets."""

    def __init__(self, redis_client: RedisClient) -> None:
        """
        Initialize RedisBackend.

        Args:
            redis_client: Connected (or later connected) Redis client
        """
        self.redis_client = redis_client
        self.logger = get_logger().with_category(Category.BACKEND)

    @asynccontextmanager
    async def _command(self, name: str) -> AsyncIterator[Redis]:
        """Yield the connection and translate Redis faults into BackendUnavailableError."""
        try:
            yield self.redis_client.get_redis()
        except (RedisError, RuntimeError) as e:
            self.logger.error(
                f"Redis command failed: {name}",
                e,
                param("command", name),
            )
            raise BackendUnavailableError(f"Backend unavailable: {e}") from e

    async def get(self, key: str) -> str | None:
        async with self._command("GET") as redis:
            return await redis.get(key)  # type: ignore[no-any-return]

    async def set(self, key: str, value: str) -> None:
        async with self._command("SET") as redis:
            await redis.set(key, value)

    async def set_if_exists(self, key: str, value: str) -> bool:
        async with self._command("SET XX") as redis:
            return bool(await redis.set(key, value, xx=True))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        async with self._command("DEL") as redis:
            return int(await redis.delete(*keys))

    async def exists(self, key: str) -> bool:
        async with self._command("EXISTS") as redis:
            return bool(await redis.exists(key))

    async def set_add(self, set_name: str, *members: str) -> int:
        if not members:
            return 0
        async with self._command("SADD") as redis:
            return int(await redis.sadd(set_name, *members))  # type: ignore[misc]

    async def set_remove(self, set_name: str, *members: str) -> int:
        if not members:
            return 0
        async with self._command("SREM") as redis:
            return int(await redis.srem(set_name, *members))  # type: ignore[misc]

    async def set_members(self, set_name: str) -> set[str]:
        async with self._command("SMEMBERS") as redis:
            return set(await redis.smembers(set_name))  # type: ignore[misc]

    async def multi_get(self, *keys: str) -> list[str | None]:
        if not keys:
            return []
        async with self._command("MGET") as redis:
            return list(await redis.mget(keys))

    async def set_and_add(self, key: str, value: str, set_name: str, member: str) -> bool:
        """SET NX + SADD in one MULTI/EXEC."""
        async with self._command("MULTI SET NX SADD") as redis:
            async with redis.pipeline(transaction=True) as pipe:
                pipe.set(key, value, nx=True)
                pipe.sadd(set_name, member)
                written, _ = await pipe.execute()
            return bool(written)

    async def delete_and_remove(
        self, keys: list[str], set_name: str, members: list[str]
    ) -> None:
        """DEL (records first) + SREM in one MULTI/EXEC."""
        if not keys and not members:
            return
        async with self._command("MULTI DEL SREM") as redis:
            async with redis.pipeline(transaction=True) as pipe:
                if keys:
                    pipe.delete(*keys)
                if members:
                    pipe.srem(set_name, *members)
                await pipe.execute()
