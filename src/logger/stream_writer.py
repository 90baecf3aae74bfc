"""Redis Stream writer для логов с батчингом."""

import asyncio
import contextlib
import json
import sys
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from redis.exceptions import RedisError

from src.logger.types import LogEntry

if TYPE_CHECKING:
    from src.database.redis_backend import RedisClient


class StreamWriter:
    """StreamWriter публикует логи в Redis Stream (XADD) с батчингом."""

    def __init__(
        self,
        redis_client: "RedisClient",
        stream: str = "logs",
        batch_size: int = 100,
        flush_interval: float = 5.0,
        maxlen: int = 100_000,
    ) -> None:
        """
        Initialize StreamWriter.

        Args:
            redis_client: Redis client (может быть ещё не подключён)
            stream: Имя stream для логов
            batch_size: Размер батча для flush
            flush_interval: Интервал автоматического flush в секундах
            maxlen: Приблизительная длина stream (XADD MAXLEN ~)
        """
        self.redis_client = redis_client
        self.stream = stream
        self.batch_size = batch_size
        self.flush_interval = flush_interval
        self.maxlen = maxlen
        self.buffer: list[LogEntry] = []
        self._lock = asyncio.Lock()
        self._flush_task: asyncio.Task[None] | None = None
        self._closed = False

    def start(self) -> None:
        """Запускает фоновый flush. Вызывать после RedisClient.connect()."""
        if self._flush_task is None:
            self._flush_task = asyncio.create_task(self._background_flush())

    async def write(self, entry: LogEntry) -> None:
        """Добавляет запись в буфер."""
        if self._closed:
            return

        async with self._lock:
            self.buffer.append(entry)

            if len(self.buffer) >= self.batch_size:
                await self._flush_locked()

    async def write_batch(self, entries: Sequence[LogEntry]) -> None:
        """Записывает батч записей."""
        if self._closed:
            return

        async with self._lock:
            self.buffer.extend(entries)

            if len(self.buffer) >= self.batch_size:
                await self._flush_locked()

    async def flush(self) -> None:
        """Принудительно публикует буфер."""
        async with self._lock:
            await self._flush_locked()

    async def _flush_locked(self) -> None:
        """Публикует буфер (должен вызываться с захваченным lock)."""
        if not self.buffer:
            return

        redis = self.redis_client.redis
        if redis is None:
            # Соединения ещё нет - держим буфер до следующего flush
            return

        try:
            async with redis.pipeline(transaction=False) as pipe:
                for entry in self.buffer:
                    pipe.xadd(
                        self.stream,
                        entry.to_fields(),  # type: ignore[arg-type]
                        maxlen=self.maxlen,
                        approximate=True,
                    )
                await pipe.execute()

            self.buffer.clear()

        except RedisError as e:
            print(
                f"[LOGGER ERROR] Failed to publish logs to stream {self.stream}: {e}",
                file=sys.stderr,
            )
            self._fallback_to_stderr()

    def _fallback_to_stderr(self) -> None:
        """Записывает логи в stderr если Redis недоступен."""
        for entry in self.buffer:
            data: dict[str, Any] = {
                "timestamp": entry.timestamp.isoformat(),
                "level": entry.level.value,
                "category": entry.category.value if entry.category else None,
                "message": entry.message,
                "service_name": entry.service_name,
                "environment": entry.environment,
            }
            if entry.error_message:
                data["error"] = entry.error_message
            if entry.context:
                data["context"] = entry.context

            print(json.dumps(data, default=str, ensure_ascii=False), file=sys.stderr)
        self.buffer.clear()

    async def _background_flush(self) -> None:
        """Периодически сбрасывает буфер."""
        while not self._closed:
            try:
                await asyncio.sleep(self.flush_interval)
                await self.flush()
            except asyncio.CancelledError:
                break
            except Exception as e:
                print(
                    f"[LOGGER ERROR] Background flush failed: {e}",
                    file=sys.stderr,
                )

    async def close(self) -> None:
        """Закрывает writer и сбрасывает оставшиеся логи."""
        self._closed = True

        if self._flush_task:
            self._flush_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._flush_task
            self._flush_task = None

        async with self._lock:
            await self._flush_locked()
            # Redis так и не подключился - не теряем логи
            if self.buffer:
                self._fallback_to_stderr()
