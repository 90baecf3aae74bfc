"""Unit tests for the structured logger and the Redis Stream sink."""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.logger.logger import Logger
from src.logger.stream_writer import StreamWriter
from src.logger.types import Category, Level, LogEntry, param


def make_entry(message: str = "hello", **kwargs) -> LogEntry:
    return LogEntry(
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        service_name="configstore",
        instance_id="test",
        environment="test",
        level=Level.INFO,
        message=message,
        **kwargs,
    )


@pytest.fixture
def pipe():
    pipeline = MagicMock()
    pipeline.__aenter__.return_value = pipeline
    pipeline.__aexit__.return_value = False
    pipeline.execute = AsyncMock(return_value=[])
    return pipeline


@pytest.fixture
def redis_client(pipe):
    client = MagicMock()
    client.redis = MagicMock()
    client.redis.pipeline = MagicMock(return_value=pipe)
    return client


class TestLogEntry:
    """Tests for LogEntry.to_fields."""

    def test_drops_none_and_stringifies(self):
        fields = make_entry(category=Category.STORE, context={"key": "a"}).to_fields()
        assert fields["level"] == "info"
        assert fields["category"] == "store"
        assert json.loads(fields["context"]) == {"key": "a"}
        assert "request_id" not in fields
        assert all(isinstance(v, str) for v in fields.values())


class TestLogger:
    """Tests for Logger."""

    def test_below_min_level_is_dropped(self, capsys):
        logger = Logger("svc", "test", min_level=Level.WARN)
        logger.info("quiet")
        logger.warn("loud")
        out = capsys.readouterr().out
        assert "quiet" not in out
        assert "loud" in out

    def test_with_category_copies_context(self):
        base = Logger("svc", "test").with_fields(param("a", 1))
        child = base.with_category(Category.BACKEND)
        assert child._category is Category.BACKEND
        assert child._fields == {"a": 1}
        assert base._category is None

    def test_buffers_without_running_loop(self, redis_client):
        writer = StreamWriter(redis_client)
        logger = Logger("svc", "test", writer=writer).with_category(Category.STORE)

        logger.info("Config created", param("key", "app.name"), param("duration_ms", 3))

        assert len(writer.buffer) == 1
        entry = writer.buffer[0]
        assert entry.category is Category.STORE
        assert entry.context == {"key": "app.name"}
        assert entry.duration_ms == 3
        assert entry.function_name == "test_buffers_without_running_loop"

    def test_error_captures_stack_trace(self, redis_client):
        writer = StreamWriter(redis_client)
        logger = Logger("svc", "test", writer=writer)
        try:
            raise ValueError("bad")
        except ValueError as e:
            logger.error("failed", e)

        entry = writer.buffer[0]
        assert entry.error_message == "bad"
        assert "ValueError" in entry.stack_trace


class TestStreamWriter:
    """Tests for StreamWriter."""

    @pytest.mark.asyncio
    async def test_flush_publishes_and_clears(self, redis_client, pipe):
        writer = StreamWriter(redis_client, stream="logs", batch_size=10)
        await writer.write(make_entry("one"))
        await writer.write(make_entry("two"))

        await writer.flush()

        assert pipe.xadd.call_count == 2
        assert pipe.xadd.call_args.args[0] == "logs"
        assert writer.buffer == []

    @pytest.mark.asyncio
    async def test_batch_size_triggers_flush(self, redis_client, pipe):
        writer = StreamWriter(redis_client, batch_size=2)
        await writer.write_batch([make_entry("a"), make_entry("b")])
        pipe.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_holds_buffer_until_connected(self, redis_client):
        redis_client.redis = None
        writer = StreamWriter(redis_client)
        await writer.write(make_entry())
        await writer.flush()
        assert len(writer.buffer) == 1

    @pytest.mark.asyncio
    async def test_redis_failure_falls_back_to_stderr(self, redis_client, pipe, capsys):
        pipe.execute = AsyncMock(side_effect=RedisConnectionError("down"))
        writer = StreamWriter(redis_client)
        await writer.write(make_entry("lost?"))

        await writer.flush()

        assert writer.buffer == []
        assert "lost?" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_close_without_connection_dumps_to_stderr(self, redis_client, capsys):
        redis_client.redis = None
        writer = StreamWriter(redis_client)
        await writer.write(make_entry("pending"))

        await writer.close()

        assert "pending" in capsys.readouterr().err
        await writer.write(make_entry("after close"))
        assert writer.buffer == []
