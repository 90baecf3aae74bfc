"""Command subscriber for Redis Streams."""

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

from redis.exceptions import RedisError, ResponseError

from src.database.redis_backend import RedisClient
from src.logger.logger import get_logger
from src.logger.types import Category, param

CommandCallback = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


class CommandSubscriber:
    """
    Command subscriber для чтения из Redis Streams с использованием consumer groups.

    Использует XREADGROUP для надёжного распределённого чтения:
    - Автоматически создаёт consumer group если нужно
    - Читает только новые сообщения (>)
    - Публикует ответ в reply stream (XADD) и только потом ACK
    - Graceful shutdown с завершением текущей обработки

    Request message fields: request_id, action, data (JSON), reply_to (optional).
    Reply message fields: request_id, action, reply (JSON).
    """

    def __init__(
        self,
        redis_client: RedisClient,
        consumer_group: str,
        stream: str,
        reply_stream: str,
        reply_maxlen: int = 10_000,
    ) -> None:
        """
        Initialize CommandSubscriber.

        Args:
            redis_client: Redis client instance
            consumer_group: Consumer group name (e.g., "configstore-dev")
            stream: Command stream name (e.g., "config-commands")
            reply_stream: Default reply stream when a request has no reply_to
            reply_maxlen: Approximate cap on reply stream length
        """
        self.redis_client = redis_client
        self.consumer_group = consumer_group
        self.stream = stream
        self.reply_stream = reply_stream
        self.reply_maxlen = reply_maxlen
        self.consumer_name = f"{consumer_group}-consumer-{id(self)}"
        self._stopped = False
        self.logger = get_logger().with_category(Category.MESSENGER)

    async def ensure_group(self) -> None:
        """Create the consumer group (and stream) if it does not exist."""
        redis = self.redis_client.get_redis()
        try:
            await redis.xgroup_create(
                name=self.stream,
                groupname=self.consumer_group,
                id="0",
                mkstream=True,
            )
            self.logger.info(
                f"Created consumer group '{self.consumer_group}' for stream '{self.stream}'"
            )
        except ResponseError as e:
            # BUSYGROUP - группа уже существует, это ОК
            if "BUSYGROUP" not in str(e):
                raise

    async def consume(self, handler: CommandCallback) -> None:
        """
        Start consuming commands.

        Args:
            handler: Async function returning the reply for each command
        """
        await self.ensure_group()
        redis = self.redis_client.get_redis()

        self.logger.info(
            f"Starting command consumer: group={self.consumer_group}, stream={self.stream}"
        )

        while not self._stopped:
            try:
                messages = await redis.xreadgroup(
                    groupname=self.consumer_group,
                    consumername=self.consumer_name,
                    streams={self.stream: ">"},
                    count=10,
                    block=5000,  # Блокировка на 5 сек (для graceful shutdown)
                )

                for stream, stream_messages in messages:
                    for message_id, message_data in stream_messages:
                        await self.handle_message(stream, message_id, message_data, handler)

            except asyncio.CancelledError:
                self.logger.info("Consumer cancelled, stopping...")
                break
            except RedisError as e:
                self.logger.error("Error in consumer loop", e)
                await asyncio.sleep(5)  # Backoff before retry

        self.logger.info("Command consumer stopped")

    async def handle_message(
        self,
        stream: str,
        message_id: str,
        message_data: dict[str, Any],
        handler: CommandCallback,
    ) -> None:
        """
        Handle single command message: dispatch, reply, ACK.

        Args:
            stream: Stream name
            message_id: Message ID in Redis Stream
            message_data: Message data dict
            handler: Handler function
        """
        command = self.parse_command(message_data)
        request_id = command.get("request_id")

        self.logger.debug(
            f"Received command from stream '{stream}'",
            param("request_id", request_id),
            param("action", command.get("action")),
            param("message_id", message_id),
        )

        if command.get("data") is None:
            reply: dict[str, Any] = {
                "success": False,
                "status": 400,
                "error": "Command data is not valid JSON",
            }
        else:
            reply = await handler(command)

        try:
            redis = self.redis_client.get_redis()
            await redis.xadd(
                command.get("reply_to") or self.reply_stream,
                {
                    "request_id": request_id or "",
                    "action": command.get("action") or "",
                    "reply": json.dumps(reply, default=str, ensure_ascii=False),
                },
                maxlen=self.reply_maxlen,
                approximate=True,
            )
            await redis.xack(stream, self.consumer_group, message_id)
        except RedisError as e:
            # НЕ ACK при ошибке - сообщение останется в pending list
            self.logger.error(
                f"Failed to reply to command from stream '{stream}'",
                e,
                param("request_id", request_id),
                param("message_id", message_id),
            )

    @staticmethod
    def parse_command(message_data: dict[str, Any]) -> dict[str, Any]:
        """
        Parse command from Redis Stream message.

        `data` is None when the payload is not a JSON object.
        """
        command: dict[str, Any] = {
            "request_id": message_data.get("request_id"),
            "action": message_data.get("action"),
            "reply_to": message_data.get("reply_to"),
        }

        data_json = message_data.get("data", "{}")
        try:
            data = json.loads(data_json)
        except (json.JSONDecodeError, TypeError):
            data = None
        command["data"] = data if isinstance(data, dict) else None

        return command

    async def stop(self) -> None:
        """Stop consuming commands gracefully."""
        self.logger.info("Stopping command consumer...")
        self._stopped = True
