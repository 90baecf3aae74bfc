"""
configstore - dynamic configuration store

Event-driven service без HTTP сервера.
Читает команды (create/get/update/delete/list/batch_delete/health) из Redis
Stream, выполняет их над хранилищем конфигурации в Redis, публикует ответы.
"""

import asyncio
import contextlib
import signal
from functools import partial

from src.config.settings import Settings
from src.database.redis_backend import RedisBackend, RedisClient
from src.events.subscriber import CommandSubscriber
from src.handlers.command_handler import CommandHandler
from src.logger.logger import get_logger, init_logger
from src.logger.stream_writer import StreamWriter
from src.logger.types import Category, category, param
from src.repository.config_repository import ConfigRepository


async def shutdown(
    redis_client: RedisClient,
    subscriber: CommandSubscriber,
    log_writer: StreamWriter,
) -> None:
    """Graceful shutdown."""
    logger = get_logger()
    logger.info("Shutting down configstore...", category(Category.LIFECYCLE))

    # 1. Остановить чтение новых команд
    await subscriber.stop()

    # 2. Сбросить оставшиеся логи, пока соединение живо
    logger.info("Shutdown complete", category(Category.LIFECYCLE))
    await log_writer.close()

    # 3. Закрыть соединение
    await redis_client.close()


async def main() -> None:
    """Main entry point."""
    settings = Settings()

    redis_client = RedisClient(settings.redis)

    # Logger пишет в Redis Stream; до подключения записи копятся в буфере
    log_writer = StreamWriter(
        redis_client,
        stream=settings.log.stream,
        batch_size=settings.log.batch_size,
        flush_interval=settings.log.flush_interval,
    )
    init_logger(
        service_name=settings.service_name,
        environment=settings.environment,
        writer=log_writer,
        level=settings.log_level,
    )
    logger = get_logger()

    logger.info(
        "Starting configstore",
        category(Category.LIFECYCLE),
        param("environment", settings.environment),
        param("service_name", settings.service_name),
        param("version", settings.service_version),
    )

    try:
        await redis_client.connect()
    except ConnectionError:
        await log_writer.close()
        raise
    log_writer.start()

    logger.info(
        "Connected to Redis",
        category(Category.BACKEND),
        param("host", settings.redis.host),
        param("port", settings.redis.port),
        param("db", settings.redis.db),
    )

    config_repository = ConfigRepository(
        RedisBackend(redis_client),
        key_prefix=settings.store.key_prefix,
        index_key=settings.store.index_key,
    )
    command_handler = CommandHandler(config_repository, redis_client)

    subscriber = CommandSubscriber(
        redis_client=redis_client,
        consumer_group=settings.transport.consumer_group,
        stream=settings.transport.command_stream,
        reply_stream=settings.transport.reply_stream,
        reply_maxlen=settings.transport.reply_maxlen,
    )

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def signal_handler(sig: int) -> None:
        logger.info("Received signal", param("signal", sig))
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, partial(signal_handler, sig))

    try:
        logger.info(
            "Starting command consumer",
            category(Category.MESSENGER),
            param("consumer_group", settings.transport.consumer_group),
            param("stream", settings.transport.command_stream),
        )

        consumer_task = asyncio.create_task(subscriber.consume(command_handler.handle))
        shutdown_task = asyncio.create_task(shutdown_event.wait())

        done, pending = await asyncio.wait(
            [consumer_task, shutdown_task],
            return_when=asyncio.FIRST_COMPLETED,
        )

        for task in pending:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        if consumer_task in done and (err := consumer_task.exception()) is not None:
            logger.error("Command consumer exited", err, category(Category.MESSENGER))

    except Exception as e:
        logger.error("Fatal error in command consumer", e, param("error", str(e)))
    finally:
        await shutdown(redis_client, subscriber, log_writer)


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
