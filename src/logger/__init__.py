"""Logger module for the configstore service."""

from src.logger.logger import Logger, get_logger, init_logger
from src.logger.stream_writer import StreamWriter
from src.logger.types import Category, Field, Level, LogEntry

__all__ = [
    "Logger",
    "get_logger",
    "init_logger",
    "StreamWriter",
    "Category",
    "Level",
    "LogEntry",
    "Field",
]
