"""Types and constants for structured logging."""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class Level(str, Enum):
    """Log level определяет уровень важности лога."""

    TRACE = "trace"  # Детальная трассировка выполнения
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"  # Ошибки (recoverable)
    FATAL = "fatal"  # Критические ошибки (требуют вмешательства)
    PANIC = "panic"

    @property
    def severity(self) -> int:
        """Numeric order used for level filtering."""
        return list(Level).index(self)


class Category(str, Enum):
    """Category определяет категорию события для группировки логов."""

    STORE = "store"  # Операции с конфигурацией
    BACKEND = "backend"  # Redis key-value backend
    MESSENGER = "messenger"  # Command transport (Redis Streams)
    LIFECYCLE = "lifecycle"  # Startup / shutdown


def utcnow() -> datetime:
    """Current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


@dataclass
class LogEntry:
    """LogEntry представляет одну запись лога для публикации в log stream."""

    timestamp: datetime
    service_name: str
    instance_id: str
    environment: str
    level: Level
    message: str
    ingestion_time: datetime = field(default_factory=utcnow)
    node_name: str | None = None
    category: Category | None = None
    request_id: str | None = None
    function_name: str | None = None
    file_path: str | None = None
    line_number: int | None = None
    error_message: str | None = None
    stack_trace: str | None = None
    context: dict[str, Any] | None = None
    duration_ms: int | None = None

    def to_fields(self) -> dict[str, str]:
        """Flatten the entry into string fields for XADD."""
        data: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "ingestion_time": self.ingestion_time.isoformat(),
            "service_name": self.service_name,
            "instance_id": self.instance_id,
            "node_name": self.node_name,
            "environment": self.environment,
            "level": self.level.value,
            "category": self.category.value if self.category else None,
            "request_id": self.request_id,
            "function_name": self.function_name,
            "file_path": self.file_path,
            "line_number": self.line_number,
            "message": self.message,
            "error_message": self.error_message,
            "stack_trace": self.stack_trace,
            "context": (
                json.dumps(self.context, default=str, ensure_ascii=False)
                if self.context is not None
                else None
            ),
            "duration_ms": self.duration_ms,
        }
        # Redis streams не принимают None
        return {k: str(v) for k, v in data.items() if v is not None}


@dataclass
class Field:
    """Field для структурированных данных в логах."""

    key: str
    value: Any


# Helper функции для создания полей


def category(cat: Category) -> Field:
    """Создаёт поле для категории лога."""
    return Field(key="_category", value=cat)


def param(key: str, value: Any) -> Field:
    """Универсальная функция для добавления параметра."""
    return Field(key=key, value=value)

