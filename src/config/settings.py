"""Settings module for the configstore service."""

import os


def _read_secret(secret_path: str, env_name: str) -> str | None:
    """Read a value from Docker secret or environment."""
    try:
        with open(secret_path) as f:
            return f.read().strip()
    except FileNotFoundError:
        return os.getenv(env_name)


class RedisConfig:
    """Redis configuration (key-value backend and messenger)."""

    def __init__(self) -> None:
        self.host = os.getenv("REDIS_HOST", "localhost")
        self.port = int(os.getenv("REDIS_PORT", "6379"))
        self.db = int(os.getenv("REDIS_DB", "0"))
        self.password = _read_secret("/run/secrets/redis_password", "REDIS_PASSWORD")
        self.socket_timeout = float(os.getenv("REDIS_SOCKET_TIMEOUT", "5"))
        # Попытки подключения при старте (exponential backoff)
        self.max_retries = int(os.getenv("REDIS_MAX_RETRIES", "10"))


class StoreConfig:
    """Persisted layout of configuration entries."""

    def __init__(self) -> None:
        self.key_prefix = os.getenv("CONFIG_KEY_PREFIX", "config:")
        self.index_key = os.getenv("CONFIG_INDEX_KEY", "config:list")


class TransportConfig:
    """Command stream configuration."""

    def __init__(self) -> None:
        self.command_stream = os.getenv("COMMAND_STREAM", "config-commands")
        self.reply_stream = os.getenv("REPLY_STREAM", "config-replies")
        self.consumer_group = f"configstore-{os.getenv('ENVIRONMENT', 'dev')}"
        self.reply_maxlen = int(os.getenv("REPLY_STREAM_MAXLEN", "10000"))


class LogConfig:
    """Structured log sink configuration."""

    def __init__(self) -> None:
        self.stream = os.getenv("LOG_STREAM", "logs")
        self.batch_size = int(os.getenv("LOG_BATCH_SIZE", "100"))
        self.flush_interval = float(os.getenv("LOG_FLUSH_INTERVAL", "5.0"))


class Settings:
    """Application settings."""

    def __init__(self) -> None:
        # Service info
        self.environment = os.getenv("ENVIRONMENT", "dev")
        self.service_name = os.getenv("SERVICE_NAME", "configstore")
        self.service_version = os.getenv("SERVICE_VERSION", "0.1.0")
        self.log_level = os.getenv("LOG_LEVEL", "debug")

        self.redis = RedisConfig()
        self.store = StoreConfig()
        self.transport = TransportConfig()
        self.log = LogConfig()
