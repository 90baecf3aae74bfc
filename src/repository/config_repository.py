"""Configuration repository over a key-value backend."""

import json
import time
from collections.abc import Iterable

from src.database.backend import KeyValueBackend
from src.domain.codec import decode_outcome, is_valid_json, value_to_text
from src.domain.config import ConfigEntry, ConfigType, ConfigUpdate, is_valid_key
from src.domain.errors import AlreadyExistsError, NotFoundError, ValidationError
from src.logger.logger import get_logger
from src.logger.types import Category, param

DEFAULT_KEY_PREFIX = "config:"
DEFAULT_INDEX_KEY = "config:list"


def now_ms() -> int:
    """Current time in milliseconds since epoch."""
    return int(time.time() * 1000)


class ConfigRepository:
    """
    Repository for configuration entries.

    Each entry is stored as a JSON record under `<prefix><key>`; all live
    keys are tracked in the index set. A key is in the index if and only if
    its record exists: create writes both, delete removes both (record
    first), update touches the record only. get_all() skips index members
    whose record is missing.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        index_key: str = DEFAULT_INDEX_KEY,
    ) -> None:
        """
        Initialize ConfigRepository.

        Args:
            backend: Key-value backend
            key_prefix: Namespace prefix for entry records
            index_key: Name of the set holding all live keys
        """
        self.backend = backend
        self.key_prefix = key_prefix
        self.index_key = index_key
        self.logger = get_logger().with_category(Category.STORE)

    def _record_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def create(
        self,
        key: str,
        value: str,
        type_: ConfigType | str,
        description: str | None = None,
        tags: list[str] | None = None,
    ) -> ConfigEntry:
        """
        Create a new configuration entry.

        Args:
            key: Configuration key (letter first, then letters, digits, `.`, `_`, `-`)
            value: Stored string value
            type_: One of string, number, boolean, json
            description: Optional description
            tags: Optional tags

        Returns:
            Stored ConfigEntry

        Raises:
            ValidationError: Bad key, unknown type or malformed JSON
            AlreadyExistsError: Key already present
        """
        if not key or not is_valid_key(key):
            raise ValidationError(
                "Invalid config key: must start with a letter and contain only "
                "letters, digits, '.', '_' and '-'",
                key,
            )
        try:
            config_type = ConfigType(type_)
        except ValueError as e:
            raise ValidationError(f"Unknown config type: {type_}", key) from e
        if value is None:
            raise ValidationError("Missing required field: value", key)
        if config_type is ConfigType.JSON and not is_valid_json(value):
            raise ValidationError("Invalid JSON value", key)
        _check_metadata(key, description, tags)

        record_key = self._record_key(key)
        if await self.backend.exists(record_key):
            raise AlreadyExistsError(key)

        now = now_ms()
        entry = ConfigEntry(
            key=key,
            value=value,
            type=config_type,
            description=description,
            tags=list(tags or []),
            created_at=now,
            updated_at=now,
        )

        # SET NX закрывает гонку между exists() и записью
        written = await self.backend.set_and_add(
            record_key,
            json.dumps(entry.to_record(), ensure_ascii=False),
            self.index_key,
            key,
        )
        if not written:
            raise AlreadyExistsError(key)

        self.logger.info(
            "Config created",
            param("key", key),
            param("type", config_type.value),
        )
        return entry

    async def get(self, key: str) -> ConfigEntry | None:
        """
        Get configuration entry by key.

        Args:
            key: Configuration key

        Returns:
            ConfigEntry or None if not found
        """
        raw = await self.backend.get(self._record_key(key))
        if raw is None:
            return None
        return self._parse_record(raw)

    async def get_all(self) -> list[ConfigEntry]:
        """
        Get all configuration entries, most recently updated first.

        Returns:
            List of ConfigEntry
        """
        keys = await self.backend.set_members(self.index_key)
        if not keys:
            return []

        # Сортируем ключи, чтобы порядок при равных updated_at был детерминирован
        ordered = sorted(keys)
        records = await self.backend.multi_get(*(self._record_key(k) for k in ordered))

        entries = []
        for key, raw in zip(ordered, records):
            if raw is None:
                self.logger.debug("Skipping dangling index member", param("key", key))
                continue
            entry = self._parse_record(raw)
            if entry is not None:
                entries.append(entry)

        entries.sort(key=lambda e: e.updated_at, reverse=True)
        return entries

    async def update(self, key: str, update: ConfigUpdate) -> ConfigEntry:
        """
        Update value, description and/or tags of an existing entry.

        Omitted (None) fields keep their current value. Type and created_at
        never change.

        Raises:
            ValidationError: description is not a string or tags not a list of strings
            NotFoundError: No entry for key, or it was deleted before the write
        """
        _check_metadata(key, update.description, update.tags)
        existing = await self.get(key)
        if existing is None:
            raise NotFoundError(key)

        # updated_at строго растёт даже в пределах одной миллисекунды
        updated = existing.merged(update, max(now_ms(), existing.updated_at + 1))
        # SET XX: параллельный delete не должен воскрешать запись без индекса
        written = await self.backend.set_if_exists(
            self._record_key(key),
            json.dumps(updated.to_record(), ensure_ascii=False),
        )
        if not written:
            raise NotFoundError(key)

        self.logger.info(
            "Config updated",
            param("key", key),
            param("value_changed", update.value is not None),
        )
        return updated

    async def delete(self, key: str) -> None:
        """
        Delete an entry and its index membership.

        Raises:
            NotFoundError: No entry for key
        """
        record_key = self._record_key(key)
        if not await self.backend.exists(record_key):
            raise NotFoundError(key)

        await self.backend.delete_and_remove([record_key], self.index_key, [key])
        self.logger.info("Config deleted", param("key", key))

    async def batch_delete(self, keys: Iterable[str]) -> None:
        """
        Delete many entries without checking existence. Missing keys are ignored.

        Args:
            keys: Configuration keys
        """
        unique = list(dict.fromkeys(keys))
        if not unique:
            return

        await self.backend.delete_and_remove(
            [self._record_key(k) for k in unique], self.index_key, unique
        )
        self.logger.info("Configs batch deleted", param("count", len(unique)))

    async def search(self, keyword: str | None) -> list[ConfigEntry]:
        """
        Case-insensitive substring search over key, value, description and tags.

        Args:
            keyword: Search keyword; empty returns every entry

        Returns:
            Matching entries in get_all() order
        """
        entries = await self.get_all()
        if not keyword:
            return entries

        needle = keyword.lower()
        return [e for e in entries if self._matches(e, needle)]

    def _matches(self, entry: ConfigEntry, needle: str) -> bool:
        outcome = decode_outcome(entry.value, entry.type)
        if outcome.raw_fallback:
            self.logger.trace(
                "Stored value does not parse for its type, matching raw string",
                param("key", entry.key),
                param("type", entry.type.value),
            )
        return (
            needle in entry.key.lower()
            or needle in value_to_text(outcome.value).lower()
            or (entry.description is not None and needle in entry.description.lower())
            or any(needle in tag.lower() for tag in entry.tags)
        )

    def _parse_record(self, raw: str) -> ConfigEntry | None:
        """Parse a stored record; corrupt records are logged and skipped."""
        try:
            return ConfigEntry.from_record(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            self.logger.warn(
                "Corrupt config record",
                param("error", str(e)),
                param("record", raw[:200]),
            )
            return None


def _check_metadata(key: str, description: object, tags: object) -> None:
    if description is not None and not isinstance(description, str):
        raise ValidationError("Description must be a string", key)
    if tags is not None and (
        not isinstance(tags, list) or not all(isinstance(t, str) for t in tags)
    ):
        raise ValidationError("Tags must be a list of strings", key)
