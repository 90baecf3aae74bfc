"""Configuration domain models."""

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from src.domain.errors import ValidationError

KEY_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9._-]*$")


class ConfigType(str, Enum):
    """Logical type of a configuration value."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"


@dataclass
class ConfigEntry:
    """
    Single configuration entry.

    `value` always holds the string-encoded form; the logical value is
    produced on demand by the value codec (see `decoded_value`).
    Timestamps are milliseconds since epoch.
    """

    key: str
    value: str
    type: ConfigType
    description: str | None = None
    tags: list[str] = field(default_factory=list)
    created_at: int = 0
    updated_at: int = 0

    @property
    def decoded_value(self) -> Any:  # noqa: ANN401
        """Logical value decoded according to `type`."""
        from src.domain.codec import decode_value

        return decode_value(self.value, self.type)

    def to_record(self) -> dict[str, Any]:
        """
        Serialize for storage.

        Field names follow the layout already persisted by existing
        deployments (camelCase, optional fields omitted).
        """
        record: dict[str, Any] = {
            "key": self.key,
            "value": self.value,
            "type": self.type.value,
        }
        if self.description is not None:
            record["description"] = self.description
        if self.tags:
            record["tags"] = list(self.tags)
        record["createdAt"] = self.created_at
        record["updatedAt"] = self.updated_at
        return record

    def to_response(self) -> dict[str, Any]:
        """Same shape as the stored record, with the value decoded."""
        response = self.to_record()
        response["value"] = self.decoded_value
        return response

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "ConfigEntry":
        """
        Create ConfigEntry from a stored record.

        Args:
            data: Parsed JSON record

        Returns:
            ConfigEntry instance
        """
        return cls(
            key=data["key"],
            value=str(data.get("value", "")),
            type=ConfigType(data.get("type", ConfigType.STRING.value)),
            description=_stored_text(data.get("description")),
            tags=_stored_tags(data.get("tags")),
            created_at=int(data.get("createdAt", 0)),
            updated_at=int(data.get("updatedAt", 0)),
        )

    def merged(self, update: "ConfigUpdate", updated_at: int) -> "ConfigEntry":
        """Return a copy with the supplied update fields applied. Type never changes."""
        return replace(
            self,
            value=self.value if update.value is None else update.value,
            description=(
                self.description if update.description is None else update.description
            ),
            tags=list(self.tags) if update.tags is None else list(update.tags),
            updated_at=updated_at,
        )


@dataclass
class ConfigUpdate:
    """Partial update. `None` means "leave unchanged"."""

    value: str | None = None
    description: str | None = None
    tags: list[str] | None = None

    @classmethod
    def from_request(cls, data: dict[str, Any]) -> "ConfigUpdate":
        """
        Build from a request payload, ignoring unknown fields.

        Raises:
            ValidationError: description is not a string or tags is not a list
        """
        value = data.get("value")
        return cls(
            value=None if value is None else str(value),
            description=description_from_request(data),
            tags=tags_from_request(data),
        )


def is_valid_key(key: str) -> bool:
    """Check key against the identifier pattern."""
    return bool(KEY_PATTERN.match(key))


def description_from_request(data: dict[str, Any]) -> str | None:
    """Optional `description` of a request payload; must be a string."""
    description = data.get("description")
    if description is not None and not isinstance(description, str):
        raise ValidationError("description must be a string")
    return description


def tags_from_request(data: dict[str, Any]) -> list[str] | None:
    """Optional `tags` of a request payload; must be a list."""
    tags = data.get("tags")
    if tags is None:
        return None
    if not isinstance(tags, list):
        raise ValidationError("tags must be a list")
    return [str(t) for t in tags]


def _stored_text(value: Any) -> str | None:  # noqa: ANN401
    # Старые записи могут содержать не строку
    if value is None or isinstance(value, str):
        return value
    return str(value)


def _stored_tags(value: Any) -> list[str]:  # noqa: ANN401
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        return []
    return [str(t) for t in value]
