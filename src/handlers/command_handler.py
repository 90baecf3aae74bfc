"""Command handlers for configuration requests arriving via messenger."""

from collections.abc import Awaitable, Callable
from typing import Any

from src.database.redis_backend import RedisClient
from src.domain.config import (
    ConfigEntry,
    ConfigUpdate,
    description_from_request,
    tags_from_request,
)
from src.domain.errors import ConfigStoreError, NotFoundError, ValidationError
from src.logger.logger import get_logger
from src.logger.types import Category, param
from src.repository.config_repository import ConfigRepository

# Маппинг kind ошибки -> status code ответа
STATUS_BY_KIND: dict[str, int] = {
    "validation": 400,
    "already_exists": 400,
    "not_found": 404,
    "backend_unavailable": 500,
}


def _entries(entries: list[ConfigEntry]) -> list[dict[str, Any]]:
    return [e.to_response() for e in entries]


class CommandHandler:
    """
    Handler for configuration commands from messenger (Redis Streams).

    Routes commands by action to repository operations and builds a
    reply dict with `success`, `status` and `data` or `error`.
    """

    def __init__(
        self,
        config_repository: ConfigRepository,
        redis_client: RedisClient | None = None,
    ) -> None:
        """
        Initialize CommandHandler.

        Args:
            config_repository: Repository for configuration entries
            redis_client: Redis client used for the health action
        """
        self.config_repository = config_repository
        self.redis_client = redis_client
        self.logger = get_logger().with_category(Category.MESSENGER)

        self._handlers: dict[str, Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]] = {
            "list": self._handle_list,
            "get": self._handle_get,
            "create": self._handle_create,
            "update": self._handle_update,
            "delete": self._handle_delete,
            "batch_delete": self._handle_batch_delete,
            "health": self._handle_health,
        }

    async def handle(self, command: dict[str, Any]) -> dict[str, Any]:
        """
        Handle incoming command.

        Args:
            command: Command dict with request_id, action and data

        Returns:
            Reply dict (never raises for store errors)
        """
        action = command.get("action")
        request_id = command.get("request_id")
        data = command.get("data") or {}
        logger = self.logger.with_request_id(request_id) if request_id else self.logger

        handler = self._handlers.get(action or "")
        if handler is None:
            logger.warn(f"Unknown action: {action}")
            return {"success": False, "status": 400, "error": f"Unknown action: {action}"}

        try:
            reply = await handler(data)
        except ConfigStoreError as e:
            status = STATUS_BY_KIND.get(e.kind, 500)
            logger.warn(
                f"Command rejected: {action}",
                param("kind", e.kind),
                param("error", e.message),
            )
            return {"success": False, "status": status, "kind": e.kind, "error": e.message}
        except Exception as e:
            logger.error(f"Failed to process command: {action}", e)
            return {"success": False, "status": 500, "error": f"{action} failed"}

        logger.debug(
            f"Command processed: {action}",
            param("status", reply.get("status")),
        )
        return reply

    async def _handle_list(self, data: dict[str, Any]) -> dict[str, Any]:
        """
        List or search entries.

        Optional fields:
            - search: keyword for substring search
            - group_by_key: return {key: [entry]} instead of a list
        """
        keyword = data.get("search")
        if keyword:
            entries = await self.config_repository.search(str(keyword))
        else:
            entries = await self.config_repository.get_all()

        if data.get("group_by_key"):
            grouped: dict[str, list[dict[str, Any]]] = {}
            for entry in entries:
                grouped.setdefault(entry.key, []).append(entry.to_response())
            return {"success": True, "status": 200, "data": grouped}

        return {
            "success": True,
            "status": 200,
            "data": _entries(entries),
            "total": len(entries),
        }

    async def _handle_get(self, data: dict[str, Any]) -> dict[str, Any]:
        key = _require(data, "key")
        entry = await self.config_repository.get(key)
        if entry is None:
            raise NotFoundError(key)
        return {"success": True, "status": 200, "data": entry.to_response()}

    async def _handle_create(self, data: dict[str, Any]) -> dict[str, Any]:
        missing = [f for f in ("key", "value", "type") if data.get(f) in (None, "")]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        entry = await self.config_repository.create(
            key=str(data["key"]),
            value=str(data["value"]),
            type_=str(data["type"]),
            description=description_from_request(data),
            tags=tags_from_request(data),
        )
        return {"success": True, "status": 201, "data": entry.to_response()}

    async def _handle_update(self, data: dict[str, Any]) -> dict[str, Any]:
        key = _require(data, "key")
        entry = await self.config_repository.update(key, ConfigUpdate.from_request(data))
        return {"success": True, "status": 200, "data": entry.to_response()}

    async def _handle_delete(self, data: dict[str, Any]) -> dict[str, Any]:
        key = _require(data, "key")
        await self.config_repository.delete(key)
        return {"success": True, "status": 200, "message": f"Deleted {key}"}

    async def _handle_batch_delete(self, data: dict[str, Any]) -> dict[str, Any]:
        keys = data.get("keys")
        if not isinstance(keys, list) or not keys:
            raise ValidationError("keys must be a non-empty list")

        await self.config_repository.batch_delete(str(k) for k in keys)
        return {
            "success": True,
            "status": 200,
            "message": f"Deleted {len(keys)} configs",
        }

    async def _handle_health(self, data: dict[str, Any]) -> dict[str, Any]:
        if self.redis_client is None:
            return {"success": False, "status": 500, "status_text": "unhealthy"}

        redis_status = await self.redis_client.health()
        healthy = bool(redis_status.get("connected"))
        return {
            "success": healthy,
            "status": 200 if healthy else 500,
            "status_text": "healthy" if healthy else "unhealthy",
            "redis": redis_status,
        }


def _require(data: dict[str, Any], field: str) -> str:
    """Get a required non-empty string field from command data."""
    value = data.get(field)
    if value in (None, ""):
        raise ValidationError(f"Missing required field: {field}")
    return str(value)
