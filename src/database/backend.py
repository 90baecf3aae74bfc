"""Key-value backend boundary consumed by the configuration store."""

from __future__ import annotations

from typing import Protocol


class KeyValueBackend(Protocol):
    """
    Abstract key-value store.

    Primitive operations mirror Redis commands. The two composite
    operations (`set_and_add`, `delete_and_remove`) must apply their steps
    as one atomic unit where the backend can; otherwise they apply them in
    the documented order (record first on delete).
    """

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def set_if_exists(self, key: str, value: str) -> bool:
        """
        Overwrite `key` only if it is present (Redis `SET XX`).

        Returns:
            False if `key` was missing (nothing written)
        """
        ...

    async def delete(self, *keys: str) -> int: ...

    async def exists(self, key: str) -> bool: ...

    async def set_add(self, set_name: str, *members: str) -> int: ...

    async def set_remove(self, set_name: str, *members: str) -> int: ...

    async def set_members(self, set_name: str) -> set[str]: ...

    async def multi_get(self, *keys: str) -> list[str | None]: ...

    async def set_and_add(
        self, key: str, value: str, set_name: str, member: str
    ) -> bool:
        """
        Write `key` only if absent and add `member` to `set_name`.

        Returns:
            False if `key` already existed (nothing written)
        """
        ...

    async def delete_and_remove(
        self, keys: list[str], set_name: str, members: list[str]
    ) -> None:
        """Delete `keys`, then remove `members` from `set_name`."""
        ...
