"""
Pytest configuration and shared fixtures for the test suite.
"""

from __future__ import annotations

import pytest

from src.logger.logger import init_logger

# Logger must exist BEFORE repositories/handlers are constructed
init_logger(service_name="configstore-test", environment="test", level="warn")

from src.repository.config_repository import ConfigRepository  # noqa: E402


class InMemoryBackend:
    """KeyValueBackend fake: dict + sets, records every call by name."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.sets: dict[str, set[str]] = {}
        self.calls: list[str] = []

    async def get(self, key: str) -> str | None:
        self.calls.append("get")
        return self.values.get(key)

    async def set(self, key: str, value: str) -> None:
        self.calls.append("set")
        self.values[key] = value

    async def set_if_exists(self, key: str, value: str) -> bool:
        self.calls.append("set_if_exists")
        if key not in self.values:
            return False
        self.values[key] = value
        return True

    async def delete(self, *keys: str) -> int:
        self.calls.append("delete")
        return sum(1 for k in keys if self.values.pop(k, None) is not None)

    async def exists(self, key: str) -> bool:
        self.calls.append("exists")
        return key in self.values

    async def set_add(self, set_name: str, *members: str) -> int:
        self.calls.append("set_add")
        target = self.sets.setdefault(set_name, set())
        added = [m for m in members if m not in target]
        target.update(members)
        return len(added)

    async def set_remove(self, set_name: str, *members: str) -> int:
        self.calls.append("set_remove")
        target = self.sets.get(set_name, set())
        removed = [m for m in members if m in target]
        target.difference_update(members)
        return len(removed)

    async def set_members(self, set_name: str) -> set[str]:
        self.calls.append("set_members")
        return set(self.sets.get(set_name, set()))

    async def multi_get(self, *keys: str) -> list[str | None]:
        self.calls.append("multi_get")
        return [self.values.get(k) for k in keys]

    async def set_and_add(self, key: str, value: str, set_name: str, member: str) -> bool:
        self.calls.append("set_and_add")
        written = key not in self.values
        if written:
            self.values[key] = value
        self.sets.setdefault(set_name, set()).add(member)
        return written

    async def delete_and_remove(
        self, keys: list[str], set_name: str, members: list[str]
    ) -> None:
        self.calls.append("delete_and_remove")
        for k in keys:
            self.values.pop(k, None)
        self.sets.get(set_name, set()).difference_update(members)


class FakeClock:
    """Controllable millisecond clock for now_ms()."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 1000) -> None:
        self.now += ms


@pytest.fixture
def backend() -> InMemoryBackend:
    """Create an empty in-memory backend."""
    return InMemoryBackend()


@pytest.fixture
def clock(monkeypatch) -> FakeClock:
    """Patch the repository clock."""
    fake = FakeClock()
    monkeypatch.setattr("src.repository.config_repository.now_ms", fake)
    return fake


@pytest.fixture
def repo(backend, clock) -> ConfigRepository:
    """Create ConfigRepository over the in-memory backend."""
    return ConfigRepository(backend)
