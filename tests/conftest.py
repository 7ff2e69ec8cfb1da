"""
Shared pytest fixtures for start command tests.
"""

from typing import Dict, List, Optional

import pytest

from store.client import StoreError, StoreKeyNotFound


class FakeStore:
    """In-memory stand-in for StoreClient keyed by path."""

    def __init__(self, servers: Optional[List[str]] = None, data: Optional[Dict[str, dict]] = None):
        self.servers = servers or ["http://127.0.0.1:4001"]
        self.data = data or {}
        self.calls: List[str] = []
        self.writes: List[tuple] = []
        self.fail_with: Optional[Exception] = None

    def get(self, key: str, recursive: bool = False) -> dict:
        self.calls.append(key)
        if self.fail_with is not None:
            raise self.fail_with
        if key not in self.data:
            raise StoreKeyNotFound(key)
        return self.data[key]

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> dict:
        self.writes.append((key, value, ttl))
        return {"action": "set", "node": {"key": key, "value": value}}


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def unreachable_store() -> FakeStore:
    store = FakeStore()
    store.fail_with = StoreError("connection refused")
    return store
