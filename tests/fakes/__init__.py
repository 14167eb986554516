"""Shared test doubles: memory backends and controllable clocks."""

from __future__ import annotations

from contactflow.persistence.memory_backend import (
    MemoryCacheBackend,
    MemoryContactRepository,
    StaticEnumLookup,
)
from tests.fakes.clock import EPOCH, FakeClock, FakeMonotonic

__all__ = [
    "EPOCH",
    "FakeClock",
    "FakeMonotonic",
    "MemoryCacheBackend",
    "MemoryContactRepository",
    "StaticEnumLookup",
]
