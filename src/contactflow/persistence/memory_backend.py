"""In-memory backends for unit tests and local runs."""

from __future__ import annotations

import threading
import time
import uuid
from typing import Callable

from contactflow.core.exceptions import BusinessIdClaimedError, RepositoryError
from contactflow.models.contact import ContactRecord, CreatedContact, UniquenessResult

DEFAULT_ENUM_CHOICES: dict[str, dict[int, str]] = {
    "access_modifier": {1: "Public", 2: "Protected", 3: "Private"},
    "privilege": {1: "Owner", 2: "Admin", 3: "Main"},
}


class MemoryCacheBackend:
    """Dict-backed ICacheBackend that honours TTLs against ``clock``."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._store: dict[str, object] = {}
        self._expiry: dict[str, float] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> object | None:
        deadline = self._expiry.get(key)
        if deadline is not None and deadline <= self._clock():
            self._store.pop(key, None)
            self._expiry.pop(key, None)
        return self._store.get(key)

    def _expire(self, key: str, ttl: int | None) -> None:
        if ttl:
            self._expiry[key] = self._clock() + ttl

    def get(self, key: str) -> str | None:
        with self._lock:
            value = self._live(key)
            return value if isinstance(value, str) else None

    def setex(self, key: str, ttl: int, value: str) -> None:
        with self._lock:
            self._store[key] = value
            self._expire(key, ttl)

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)
            self._expiry.pop(key, None)

    def ttl(self, key: str) -> int:
        with self._lock:
            if self._live(key) is None:
                return -2
            deadline = self._expiry.get(key)
            if deadline is None:
                return -1
            return max(0, round(deadline - self._clock()))

    def increment_fields(self, key: str, deltas: dict[str, int], ttl: int | None = None) -> None:
        with self._lock:
            fields = self._live(key)
            if not isinstance(fields, dict):
                fields = {}
                self._store[key] = fields
            for field, delta in deltas.items():
                fields[field] = str(int(fields.get(field, "0")) + delta)
            self._expire(key, ttl)

    def get_fields(self, key: str) -> dict[str, str]:
        with self._lock:
            fields = self._live(key)
            return dict(fields) if isinstance(fields, dict) else {}

    def set_fields(self, key: str, fields: dict[str, str], ttl: int | None = None) -> None:
        with self._lock:
            current = self._live(key)
            if not isinstance(current, dict):
                current = {}
                self._store[key] = current
            current.update(fields)
            self._expire(key, ttl)

    def append(self, key: str, value: str, max_len: int | None = None, ttl: int | None = None) -> None:
        with self._lock:
            items = self._live(key)
            if not isinstance(items, list):
                items = []
                self._store[key] = items
            items.append(value)
            if max_len and len(items) > max_len:
                del items[: len(items) - max_len]
            self._expire(key, ttl)

    def list_range(self, key: str, start: int = 0, end: int = -1) -> list[str]:
        with self._lock:
            items = self._live(key)
            if not isinstance(items, list):
                return []
            stop = None if end == -1 else end + 1
            return list(items[start:stop])

    def add_member(self, key: str, member: str, ttl: int | None = None) -> None:
        with self._lock:
            current = self._live(key)
            if not isinstance(current, set):
                current = set()
                self._store[key] = current
            current.add(member)
            self._expire(key, ttl)

    def remove_member(self, key: str, member: str) -> None:
        with self._lock:
            current = self._live(key)
            if isinstance(current, set):
                current.discard(member)

    def members(self, key: str) -> set[str]:
        with self._lock:
            current = self._live(key)
            return set(current) if isinstance(current, set) else set()


class MemoryContactRepository:
    """Dict-backed IContactRepository and IUniquenessChecker.

    ``fail_creates`` makes the next N creates raise ``create_error``;
    ``delay`` blocks every create, which is how tests exercise timeouts.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.contacts: dict[str, ContactRecord] = {}
        self.primary: dict[str, str] = {}
        self._claims: dict[str, str] = {}
        self._lock = threading.Lock()
        self.delay = delay
        self.fail_creates = 0
        self.create_error: Exception = RepositoryError("contact store unavailable")
        self.fail_set_primary = False
        self.check_calls = 0
        self.create_calls = 0

    def claim(self, business_id: str, contact_id: str | None = None) -> str:
        """Pre-register a business id as taken (test setup helper)."""
        contact_id = contact_id or f"ct-{uuid.uuid4().hex[:12]}"
        with self._lock:
            self._claims[business_id.lower()] = contact_id
        return contact_id

    def check(self, business_id: str) -> UniquenessResult:
        with self._lock:
            self.check_calls += 1
            existing = self._claims.get(business_id.lower())
        return UniquenessResult(unique=existing is None, existing_contact_id=existing)

    def create(self, record: ContactRecord) -> CreatedContact:
        if self.delay:
            time.sleep(self.delay)
        with self._lock:
            self.create_calls += 1
            if self.fail_creates > 0:
                self.fail_creates -= 1
                raise self.create_error
            key = record.business_id.lower()
            if key in self._claims:
                raise BusinessIdClaimedError(record.business_id, self._claims[key])
            contact_id = f"ct-{uuid.uuid4().hex[:12]}"
            self._claims[key] = contact_id
            self.contacts[contact_id] = record
        return CreatedContact(contact_id=contact_id, business_id=record.business_id)

    def set_primary(self, account_id: str, contact_id: str) -> None:
        if self.fail_set_primary:
            raise RepositoryError(f"could not set primary contact for account {account_id!r}")
        with self._lock:
            self.primary[account_id] = contact_id


class StaticEnumLookup:
    """IEnumLookup over in-process choices."""

    def __init__(self, choices: dict[str, dict[int, str]] | None = None) -> None:
        self._choices = choices if choices is not None else DEFAULT_ENUM_CHOICES

    def choices(self, enum_name: str) -> dict[int, str]:
        return dict(self._choices.get(enum_name, {}))

    def is_valid(self, enum_name: str, value: int) -> bool:
        return value in self._choices.get(enum_name, {})
