"""Protocol interfaces for the contactflow collaborators.

The orchestrator only talks to these Protocols; production backends and the
in-memory fakes satisfy them structurally.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from contactflow.models.contact import ContactRecord, CreatedContact, UniquenessResult


# ---------------------------------------------------------------------------
# Persistence: Cache Backend
# ---------------------------------------------------------------------------

@runtime_checkable
class ICacheBackend(Protocol):
    """Redis-compatible key-value interface backing the session store."""

    def get(self, key: str) -> str | None: ...

    def setex(self, key: str, ttl: int, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def ttl(self, key: str) -> int: ...

    # Hashes
    def increment_fields(self, key: str, deltas: dict[str, int], ttl: int | None = None) -> None: ...

    def get_fields(self, key: str) -> dict[str, str]: ...

    def set_fields(self, key: str, fields: dict[str, str], ttl: int | None = None) -> None: ...

    # Lists
    def append(self, key: str, value: str, max_len: int | None = None, ttl: int | None = None) -> None: ...

    def list_range(self, key: str, start: int = 0, end: int = -1) -> list[str]: ...

    # Sets
    def add_member(self, key: str, member: str, ttl: int | None = None) -> None: ...

    def remove_member(self, key: str, member: str) -> None: ...

    def members(self, key: str) -> set[str]: ...


# ---------------------------------------------------------------------------
# Uniqueness
# ---------------------------------------------------------------------------

@runtime_checkable
class IUniquenessChecker(Protocol):
    """Reports whether a business identifier is already claimed."""

    def check(self, business_id: str) -> UniquenessResult: ...


# ---------------------------------------------------------------------------
# Contact repository
# ---------------------------------------------------------------------------

@runtime_checkable
class IContactRepository(Protocol):
    """Permanent contact record store."""

    def create(self, record: ContactRecord) -> CreatedContact: ...

    def set_primary(self, account_id: str, contact_id: str) -> None: ...


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------

@runtime_checkable
class IEnumLookup(Protocol):
    """Enumerated reference-data choices (access modifiers, privileges)."""

    def choices(self, enum_name: str) -> dict[int, str]: ...

    def is_valid(self, enum_name: str, value: int) -> bool: ...
