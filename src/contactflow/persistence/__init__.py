"""Pluggable persistence backends behind Protocol interfaces."""

from __future__ import annotations

from contactflow.core.config import AppSettings
from contactflow.persistence.dynamodb_backend import DynamoDBContactRepository, DynamoDBEnumLookup
from contactflow.persistence.redis_backend import RedisCacheBackend
from contactflow.persistence.session_store import SessionStore


def create_persistence(settings: AppSettings | None = None):
    """Create wired-up persistence backends from application settings.

    The contact repository doubles as the uniqueness checker: both read the
    same business-id claim items.

    Returns:
        Tuple of (session_store, contact_repository, enum_lookup).
    """
    if settings is None:
        settings = AppSettings()

    cache = RedisCacheBackend(
        host=settings.redis.host,
        port=settings.redis.port,
        db=settings.redis.db,
        socket_timeout=settings.redis.socket_timeout,
    )

    repository = DynamoDBContactRepository(
        table_suffix=settings.dynamodb.table_suffix,
        region=settings.dynamodb.region,
        endpoint_url=settings.dynamodb.endpoint_url,
        contacts_table=settings.dynamodb.contacts_table,
    )

    enum_lookup = DynamoDBEnumLookup(
        table_suffix=settings.dynamodb.table_suffix,
        region=settings.dynamodb.region,
        endpoint_url=settings.dynamodb.endpoint_url,
        reference_table=settings.dynamodb.reference_table,
        cache=cache,
    )

    return SessionStore(cache, settings.workflow), repository, enum_lookup
