"""Redis cache backend implementing ICacheBackend."""

from __future__ import annotations

import redis

from contactflow.core.exceptions import CacheError


class RedisCacheBackend:
    """Production ICacheBackend backed by Redis.

    Multi-key updates (counter increments, capped list appends) go through a
    ``MULTI`` pipeline so readers never observe a half-applied change.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        socket_timeout: float | None = None,
    ) -> None:
        self._host = host
        self._port = port
        self._db = db
        self._client = redis.Redis(
            host=host, port=port, db=db, socket_timeout=socket_timeout, decode_responses=True,
        )

    def get(self, key: str) -> str | None:
        try:
            return self._client.get(key)
        except Exception as exc:
            raise CacheError(f"Redis GET failed for key={key!r}: {exc}") from exc

    def setex(self, key: str, ttl: int, value: str) -> None:
        try:
            self._client.setex(key, ttl, value)
        except Exception as exc:
            raise CacheError(f"Redis SETEX failed for key={key!r}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except Exception as exc:
            raise CacheError(f"Redis DELETE failed for key={key!r}: {exc}") from exc

    def ttl(self, key: str) -> int:
        try:
            return int(self._client.ttl(key))
        except Exception as exc:
            raise CacheError(f"Redis TTL failed for key={key!r}: {exc}") from exc

    # ---- hashes ----

    def increment_fields(self, key: str, deltas: dict[str, int], ttl: int | None = None) -> None:
        try:
            with self._client.pipeline(transaction=True) as pipe:
                for field, delta in deltas.items():
                    pipe.hincrby(key, field, delta)
                if ttl:
                    pipe.expire(key, ttl)
                pipe.execute()
        except Exception as exc:
            raise CacheError(f"Redis HINCRBY failed for key={key!r}: {exc}") from exc

    def get_fields(self, key: str) -> dict[str, str]:
        try:
            return dict(self._client.hgetall(key))
        except Exception as exc:
            raise CacheError(f"Redis HGETALL failed for key={key!r}: {exc}") from exc

    def set_fields(self, key: str, fields: dict[str, str], ttl: int | None = None) -> None:
        try:
            with self._client.pipeline(transaction=True) as pipe:
                pipe.hset(key, mapping=fields)
                if ttl:
                    pipe.expire(key, ttl)
                pipe.execute()
        except Exception as exc:
            raise CacheError(f"Redis HSET failed for key={key!r}: {exc}") from exc

    # ---- lists ----

    def append(self, key: str, value: str, max_len: int | None = None, ttl: int | None = None) -> None:
        try:
            with self._client.pipeline(transaction=True) as pipe:
                pipe.rpush(key, value)
                if max_len:
                    pipe.ltrim(key, -max_len, -1)
                if ttl:
                    pipe.expire(key, ttl)
                pipe.execute()
        except Exception as exc:
            raise CacheError(f"Redis RPUSH failed for key={key!r}: {exc}") from exc

    def list_range(self, key: str, start: int = 0, end: int = -1) -> list[str]:
        try:
            return list(self._client.lrange(key, start, end))
        except Exception as exc:
            raise CacheError(f"Redis LRANGE failed for key={key!r}: {exc}") from exc

    # ---- sets ----

    def add_member(self, key: str, member: str, ttl: int | None = None) -> None:
        try:
            with self._client.pipeline(transaction=True) as pipe:
                pipe.sadd(key, member)
                if ttl:
                    pipe.expire(key, ttl)
                pipe.execute()
        except Exception as exc:
            raise CacheError(f"Redis SADD failed for key={key!r}: {exc}") from exc

    def remove_member(self, key: str, member: str) -> None:
        try:
            self._client.srem(key, member)
        except Exception as exc:
            raise CacheError(f"Redis SREM failed for key={key!r}: {exc}") from exc

    def members(self, key: str) -> set[str]:
        try:
            return set(self._client.smembers(key))
        except Exception as exc:
            raise CacheError(f"Redis SMEMBERS failed for key={key!r}: {exc}") from exc
