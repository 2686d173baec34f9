"""
String stores for cached decryption signatures.

DecryptionSessionManager only needs get/set/remove by key, so the backing
store is swappable: MemoryStringStorage for a single process, RedisStringStorage
to share grants across processes and restarts.

A Redis fault reads as a cache miss and writes are dropped; the manager then
re-signs, or the caller sees no usable grant.
"""

from typing import Optional, Protocol

import redis
import structlog

logger = structlog.get_logger(__name__)


class StringStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...
    def set_item(self, key: str, value: str) -> None: ...
    def remove_item(self, key: str) -> None: ...


class MemoryStringStorage:
    def __init__(self):
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __len__(self) -> int:
        return len(self._items)


class RedisStringStorage:
    """Redis-backed store. An optional TTL lets Redis drop expired grants."""

    def __init__(self, client: redis.Redis, ttl_seconds: Optional[int] = None):
        self.db: redis.Redis = client
        self.ttl_seconds = ttl_seconds

    def get_item(self, key: str) -> Optional[str]:
        try:
            raw = self.db.get(key)
        except redis.exceptions.RedisError as e:
            logger.error("signature_fetch_failed", key=key, error=str(e))
            return None
        if raw is None:
            return None
        return raw.decode() if isinstance(raw, bytes) else raw

    def set_item(self, key: str, value: str) -> None:
        try:
            if self.ttl_seconds:
                self.db.set(key, value, ex=self.ttl_seconds)
            else:
                self.db.set(key, value)
        except redis.exceptions.RedisError as e:
            logger.error("signature_store_failed", key=key, error=str(e))

    def remove_item(self, key: str) -> None:
        try:
            self.db.delete(key)
        except redis.exceptions.RedisError as e:
            logger.error("signature_remove_failed", key=key, error=str(e))
