"""
Content Cache: full post text keyed by post id.

The on-chain words only hold the first 12 characters of a post. This cache
holds the rest so readers can see the whole thing. It stands in for a
content-addressed store and keeps the same contract: store by post id,
retrieve by post id.

Every Redis fault is reported as False or None, never raised; the ledger
record stays the source of truth.

Layout:
    content:v1:post:{post_id}       hash  (one StoredContent)
    content:v1:hash:{content_hash}  hash  (hash-indexed records, e.g. samples)
"""

import time
from typing import Optional

import redis
import structlog

from ZBlog_Core.zblog_shared import config
from ZBlog_Core.zblog_shared.types import StoredContent, Found, Synthesized, HashLookup

logger = structlog.get_logger(__name__)


SAMPLE_CONTENTS = [
    {
        "content_hash": 12345,
        "title": "zBlog Platform Technical Introduction",
        "content": (
            "# Welcome to zBlog!\n\n"
            "zBlog is a fully encrypted blog platform. Article content, categories and "
            "engagement counters are stored as ciphertexts and only authorized readers "
            "can decrypt them.\n\n"
            "## Access levels\n"
            "- Public: accessible to everyone\n"
            "- Friends: only authorized friends\n"
            "- Specific users: explicit per-reader grants\n"
            "- Paid: unlocked by payment\n\n"
            "## Storage\n"
            "The ledger stores encrypted words and metadata. Full article text lives in "
            "off-chain storage indexed by post id."
        ),
        "author": "zBlog Team",
        "category": 1,
    },
]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _hash_of(post_id: str) -> int:
    return int(post_id) if post_id.isascii() and post_id.isdecimal() else 0


class ContentCache:
    def __init__(self, client: redis.Redis):
        self.db: redis.Redis = client

    def _content_key(self, post_id: str) -> str:
        return f"{config.CONTENT_KEY_PREFIX}:{post_id}"

    def _hash_key(self, content_hash: int) -> str:
        return f"{config.CONTENT_HASH_PREFIX}:{content_hash}"

    def _serialize(self, record: StoredContent) -> dict:
        return {
            "post_id": record.post_id,
            "title": record.title,
            "full_content": record.full_content,
            "author": record.author,
            "created_at": str(record.created_at),
            "category": str(record.category),
            "content_hash": str(record.content_hash),
        }

    def _deserialize(self, data: dict[bytes, bytes]) -> StoredContent:
        return StoredContent(
            post_id=data[b"post_id"].decode(),
            title=data[b"title"].decode(),
            full_content=data[b"full_content"].decode(),
            author=data[b"author"].decode(),
            created_at=int(data[b"created_at"]),
            category=int(data[b"category"]),
            content_hash=int(data.get(b"content_hash", b"0")),
        )

    def _parse(self, data: dict[bytes, bytes], key: str) -> Optional[StoredContent]:
        try:
            return self._deserialize(data)
        except (KeyError, ValueError) as e:
            logger.warning("content_record_malformed", key=key, error=str(e))
            return None

    def _write(self, full_key: str, record: StoredContent) -> None:
        pipe = self.db.pipeline(transaction=True)
        pipe.delete(full_key)
        pipe.hset(full_key, mapping=self._serialize(record))
        pipe.execute()

    def store_content(
        self,
        post_id: str,
        title: str,
        content: str,
        author: str,
        category: int,
    ) -> bool:
        """Store (or replace) the full content of a post. False on any fault."""
        record = StoredContent(
            post_id=post_id,
            title=title,
            full_content=content,
            author=author,
            created_at=_now_ms(),
            category=category,
            content_hash=_hash_of(post_id),
        )
        try:
            self._write(self._content_key(post_id), record)
        except redis.exceptions.RedisError as e:
            logger.error("content_store_failed", post_id=post_id, error=str(e))
            return False

        logger.info("content_stored", post_id=post_id, length=len(content))
        return True

    def get_content(self, post_id: str) -> Optional[StoredContent]:
        try:
            data = self.db.hgetall(self._content_key(post_id))
        except redis.exceptions.RedisError as e:
            logger.error("content_fetch_failed", post_id=post_id, error=str(e))
            return None

        if not data:
            logger.debug("content_miss", post_id=post_id)
            return None

        record = self._parse(data, self._content_key(post_id))
        if record is not None:
            logger.debug("content_hit", post_id=post_id)
        return record

    def store_by_hash(
        self,
        content_hash: int,
        title: str,
        content: str,
        author: str,
        category: int,
    ) -> bool:
        record = StoredContent(
            post_id=str(content_hash),
            title=title,
            full_content=content,
            author=author,
            created_at=_now_ms(),
            category=category,
            content_hash=content_hash,
        )
        try:
            self._write(self._hash_key(content_hash), record)
        except redis.exceptions.RedisError as e:
            logger.error("content_store_failed", content_hash=content_hash, error=str(e))
            return False
        return True

    def seed_samples(self) -> int:
        seeded = 0
        for sample in SAMPLE_CONTENTS:
            if self.store_by_hash(**sample):
                seeded += 1
        return seeded

    def get_content_by_hash(self, content_hash: int) -> HashLookup:
        """Look up hash-indexed content. Falls back to a Synthesized placeholder."""
        try:
            data = self.db.hgetall(self._hash_key(content_hash))
        except redis.exceptions.RedisError as e:
            logger.error("content_fetch_failed", content_hash=content_hash, error=str(e))
            data = None

        record = self._parse(data, self._hash_key(content_hash)) if data else None
        if record is not None:
            return Found(record)

        logger.info("content_placeholder_synthesized", content_hash=content_hash)
        placeholder = StoredContent(
            post_id=str(content_hash),
            title=f"Article #{content_hash}",
            full_content=(
                f"# Article Content\n\n"
                f"No stored content matches hash {content_hash}. The encrypted record "
                f"exists on the ledger, but its full text was never uploaded to "
                f"this cache."
            ),
            author="Unknown",
            created_at=_now_ms(),
            category=config.FALLBACK_CATEGORY,
            content_hash=content_hash,
        )
        return Synthesized(placeholder)

    def _scan(self, pattern: str) -> list[bytes]:
        keys: list[bytes] = []
        cursor = 0
        while True:
            cursor, batch = self.db.scan(cursor=cursor, match=pattern, count=100)
            keys.extend(batch)
            if cursor == 0:
                break
        return keys

    def list_contents(self) -> list[StoredContent]:
        """Every cached record, post-keyed and hash-keyed (debug)."""
        records: list[StoredContent] = []
        try:
            for prefix in (config.CONTENT_KEY_PREFIX, config.CONTENT_HASH_PREFIX):
                keys = self._scan(f"{prefix}:*")
                if not keys:
                    continue
                pipe = self.db.pipeline(transaction=False)
                for key in keys:
                    pipe.hgetall(key)
                for key, data in zip(keys, pipe.execute()):
                    record = self._parse(data, key.decode()) if data else None
                    if record is not None:
                        records.append(record)
        except redis.exceptions.RedisError as e:
            logger.error("content_list_failed", error=str(e))
        return records

    def clear(self) -> int:
        """Drop every cached record (debug). Returns the number removed."""
        removed = 0
        try:
            for prefix in (config.CONTENT_KEY_PREFIX, config.CONTENT_HASH_PREFIX):
                keys = self._scan(f"{prefix}:*")
                if keys:
                    removed += self.db.delete(*keys)
        except redis.exceptions.RedisError as e:
            logger.error("content_clear_failed", error=str(e))
        logger.info("content_cleared", removed=removed)
        return removed
