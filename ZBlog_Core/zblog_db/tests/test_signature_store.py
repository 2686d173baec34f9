from unittest.mock import MagicMock

import pytest
import redis

from ZBlog_Core.zblog_db.signature_store import MemoryStringStorage, RedisStringStorage


@pytest.fixture(params=["memory", "redis"])
def store(request, signature_client):
    if request.param == "memory":
        return MemoryStringStorage()
    return RedisStringStorage(signature_client)


def test_get_missing_is_none(store):
    assert store.get_item("nope") is None


def test_set_get_remove(store):
    store.set_item("k", '{"a": 1}')
    assert store.get_item("k") == '{"a": 1}'
    store.remove_item("k")
    assert store.get_item("k") is None


def test_remove_missing_is_noop(store):
    store.remove_item("never-set")


def test_set_overwrites(store):
    store.set_item("k", "one")
    store.set_item("k", "two")
    assert store.get_item("k") == "two"


def test_redis_ttl(signature_client):
    store = RedisStringStorage(signature_client, ttl_seconds=60)
    store.set_item("k", "v")
    ttl = signature_client.ttl("k")
    assert 0 < ttl <= 60


def test_redis_without_ttl_persists(signature_client):
    RedisStringStorage(signature_client).set_item("k", "v")
    assert signature_client.ttl("k") == -1


def test_memory_len():
    store = MemoryStringStorage()
    store.set_item("a", "1")
    store.set_item("b", "2")
    assert len(store) == 2


def _broken_client() -> MagicMock:
    client = MagicMock()
    client.get.side_effect = redis.exceptions.ConnectionError("down")
    client.set.side_effect = redis.exceptions.ConnectionError("down")
    client.delete.side_effect = redis.exceptions.ConnectionError("down")
    return client


def test_redis_fault_reads_as_miss():
    assert RedisStringStorage(_broken_client()).get_item("k") is None


def test_redis_fault_on_write_is_dropped():
    store = RedisStringStorage(_broken_client(), ttl_seconds=60)
    store.set_item("k", "v")
    store.remove_item("k")
