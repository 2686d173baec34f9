import pytest
import fakeredis
from eth_account import Account

from ZBlog_Core.zblog_db.content_cache import ContentCache
from ZBlog_Core.zblog_db.signature_store import MemoryStringStorage
from ZBlog_Core.fhe.simulated import SimulatedFhevm, SimulatedZBlogLedger
from ZBlog_Core.bridge import connect_account


class FakeClock:
    """Settable time source shared by the ledger, the fhevm and the sessions."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def content_client():
    r = fakeredis.FakeRedis()
    yield r
    r.flushdb()
    r.close()


@pytest.fixture
def signature_client():
    r = fakeredis.FakeRedis()
    yield r
    r.flushdb()
    r.close()


@pytest.fixture
def cache(content_client):
    return ContentCache(content_client)


@pytest.fixture
def storage():
    return MemoryStringStorage()


@pytest.fixture
def fhevm(clock):
    return SimulatedFhevm(clock=clock)


@pytest.fixture
def ledger(fhevm, clock):
    return SimulatedZBlogLedger(fhevm, clock=clock)


@pytest.fixture
def author_account():
    return Account.create()


@pytest.fixture
def reader_account():
    return Account.create()


@pytest.fixture
def author(ledger, author_account, cache, storage, clock):
    return connect_account(ledger, author_account, cache, storage, clock=clock)


@pytest.fixture
def reader(ledger, reader_account, cache, storage, clock):
    return connect_account(ledger, reader_account, cache, storage, clock=clock)
