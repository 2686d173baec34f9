"""
Bridge between the Redis stores (Content Cache + signature store) and a ledger.

Wiring:
    account  → LocalAccountSigner             (authorizes decryption sessions)
             → ledger.connect(address)        (contract bound to the sender)
    Redis    → ContentCache (db=2)            (full post text)
             → RedisStringStorage (db=3)      (decryption grants)
    all four → ZBlogService

The development stack runs on SimulatedZBlogLedger; one ledger is shared by
every account so that a publisher and a reader see the same posts.
"""

import time
from typing import Callable, Optional

import redis
from eth_account import Account
from eth_account.signers.local import LocalAccount

from ZBlog_Core.zblog_shared import config
from ZBlog_Core.zblog_db.content_cache import ContentCache
from ZBlog_Core.zblog_db.signature_store import StringStorage, RedisStringStorage
from ZBlog_Core.fhe.decryption_signature import DecryptionSessionManager, LocalAccountSigner
from ZBlog_Core.fhe.simulated import SimulatedFhevm, SimulatedZBlogLedger
from ZBlog_Core.blog.service import ZBlogService


def create_simulated_ledger(
    clock: Callable[[], float] = time.time,
    emit_events: bool = True,
    value_format: str = "int",
) -> SimulatedZBlogLedger:
    fhevm = SimulatedFhevm(clock=clock, value_format=value_format)
    return SimulatedZBlogLedger(fhevm, clock=clock, emit_events=emit_events)


def connect_account(
    ledger: SimulatedZBlogLedger,
    account: LocalAccount,
    cache: ContentCache,
    storage: StringStorage,
    clock: Callable[[], float] = time.time,
) -> ZBlogService:
    """ZBlogService for one account against a shared simulated ledger."""
    sessions = DecryptionSessionManager(ledger.fhevm, storage, clock=clock)
    return ZBlogService(
        instance=ledger.fhevm,
        contract=ledger.connect(account.address),
        signer=LocalAccountSigner(account),
        cache=cache,
        sessions=sessions,
    )


def build_dev_service(
    content_client: redis.Redis,
    signature_client: redis.Redis,
    private_key: Optional[str] = None,
    ledger: Optional[SimulatedZBlogLedger] = None,
) -> ZBlogService:
    """Simulated ledger + Redis-backed stores for the API server and prototype.

    A fresh key is generated when none is given or configured.
    """
    private_key = private_key or config.DEV_PRIVATE_KEY
    account = Account.from_key(private_key) if private_key else Account.create()
    cache = ContentCache(content_client)
    cache.seed_samples()
    storage = RedisStringStorage(
        signature_client,
        ttl_seconds=config.DECRYPTION_DURATION_DAYS * config.SECONDS_PER_DAY,
    )
    return connect_account(ledger or create_simulated_ledger(), account, cache, storage)
