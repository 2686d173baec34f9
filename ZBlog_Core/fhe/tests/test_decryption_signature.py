import asyncio

import pytest
from eth_account import Account

from ZBlog_Core.zblog_shared import config
from ZBlog_Core.zblog_shared.errors import SigningDeclinedError, SignerUnavailableError
from ZBlog_Core.zblog_shared.types import DecryptionSignature
from ZBlog_Core.zblog_db.signature_store import RedisStringStorage
from ZBlog_Core.fhe.decryption_signature import DecryptionSessionManager, LocalAccountSigner


pytestmark = pytest.mark.asyncio

CONTRACT = config.ZBLOG_ADDRESSES[config.HARDHAT_CHAIN_ID]
YEAR = config.DECRYPTION_DURATION_DAYS * config.SECONDS_PER_DAY


class CountingSigner(LocalAccountSigner):
    def __init__(self, account):
        super().__init__(account)
        self.calls = 0

    async def sign_typed_data(self, typed_data: dict) -> str:
        self.calls += 1
        await asyncio.sleep(0)
        return await super().sign_typed_data(typed_data)


class DecliningSigner:
    def __init__(self, error):
        self.address = Account.create().address
        self._error = error

    async def sign_typed_data(self, typed_data: dict) -> str:
        raise self._error


class GatedSigner(CountingSigner):
    """Declines the first request once the gate opens; signs after that."""

    def __init__(self, account, gate):
        super().__init__(account)
        self._gate = gate

    async def sign_typed_data(self, typed_data: dict) -> str:
        if self.calls == 0:
            self.calls += 1
            await self._gate.wait()
            raise SigningDeclinedError(self.address)
        return await super().sign_typed_data(typed_data)


@pytest.fixture
def sessions(fhevm, storage, clock):
    return DecryptionSessionManager(fhevm, storage, clock=clock)


@pytest.fixture
def signer(author_account):
    return CountingSigner(author_account)


# ── Signing ──

async def test_first_call_signs_and_stores(sessions, signer, storage, clock):
    sig = await sessions.load_or_sign([CONTRACT], signer)
    assert isinstance(sig, DecryptionSignature)
    assert signer.calls == 1
    assert sig.user_address == signer.address
    assert sig.contract_addresses == [CONTRACT]
    assert sig.start_timestamp == int(clock.now)
    assert sig.duration_days == config.DECRYPTION_DURATION_DAYS
    assert len(storage) == 1


async def test_signature_is_accepted_by_fhevm(sessions, signer, fhevm):
    sig = await sessions.load_or_sign([CONTRACT], signer)
    result = await fhevm.user_decrypt(
        [], sig.private_key, sig.public_key, sig.signature,
        sig.contract_addresses, sig.user_address, sig.start_timestamp, sig.duration_days,
    )
    assert result == {}


async def test_cache_hit_does_not_sign(sessions, signer):
    first = await sessions.load_or_sign([CONTRACT], signer)
    second = await sessions.load_or_sign([CONTRACT], signer)
    assert second == first
    assert signer.calls == 1


async def test_expired_signature_is_re_signed_once(sessions, signer, clock):
    first = await sessions.load_or_sign([CONTRACT], signer)
    clock.advance(YEAR)
    second = await sessions.load_or_sign([CONTRACT], signer)
    third = await sessions.load_or_sign([CONTRACT], signer)
    assert signer.calls == 2
    assert second.start_timestamp == first.start_timestamp + YEAR
    assert third == second


async def test_not_yet_expired_is_reused(sessions, signer, clock):
    await sessions.load_or_sign([CONTRACT], signer)
    clock.advance(YEAR - 1)
    await sessions.load_or_sign([CONTRACT], signer)
    assert signer.calls == 1


async def test_concurrent_callers_share_one_signing(sessions, signer):
    results = await asyncio.gather(*[sessions.load_or_sign([CONTRACT], signer) for _ in range(5)])
    assert signer.calls == 1
    assert all(r == results[0] for r in results)


async def test_cancelled_caller_does_not_leave_stale_result(sessions, author_account):
    gate = asyncio.Event()
    signer = GatedSigner(author_account, gate)

    caller = asyncio.ensure_future(sessions.load_or_sign([CONTRACT], signer))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller

    gate.set()
    for _ in range(5):
        await asyncio.sleep(0)

    sig = await sessions.load_or_sign([CONTRACT], signer)
    assert isinstance(sig, DecryptionSignature)
    assert signer.calls == 2


async def test_scope_is_part_of_the_key(sessions, signer):
    other = "0x0000000000000000000000000000000000000001"
    await sessions.load_or_sign([CONTRACT], signer)
    await sessions.load_or_sign([CONTRACT, other], signer)
    assert signer.calls == 2


# ── Declined / unavailable ──

@pytest.mark.parametrize("error", [
    SigningDeclinedError("0xabc"),
    SignerUnavailableError("wallet locked"),
])
async def test_declined_returns_none(sessions, storage, error):
    assert await sessions.load_or_sign([CONTRACT], DecliningSigner(error)) is None
    assert len(storage) == 0


async def test_no_signer_returns_none(sessions):
    assert await sessions.load_or_sign([CONTRACT], None) is None


# ── Storage ──

async def test_unreadable_entry_is_dropped(sessions, signer, storage):
    key = sessions.cache_key([CONTRACT], signer.address)
    storage.set_item(key, "{not json")
    assert sessions.load([CONTRACT], signer.address) is None
    assert storage.get_item(key) is None


async def test_clear_forces_new_signature(sessions, signer):
    await sessions.load_or_sign([CONTRACT], signer)
    sessions.clear([CONTRACT], signer.address)
    await sessions.load_or_sign([CONTRACT], signer)
    assert signer.calls == 2


async def test_redis_backed_storage_survives_new_manager(fhevm, signature_client, clock, signer):
    storage = RedisStringStorage(signature_client)
    first = await DecryptionSessionManager(fhevm, storage, clock=clock).load_or_sign([CONTRACT], signer)
    second = await DecryptionSessionManager(fhevm, storage, clock=clock).load_or_sign([CONTRACT], signer)
    assert second == first
    assert signer.calls == 1

