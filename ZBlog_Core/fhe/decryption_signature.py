"""
Decryption sessions: one signed, time-bounded grant per (user, contract set).

    load_or_sign → cache hit (not expired)  → return as-is, nothing signed
                 → miss / expired           → new keypair → EIP-712 request
                                              → wallet signature → store → return
                 → wallet declines          → None

A grant covers every handle of the listed contracts for the signing user
during [start_timestamp, start_timestamp + duration_days). Expired grants are
dropped on read and never handed back to callers.
"""

import asyncio
import hashlib
import time
from typing import Callable, Optional, Sequence

import structlog
from eth_account.messages import encode_typed_data
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address

from ZBlog_Core.zblog_shared import config
from ZBlog_Core.zblog_shared.errors import SigningDeclinedError, SignerUnavailableError
from ZBlog_Core.zblog_shared.types import DecryptionSignature
from ZBlog_Core.zblog_db.signature_store import StringStorage
from ZBlog_Core.fhe.interfaces import FhevmInstance, Signer

logger = structlog.get_logger(__name__)


class LocalAccountSigner:
    """Signer backed by an in-process eth_account key."""

    def __init__(self, account: LocalAccount):
        self._account = account
        self.address = account.address

    async def sign_typed_data(self, typed_data: dict) -> str:
        signed = self._account.sign_message(encode_typed_data(full_message=typed_data))
        return "0x" + bytes(signed.signature).hex()


def normalize_addresses(contract_addresses: Sequence[str]) -> list[str]:
    """Checksummed, de-duplicated, sorted."""
    return sorted({to_checksum_address(a) for a in contract_addresses}, key=str.lower)


class DecryptionSessionManager:
    def __init__(
        self,
        instance: FhevmInstance,
        storage: StringStorage,
        duration_days: int = config.DECRYPTION_DURATION_DAYS,
        clock: Callable[[], float] = time.time,
    ):
        self.instance = instance
        self.storage = storage
        self.duration_days = duration_days
        self._clock = clock
        self._pending: dict[str, asyncio.Task] = {}

    def now(self) -> float:
        return self._clock()

    @staticmethod
    def cache_key(contract_addresses: Sequence[str], user_address: str) -> str:
        scope = ",".join(a.lower() for a in normalize_addresses(contract_addresses))
        digest = hashlib.sha256(scope.encode()).hexdigest()[:32]
        return f"{config.SIGNATURE_KEY_PREFIX}:{user_address.lower()}:{digest}"

    def load(self, contract_addresses: Sequence[str], user_address: str) -> Optional[DecryptionSignature]:
        """Cached, unexpired grant for this scope, or None."""
        key = self.cache_key(contract_addresses, user_address)
        raw = self.storage.get_item(key)
        if raw is None:
            return None

        try:
            sig = DecryptionSignature.from_json(raw)
        except (ValueError, TypeError) as e:
            logger.warning("signature_unreadable", key=key, error=str(e))
            self.storage.remove_item(key)
            return None

        if sig.is_expired(self._clock()):
            logger.info("signature_expired", key=key, expired_at=sig.expires_at)
            self.storage.remove_item(key)
            return None

        return sig

    async def load_or_sign(
        self,
        contract_addresses: Sequence[str],
        signer: Optional[Signer],
    ) -> Optional[DecryptionSignature]:
        if signer is None:
            logger.warning("signature_unavailable", reason="no signer")
            return None

        user_address = signer.address
        cached = self.load(contract_addresses, user_address)
        if cached is not None:
            logger.debug("signature_cache_hit", user=user_address)
            return cached

        key = self.cache_key(contract_addresses, user_address)
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._sign(key, contract_addresses, signer))
            self._pending[key] = task
            task.add_done_callback(lambda t: self._forget(key, t))
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Future) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]

    async def _sign(
        self,
        key: str,
        contract_addresses: Sequence[str],
        signer: Signer,
    ) -> Optional[DecryptionSignature]:
        addresses = normalize_addresses(contract_addresses)
        public_key, private_key = self.instance.generate_keypair()
        start_timestamp = int(self._clock())
        typed_data = self.instance.create_eip712(
            public_key, addresses, start_timestamp, self.duration_days
        )

        try:
            signature = await signer.sign_typed_data(typed_data)
        except (SigningDeclinedError, SignerUnavailableError) as e:
            logger.warning("signature_declined", user=signer.address, error=str(e))
            return None

        sig = DecryptionSignature(
            private_key=private_key,
            public_key=public_key,
            signature=signature,
            contract_addresses=addresses,
            user_address=signer.address,
            start_timestamp=start_timestamp,
            duration_days=self.duration_days,
        )
        self.storage.set_item(key, sig.to_json())
        logger.info(
            "signature_created",
            user=signer.address,
            contracts=len(addresses),
            expires_at=sig.expires_at,
        )
        return sig

    def clear(self, contract_addresses: Sequence[str], user_address: str) -> None:
        self.storage.remove_item(self.cache_key(contract_addresses, user_address))
