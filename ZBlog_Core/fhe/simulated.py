"""
In-process stand-in for the encryption platform and the ZBlog contract.

Used by the development API server, the terminal prototype and the tests. The
"ciphertexts" are plaintext ints behind opaque 32-byte handles, but everything
around them is enforced the way the real platform does it:

  - encrypted inputs carry a proof bound to (contract, user)
  - every handle has an ACL; only allowed addresses can decrypt
  - counter increments produce a new handle (ciphertexts are immutable)
  - user_decrypt checks the time window, the contract scope, the keypair and
    recovers the EIP-712 signer with eth_account
  - decryption keypairs are real X25519 keys from pynacl
"""

import asyncio
import hashlib
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

import structlog
from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import to_checksum_address
from nacl.public import PrivateKey

from ZBlog_Core.zblog_shared import config
from ZBlog_Core.zblog_shared.errors import (
    DecryptionRejectedError,
    EncryptionError,
    TransactionError,
)
from ZBlog_Core.zblog_shared.types import (
    ContractEvent,
    DecryptRequest,
    EncryptedInputBundle,
    TxReceipt,
)
from ZBlog_Core.zblog_shared.values import handle_key

logger = structlog.get_logger(__name__)

_BIT_LIMITS = {8: config.UINT8_MAX, 32: config.UINT32_MAX}


def _random_hash() -> str:
    return "0x" + os.urandom(32).hex()


class SimulatedEncryptedInput:
    def __init__(self, fhevm: "SimulatedFhevm", contract_address: str, user_address: str):
        self._fhevm = fhevm
        self._contract_address = contract_address
        self._user_address = user_address
        self._values: list[int] = []

    def _add(self, value: int, bits: int) -> "SimulatedEncryptedInput":
        if not 0 <= value <= _BIT_LIMITS[bits]:
            raise EncryptionError(f"value {value} does not fit euint{bits}")
        self._values.append(value)
        return self

    def add8(self, value: int) -> "SimulatedEncryptedInput":
        return self._add(value, 8)

    def add32(self, value: int) -> "SimulatedEncryptedInput":
        return self._add(value, 32)

    async def encrypt(self) -> EncryptedInputBundle:
        await asyncio.sleep(0)
        handles = [self._fhevm.new_ciphertext(v) for v in self._values]
        proof = self._fhevm.input_proof(handles, self._contract_address, self._user_address)
        return EncryptedInputBundle(handles=handles, input_proof=proof)


class SimulatedFhevm:
    """Ciphertext table, ACL and userDecrypt with real signature checks."""

    def __init__(
        self,
        chain_id: int = config.HARDHAT_CHAIN_ID,
        verifying_contract: str = config.SIMULATED_VERIFYING_CONTRACT,
        clock: Callable[[], float] = time.time,
        value_format: str = "int",
    ):
        self.chain_id = chain_id
        self.verifying_contract = to_checksum_address(verifying_contract)
        self.value_format = value_format
        self._clock = clock
        self._ciphertexts: dict[str, int] = {}
        self._acl: dict[str, set[str]] = {}
        self.decrypt_calls = 0

    # ─── Ciphertexts and ACL ───

    def new_ciphertext(self, value: int) -> str:
        handle = _random_hash()
        self._ciphertexts[handle] = value
        self._acl[handle] = set()
        return handle

    def trivial_encrypt(self, value: int) -> str:
        return self.new_ciphertext(value)

    def add(self, handle: Any, amount: int) -> str:
        current = self._ciphertexts[handle_key(handle)]
        return self.new_ciphertext((current + amount) & config.UINT32_MAX)

    def allow(self, handle: Any, address: str) -> None:
        self._acl[handle_key(handle)].add(address.lower())

    def is_allowed(self, handle: Any, address: str) -> bool:
        return address.lower() in self._acl.get(handle_key(handle), set())

    # ─── Encrypted inputs ───

    def create_encrypted_input(self, contract_address: str, user_address: str) -> SimulatedEncryptedInput:
        return SimulatedEncryptedInput(self, contract_address, user_address)

    def input_proof(self, handles: Sequence[str], contract_address: str, user_address: str) -> str:
        material = "|".join([*handles, contract_address.lower(), user_address.lower()])
        return "0x" + hashlib.sha256(material.encode()).hexdigest()

    def verify_input(self, handles: Sequence[Any], proof: str, contract_address: str, user_address: str) -> None:
        keys = [handle_key(h) for h in handles]
        if any(k not in self._ciphertexts for k in keys):
            raise EncryptionError("unknown input handle")
        if proof != self.input_proof(keys, contract_address, user_address):
            raise EncryptionError("input proof does not match contract and sender")

    # ─── Decryption ───

    def generate_keypair(self) -> tuple[str, str]:
        sk = PrivateKey.generate()
        return ("0x" + bytes(sk.public_key).hex(), "0x" + bytes(sk).hex())

    def create_eip712(
        self,
        public_key: str,
        contract_addresses: Sequence[str],
        start_timestamp: int,
        duration_days: int,
    ) -> dict:
        return {
            "types": {
                "EIP712Domain": [
                    {"name": "name", "type": "string"},
                    {"name": "version", "type": "string"},
                    {"name": "chainId", "type": "uint256"},
                    {"name": "verifyingContract", "type": "address"},
                ],
                "UserDecryptRequestVerification": [
                    {"name": "publicKey", "type": "bytes"},
                    {"name": "contractAddresses", "type": "address[]"},
                    {"name": "startTimestamp", "type": "uint256"},
                    {"name": "durationDays", "type": "uint256"},
                ],
            },
            "primaryType": "UserDecryptRequestVerification",
            "domain": {
                "name": config.SIMULATED_EIP712_NAME,
                "version": config.SIMULATED_EIP712_VERSION,
                "chainId": self.chain_id,
                "verifyingContract": self.verifying_contract,
            },
            "message": {
                "publicKey": public_key,
                "contractAddresses": [to_checksum_address(a) for a in contract_addresses],
                "startTimestamp": int(start_timestamp),
                "durationDays": int(duration_days),
            },
        }

    def _format(self, value: int) -> Any:
        if self.value_format == "str":
            return str(value)
        return value

    async def user_decrypt(
        self,
        requests: Sequence[DecryptRequest],
        private_key: str,
        public_key: str,
        signature: str,
        contract_addresses: Sequence[str],
        user_address: str,
        start_timestamp: int,
        duration_days: int,
    ) -> Mapping[str, Any]:
        await asyncio.sleep(0)
        self.decrypt_calls += 1

        now = self._clock()
        if not start_timestamp <= now < start_timestamp + duration_days * config.SECONDS_PER_DAY:
            raise DecryptionRejectedError("signature is outside its validity window")

        derived = "0x" + bytes(PrivateKey(bytes.fromhex(private_key[2:])).public_key).hex()
        if derived != public_key:
            raise DecryptionRejectedError("keypair mismatch")

        typed_data = self.create_eip712(public_key, contract_addresses, start_timestamp, duration_days)
        recovered = Account.recover_message(encode_typed_data(full_message=typed_data), signature=signature)
        if recovered.lower() != user_address.lower():
            raise DecryptionRejectedError("signature was not produced by the requesting user")

        scope = {a.lower() for a in contract_addresses}
        results: dict[str, Any] = {}
        for req in requests:
            key = handle_key(req.handle)
            if req.contract_address.lower() not in scope:
                raise DecryptionRejectedError(f"contract {req.contract_address} not covered by signature")
            if key not in self._ciphertexts:
                raise DecryptionRejectedError(f"unknown handle {key}")
            if not self.is_allowed(key, user_address) or not self.is_allowed(key, req.contract_address):
                raise DecryptionRejectedError(f"{user_address} is not allowed to decrypt {key}")
            results[key] = self._format(self._ciphertexts[key])

        logger.debug("simulated_user_decrypt", user=user_address, handles=len(results))
        return results


@dataclass
class _PostRecord:
    post_id:      int
    author:       str
    created_at:   int
    content:      tuple[str, str, str, str]
    category:     str
    access_level: str
    price:        str
    view_count:   str
    like_count:   str
    is_active:    bool = True


class SimulatedZBlogLedger:
    """ZBlog contract state shared by every connected account."""

    def __init__(
        self,
        fhevm: SimulatedFhevm,
        address: str = config.ZBLOG_ADDRESSES[config.HARDHAT_CHAIN_ID],
        clock: Callable[[], float] = time.time,
        emit_events: bool = True,
    ):
        self.fhevm = fhevm
        self.address = to_checksum_address(address)
        self.emit_events = emit_events
        self._clock = clock
        self.posts: dict[int, _PostRecord] = {}
        self.user_posts: dict[str, list[int]] = {}
        self.transactions: list[tuple[str, str]] = []
        self._next_id = 1

    def connect(self, sender: str) -> "SimulatedZBlogContract":
        return SimulatedZBlogContract(self, sender)

    def allocate_id(self) -> int:
        post_id = self._next_id
        self._next_id += 1
        return post_id

    def now(self) -> int:
        return int(self._clock())

    def record_tx(self, method: str, sender: str) -> str:
        self.transactions.append((method, sender))
        return _random_hash()

    def get_record(self, operation: str, post_id: int) -> _PostRecord:
        post = self.posts.get(int(post_id))
        if post is None or not post.is_active:
            raise TransactionError(operation, f"post {post_id} does not exist")
        return post

    def allow_owner(self, handle: str, author: str) -> None:
        self.fhevm.allow(handle, self.address)
        self.fhevm.allow(handle, author)


class SimulatedZBlogContract:
    def __init__(self, ledger: SimulatedZBlogLedger, sender: str):
        self._ledger = ledger
        self.sender = to_checksum_address(sender)
        self.address = ledger.address

    async def create_post(
        self,
        content_part1: Any,
        content_part2: Any,
        content_part3: Any,
        content_length: Any,
        category: Any,
        access_level: Any,
        price: Any,
        input_proof: str,
    ) -> TxReceipt:
        await asyncio.sleep(0)
        ledger = self._ledger
        handles = [
            handle_key(h) for h in (
                content_part1, content_part2, content_part3, content_length,
                category, access_level, price,
            )
        ]
        try:
            ledger.fhevm.verify_input(handles, input_proof, self.address, self.sender)
        except EncryptionError as e:
            raise TransactionError("createPost", e)

        post_id = ledger.allocate_id()
        post = _PostRecord(
            post_id=post_id,
            author=self.sender,
            created_at=ledger.now(),
            content=(handles[0], handles[1], handles[2], handles[3]),
            category=handles[4],
            access_level=handles[5],
            price=handles[6],
            view_count=ledger.fhevm.trivial_encrypt(0),
            like_count=ledger.fhevm.trivial_encrypt(0),
        )
        for handle in (*handles, post.view_count, post.like_count):
            ledger.allow_owner(handle, self.sender)

        ledger.posts[post_id] = post
        ledger.user_posts.setdefault(self.sender.lower(), []).append(post_id)
        tx_hash = ledger.record_tx("createPost", self.sender)

        events = []
        if ledger.emit_events:
            events.append(ContractEvent("PostCreated", {"postId": post_id, "author": self.sender}))
        return TxReceipt(tx_hash=tx_hash, status=1, events=events)

    async def view_post(self, post_id: int) -> TxReceipt:
        await asyncio.sleep(0)
        post = self._ledger.get_record("viewPost", post_id)
        post.view_count = self._ledger.fhevm.add(post.view_count, 1)
        self._ledger.allow_owner(post.view_count, post.author)
        return TxReceipt(tx_hash=self._ledger.record_tx("viewPost", self.sender), status=1)

    async def like_post(self, post_id: int) -> TxReceipt:
        await asyncio.sleep(0)
        post = self._ledger.get_record("likePost", post_id)
        post.like_count = self._ledger.fhevm.add(post.like_count, 1)
        self._ledger.allow_owner(post.like_count, post.author)
        return TxReceipt(tx_hash=self._ledger.record_tx("likePost", self.sender), status=1)

    async def grant_access(self, post_id: int, reader: str) -> TxReceipt:
        await asyncio.sleep(0)
        post = self._ledger.get_record("grantAccess", post_id)
        if post.author.lower() != self.sender.lower():
            raise TransactionError("grantAccess", "only the author can grant access")
        for handle in (*post.content, post.category):
            self._ledger.fhevm.allow(handle, to_checksum_address(reader))
        return TxReceipt(tx_hash=self._ledger.record_tx("grantAccess", self.sender), status=1)

    async def get_post(self, post_id: int) -> tuple[int, str, int]:
        post = self._ledger.get_record("getPost", post_id)
        return (post.post_id, post.author, post.created_at)

    async def get_user_posts(self, address: str) -> list[int]:
        return list(self._ledger.user_posts.get(address.lower(), []))

    async def get_total_posts(self) -> int:
        return len(self._ledger.posts)

    async def get_encrypted_content(self, post_id: int) -> tuple[str, str, str, str]:
        return self._ledger.get_record("getEncryptedContent", post_id).content

    async def get_encrypted_category(self, post_id: int) -> str:
        return self._ledger.get_record("getEncryptedCategory", post_id).category

    async def get_encrypted_view_count(self, post_id: int) -> str:
        return self._ledger.get_record("getEncryptedViewCount", post_id).view_count

    async def get_encrypted_like_count(self, post_id: int) -> str:
        return self._ledger.get_record("getEncryptedLikeCount", post_id).like_count
