"""
ZBlog contract client over JSON-RPC (web3 AsyncWeb3).

Transactions are signed locally with an eth_account key, sent raw, and
awaited; PostCreated is decoded from the receipt. Every web3 failure, reverts
and HTTP transport errors alike, surfaces as TransactionError with the
underlying cause. Receipt waits time out after TX_RECEIPT_TIMEOUT_SECONDS;
nothing is retried.
"""

import asyncio
from typing import Any, Optional

import aiohttp
import structlog
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3
from web3.exceptions import Web3Exception
from web3.logs import DISCARD

from ZBlog_Core.zblog_shared import config
from ZBlog_Core.zblog_shared.errors import ContractNotDeployedError, TransactionError
from ZBlog_Core.zblog_shared.types import ContractEvent, TxReceipt
from ZBlog_Core.zblog_shared.values import handle_key

logger = structlog.get_logger(__name__)

# Contract reverts, bad responses and transport failures from the HTTP provider.
RPC_ERRORS = (Web3Exception, ValueError, aiohttp.ClientError, asyncio.TimeoutError, OSError)


def _fn(name: str, inputs: list[tuple[str, str]], outputs: list[str], mutability: str) -> dict:
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": "", "type": t} for t in outputs],
    }


# Encrypted inputs and handles are bytes32 on the ABI level.
ZBLOG_ABI = [
    _fn("createPost", [
        ("contentPart1Input", "bytes32"),
        ("contentPart2Input", "bytes32"),
        ("contentPart3Input", "bytes32"),
        ("contentLengthInput", "bytes32"),
        ("categoryInput", "bytes32"),
        ("accessLevelInput", "bytes32"),
        ("priceInput", "bytes32"),
        ("inputProof", "bytes"),
    ], [], "nonpayable"),
    _fn("viewPost", [("postId", "uint256")], [], "nonpayable"),
    _fn("likePost", [("postId", "uint256")], [], "nonpayable"),
    _fn("grantAccess", [("postId", "uint256"), ("reader", "address")], [], "nonpayable"),
    _fn("getPost", [("postId", "uint256")], ["uint256", "address", "uint256"], "view"),
    _fn("getUserPosts", [("user", "address")], ["uint256[]"], "view"),
    _fn("getTotalPosts", [], ["uint256"], "view"),
    _fn("getEncryptedContent", [("postId", "uint256")], ["bytes32", "bytes32", "bytes32", "bytes32"], "view"),
    _fn("getEncryptedCategory", [("postId", "uint256")], ["bytes32"], "view"),
    _fn("getEncryptedViewCount", [("postId", "uint256")], ["bytes32"], "view"),
    _fn("getEncryptedLikeCount", [("postId", "uint256")], ["bytes32"], "view"),
    {
        "type": "event",
        "name": "PostCreated",
        "anonymous": False,
        "inputs": [
            {"name": "postId", "type": "uint256", "indexed": True},
            {"name": "author", "type": "address", "indexed": True},
        ],
    },
]


def _as_bytes32(handle: Any) -> bytes:
    return bytes.fromhex(handle_key(handle)[2:])


class Web3ZBlogContract:
    def __init__(self, w3: AsyncWeb3, address: str, account: Optional[LocalAccount] = None):
        self.w3 = w3
        self.address = AsyncWeb3.to_checksum_address(address)
        self._account = account
        self._contract = w3.eth.contract(address=self.address, abi=ZBLOG_ABI)

    @classmethod
    async def for_chain(cls, w3: AsyncWeb3, account: Optional[LocalAccount] = None) -> "Web3ZBlogContract":
        chain_id = await w3.eth.chain_id
        if not config.is_zblog_deployed(chain_id):
            raise ContractNotDeployedError(chain_id)
        return cls(w3, config.get_zblog_address(chain_id), account)

    def decode_events(self, receipt: Any) -> list[ContractEvent]:
        logs = self._contract.events.PostCreated().process_receipt(receipt, errors=DISCARD)
        return [ContractEvent(name=log["event"], args=dict(log["args"])) for log in logs]

    async def _transact(self, operation: str, fn) -> TxReceipt:
        if self._account is None:
            raise TransactionError(operation, "no sending account configured")

        sender = self._account.address
        try:
            tx = await fn.build_transaction({
                "from": sender,
                "nonce": await self.w3.eth.get_transaction_count(sender),
                "chainId": await self.w3.eth.chain_id,
            })
            signed = self._account.sign_transaction(tx)
            tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=config.TX_RECEIPT_TIMEOUT_SECONDS
            )
        except RPC_ERRORS as e:
            logger.error("transaction_failed", operation=operation, error=str(e))
            raise TransactionError(operation, e)

        result = TxReceipt(
            tx_hash="0x" + bytes(receipt["transactionHash"]).hex(),
            status=int(receipt["status"]),
            events=self.decode_events(receipt),
        )
        logger.info("transaction_confirmed", operation=operation, tx_hash=result.tx_hash, status=result.status)
        return result

    async def _call(self, operation: str, fn) -> Any:
        try:
            return await fn.call()
        except RPC_ERRORS as e:
            logger.error("call_failed", operation=operation, error=str(e))
            raise TransactionError(operation, e)

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
        handles = [
            _as_bytes32(h) for h in (
                content_part1, content_part2, content_part3, content_length,
                category, access_level, price,
            )
        ]
        proof = bytes.fromhex(input_proof[2:] if input_proof.startswith("0x") else input_proof)
        return await self._transact("createPost", self._contract.functions.createPost(*handles, proof))

    async def view_post(self, post_id: int) -> TxReceipt:
        return await self._transact("viewPost", self._contract.functions.viewPost(post_id))

    async def like_post(self, post_id: int) -> TxReceipt:
        return await self._transact("likePost", self._contract.functions.likePost(post_id))

    async def grant_access(self, post_id: int, reader: str) -> TxReceipt:
        fn = self._contract.functions.grantAccess(post_id, AsyncWeb3.to_checksum_address(reader))
        return await self._transact("grantAccess", fn)

    async def get_post(self, post_id: int) -> tuple[int, str, int]:
        post_id_, author, created_at = await self._call("getPost", self._contract.functions.getPost(post_id))
        return (int(post_id_), author, int(created_at))

    async def get_user_posts(self, address: str) -> list[int]:
        fn = self._contract.functions.getUserPosts(AsyncWeb3.to_checksum_address(address))
        return [int(p) for p in await self._call("getUserPosts", fn)]

    async def get_total_posts(self) -> int:
        return int(await self._call("getTotalPosts", self._contract.functions.getTotalPosts()))

    async def get_encrypted_content(self, post_id: int) -> tuple[Any, Any, Any, Any]:
        return tuple(await self._call("getEncryptedContent", self._contract.functions.getEncryptedContent(post_id)))

    async def get_encrypted_category(self, post_id: int) -> Any:
        return await self._call("getEncryptedCategory", self._contract.functions.getEncryptedCategory(post_id))

    async def get_encrypted_view_count(self, post_id: int) -> Any:
        return await self._call("getEncryptedViewCount", self._contract.functions.getEncryptedViewCount(post_id))

    async def get_encrypted_like_count(self, post_id: int) -> Any:
        return await self._call("getEncryptedLikeCount", self._contract.functions.getEncryptedLikeCount(post_id))
