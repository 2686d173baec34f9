"""Tests for the JSON-RPC contract client against a stubbed AsyncWeb3."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from eth_account import Account
from web3.exceptions import ContractLogicError, Web3Exception

from ZBlog_Core.zblog_shared import config
from ZBlog_Core.zblog_shared.errors import ContractNotDeployedError, TransactionError
from ZBlog_Core.fhe.web3_contract import Web3ZBlogContract, ZBLOG_ABI


pytestmark = pytest.mark.asyncio

ADDRESS = config.ZBLOG_ADDRESSES[config.HARDHAT_CHAIN_ID]
TX_HASH = bytes.fromhex("ab" * 32)


class FakeEth:
    def __init__(self, chain_id: int = config.HARDHAT_CHAIN_ID):
        self._chain_id = chain_id
        self.contract_mock = MagicMock()
        self.get_transaction_count = AsyncMock(return_value=7)
        self.send_raw_transaction = AsyncMock(return_value=TX_HASH)
        self.wait_for_transaction_receipt = AsyncMock(
            return_value={"transactionHash": TX_HASH, "status": 1}
        )

    @property
    def chain_id(self):
        async def _value():
            return self._chain_id
        return _value()

    def contract(self, address, abi):
        self.contract_mock.address = address
        return self.contract_mock


class FakeWeb3:
    def __init__(self, chain_id: int = config.HARDHAT_CHAIN_ID):
        self.eth = FakeEth(chain_id)


def _tx_fn(account) -> MagicMock:
    fn = MagicMock()
    fn.build_transaction = AsyncMock(return_value={
        "from": account.address,
        "to": ADDRESS,
        "data": "0x",
        "value": 0,
        "gas": 100_000,
        "gasPrice": 1,
        "nonce": 7,
        "chainId": config.HARDHAT_CHAIN_ID,
    })
    return fn


def _call_fn(result=None, error=None) -> MagicMock:
    fn = MagicMock()
    fn.call = AsyncMock(return_value=result, side_effect=error)
    return fn


@pytest.fixture
def account():
    return Account.create()


@pytest.fixture
def w3():
    return FakeWeb3()


@pytest.fixture
def client(w3, account):
    return Web3ZBlogContract(w3, ADDRESS, account)


# ── Deployment ──

async def test_for_chain_uses_configured_address(w3, account):
    client = await Web3ZBlogContract.for_chain(w3, account)
    assert client.address == ADDRESS


async def test_for_chain_unknown_chain():
    with pytest.raises(ContractNotDeployedError):
        await Web3ZBlogContract.for_chain(FakeWeb3(chain_id=1))


async def test_abi_shape():
    by_name = {entry["name"]: entry for entry in ZBLOG_ABI}
    assert len(by_name["createPost"]["inputs"]) == 8
    assert by_name["PostCreated"]["type"] == "event"
    assert by_name["getEncryptedContent"]["outputs"][0]["type"] == "bytes32"


# ── Transactions ──

async def test_create_post_sends_and_decodes(client, w3, account):
    fn = _tx_fn(account)
    contract = w3.eth.contract_mock
    contract.functions.createPost.return_value = fn
    contract.events.PostCreated.return_value.process_receipt.return_value = [
        {"event": "PostCreated", "args": {"postId": 4, "author": account.address}},
    ]

    handles = ["0x" + f"{i:064x}" for i in range(1, 8)]
    receipt = await client.create_post(*handles, "0xdeadbeef")

    args = contract.functions.createPost.call_args.args
    assert args[0] == (1).to_bytes(32, "big")
    assert args[6] == (7).to_bytes(32, "big")
    assert args[7] == bytes.fromhex("deadbeef")

    tx_params = fn.build_transaction.call_args.args[0]
    assert tx_params["from"] == account.address
    assert tx_params["nonce"] == 7
    assert tx_params["chainId"] == config.HARDHAT_CHAIN_ID
    w3.eth.send_raw_transaction.assert_awaited_once()

    assert receipt.status == 1
    assert receipt.tx_hash == "0x" + "ab" * 32
    assert receipt.find_event("PostCreated").args["postId"] == 4


async def test_view_post_reverted_status(client, w3, account):
    w3.eth.contract_mock.functions.viewPost.return_value = _tx_fn(account)
    w3.eth.contract_mock.events.PostCreated.return_value.process_receipt.return_value = []
    w3.eth.wait_for_transaction_receipt.return_value = {"transactionHash": TX_HASH, "status": 0}
    receipt = await client.view_post(1)
    assert receipt.status == 0
    assert receipt.events == []


async def test_send_failure_becomes_transaction_error(client, w3, account):
    w3.eth.contract_mock.functions.likePost.return_value = _tx_fn(account)
    w3.eth.send_raw_transaction.side_effect = Web3Exception("nonce too low")
    with pytest.raises(TransactionError) as exc:
        await client.like_post(1)
    assert exc.value.operation == "likePost"
    assert isinstance(exc.value.cause, Web3Exception)


async def test_transport_failure_becomes_transaction_error(client, w3, account):
    w3.eth.contract_mock.functions.likePost.return_value = _tx_fn(account)
    w3.eth.send_raw_transaction.side_effect = aiohttp.ClientConnectionError("connection refused")
    with pytest.raises(TransactionError) as exc:
        await client.like_post(1)
    assert isinstance(exc.value.cause, aiohttp.ClientConnectionError)


async def test_receipt_timeout_becomes_transaction_error(client, w3, account):
    w3.eth.contract_mock.functions.grantAccess.return_value = _tx_fn(account)
    w3.eth.wait_for_transaction_receipt.side_effect = Web3Exception("timed out")
    with pytest.raises(TransactionError):
        await client.grant_access(1, account.address)


async def test_transact_without_account(w3):
    client = Web3ZBlogContract(w3, ADDRESS)
    with pytest.raises(TransactionError, match="no sending account"):
        await client.view_post(1)


# ── Calls ──

async def test_get_post_normalizes(client, w3, account):
    w3.eth.contract_mock.functions.getPost.return_value = _call_fn((3, account.address, 1_700_000_000))
    assert await client.get_post(3) == (3, account.address, 1_700_000_000)


async def test_get_user_posts(client, w3, account):
    w3.eth.contract_mock.functions.getUserPosts.return_value = _call_fn([1, 2])
    assert await client.get_user_posts(account.address.lower()) == [1, 2]


async def test_get_encrypted_content_returns_tuple(client, w3):
    handles = [bytes([i]) * 32 for i in range(4)]
    w3.eth.contract_mock.functions.getEncryptedContent.return_value = _call_fn(handles)
    assert await client.get_encrypted_content(1) == tuple(handles)


async def test_call_revert_becomes_transaction_error(client, w3):
    w3.eth.contract_mock.functions.getTotalPosts.return_value = _call_fn(
        error=ContractLogicError("execution reverted")
    )
    with pytest.raises(TransactionError):
        await client.get_total_posts()


@pytest.mark.parametrize("error", [
    aiohttp.ClientConnectionError("connection refused"),
    ConnectionRefusedError(111, "Connection refused"),
    asyncio.TimeoutError(),
])
async def test_call_transport_failure_becomes_transaction_error(client, w3, error):
    w3.eth.contract_mock.functions.getPost.return_value = _call_fn(error=error)
    with pytest.raises(TransactionError) as exc:
        await client.get_post(1)
    assert exc.value.cause is error
