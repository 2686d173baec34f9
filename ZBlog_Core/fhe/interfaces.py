"""
Collaborator contracts for the encryption-capable ledger.

FhevmInstance    encrypted-input builder, keypair + EIP-712 request helpers,
                 and the batched userDecrypt primitive
ZBlogContract    the ZBlog contract surface, bound to one sending account
Signer           the wallet that authorizes decryption sessions

Implementations: fhe.simulated (in-process), fhe.web3_contract (JSON-RPC).
"""

from typing import Any, Mapping, Protocol, Sequence

from ZBlog_Core.zblog_shared.types import DecryptRequest, EncryptedInputBundle, TxReceipt


class EncryptedInput(Protocol):
    def add8(self, value: int) -> "EncryptedInput": ...
    def add32(self, value: int) -> "EncryptedInput": ...
    async def encrypt(self) -> EncryptedInputBundle: ...


class FhevmInstance(Protocol):
    def create_encrypted_input(self, contract_address: str, user_address: str) -> EncryptedInput: ...

    def generate_keypair(self) -> tuple[str, str]:
        """Return (public_key, private_key) as 0x-prefixed hex."""
        ...

    def create_eip712(
        self,
        public_key: str,
        contract_addresses: Sequence[str],
        start_timestamp: int,
        duration_days: int,
    ) -> dict: ...

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
    ) -> Mapping[str, Any]: ...


class Signer(Protocol):
    address: str

    async def sign_typed_data(self, typed_data: dict) -> str: ...


class ZBlogContract(Protocol):
    address: str

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
    ) -> TxReceipt: ...

    async def view_post(self, post_id: int) -> TxReceipt: ...
    async def like_post(self, post_id: int) -> TxReceipt: ...
    async def grant_access(self, post_id: int, reader: str) -> TxReceipt: ...

    async def get_post(self, post_id: int) -> tuple[int, str, int]: ...
    async def get_user_posts(self, address: str) -> list[int]: ...
    async def get_total_posts(self) -> int: ...
    async def get_encrypted_content(self, post_id: int) -> tuple[Any, Any, Any, Any]: ...
    async def get_encrypted_category(self, post_id: int) -> Any: ...
    async def get_encrypted_view_count(self, post_id: int) -> Any: ...
    async def get_encrypted_like_count(self, post_id: int) -> Any: ...


def post_id_arg(post_id: str) -> int:
    """Post ids travel as strings; contract calls take the uint256."""
    return int(post_id)
