from ZBlog_Core.zblog_shared import config
from ZBlog_Core.zblog_db.signature_store import MemoryStringStorage
from ZBlog_Core.fhe.decryption_signature import DecryptionSessionManager, normalize_addresses

CONTRACT = config.ZBLOG_ADDRESSES[config.HARDHAT_CHAIN_ID]
OTHER = "0x0000000000000000000000000000000000000001"
USER = "0x00000000000000000000000000000000000000AA"


def test_cache_key_ignores_order_and_case():
    key1 = DecryptionSessionManager.cache_key([CONTRACT, OTHER], USER)
    key2 = DecryptionSessionManager.cache_key([OTHER, CONTRACT.lower()], USER.lower())
    assert key1 == key2
    assert key1.startswith(f"{config.SIGNATURE_KEY_PREFIX}:{USER.lower()}:")


def test_cache_key_differs_per_user():
    other_user = "0x00000000000000000000000000000000000000BB"
    assert DecryptionSessionManager.cache_key([CONTRACT], USER) != \
        DecryptionSessionManager.cache_key([CONTRACT], other_user)


def test_normalize_addresses_dedupes_and_checksums():
    assert normalize_addresses([CONTRACT.lower(), CONTRACT]) == [CONTRACT]


def test_manager_defaults(fhevm):
    sessions = DecryptionSessionManager(fhevm, MemoryStringStorage())
    assert sessions.duration_days == config.DECRYPTION_DURATION_DAYS
