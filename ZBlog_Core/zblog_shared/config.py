import os

# Redis Connection

REDIS_HOST              = os.environ.get("ZBLOG_REDIS_HOST", "localhost")
REDIS_PORT              = int(os.environ.get("ZBLOG_REDIS_PORT", "6379"))
REDIS_CONTENT_DB        = 2          # Logical DB for the Content Cache
REDIS_SIGNATURE_DB      = 3          # Logical DB for decryption signatures
REDIS_SOCKET_TIMEOUT    = 5          # seconds

# Key Namespace Prefixes

CONTENT_KEY_PREFIX      = "content:v1:post"      # content:v1:post:{post_id}
CONTENT_HASH_PREFIX     = "content:v1:hash"      # content:v1:hash:{content_hash}
SIGNATURE_KEY_PREFIX    = "fhevm:v1:sig"         # fhevm:v1:sig:{user}:{digest}

# Word Codec

CODEC_CHARS_PER_WORD    = 4
CODEC_WORD_COUNT        = 3
CODEC_MAX_CHARS         = CODEC_CHARS_PER_WORD * CODEC_WORD_COUNT   # 12
CODEC_WORD_MASK         = 0xFFFFFFFF

# Decryption Sessions

DECRYPTION_DURATION_DAYS    = 365
SECONDS_PER_DAY             = 86_400

# Post Lifecycle

UNKNOWN_POST_ID         = "unknown"
FALLBACK_CATEGORY       = 10            # category of synthesized placeholder content
UINT8_MAX               = 0xFF
UINT32_MAX              = 0xFFFFFFFF

# Access Levels (0=public, 1=friends, 2=specific, 3=paid)

ACCESS_PUBLIC           = 0
ACCESS_FRIENDS          = 1
ACCESS_SPECIFIC         = 2
ACCESS_PAID             = 3
VALID_ACCESS_LEVELS     = {ACCESS_PUBLIC, ACCESS_FRIENDS, ACCESS_SPECIFIC, ACCESS_PAID}

# Ledger

RPC_URL                     = os.environ.get("ZBLOG_RPC_URL", "http://localhost:8545")
TX_RECEIPT_TIMEOUT_SECONDS  = 120
HARDHAT_CHAIN_ID            = 31337
SEPOLIA_CHAIN_ID            = 11155111
ZERO_ADDRESS                = "0x0000000000000000000000000000000000000000"
DEV_PRIVATE_KEY             = os.environ.get("ZBLOG_DEV_PRIVATE_KEY")     # None → fresh key per process

ZBLOG_ADDRESSES = {
    SEPOLIA_CHAIN_ID: "0x7816D51427c5Fa663425Bdb7c86361BD2d0a244B",
    HARDHAT_CHAIN_ID: "0x7816D51427c5Fa663425Bdb7c86361BD2d0a244B",
}

# Simulated coprocessor (dev server, prototype, tests)

SIMULATED_VERIFYING_CONTRACT    = "0xb6E160B1ff80D67Bfe90A85eE06Ce0A2613607D1"
SIMULATED_EIP712_NAME           = "Decryption"
SIMULATED_EIP712_VERSION        = "1"

# Logging

LOG_LEVEL               = os.environ.get("ZBLOG_LOG_LEVEL", "INFO")
LOG_ENVIRONMENT         = os.environ.get("ZBLOG_ENV", "development")


def get_zblog_address(chain_id: int) -> str | None:
    return ZBLOG_ADDRESSES.get(chain_id)


def is_zblog_deployed(chain_id: int) -> bool:
    address = ZBLOG_ADDRESSES.get(chain_id)
    return address is not None and address != ZERO_ADDRESS
