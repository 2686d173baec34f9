from ZBlog_Core.zblog_shared import config
from ZBlog_Core.zblog_shared.types import (
    ContractEvent,
    DecryptionSignature,
    ReconstructedContent,
    TxReceipt,
)

CONTRACT = "0x7816D51427c5Fa663425Bdb7c86361BD2d0a244B"
USER = "0x00000000000000000000000000000000000000aA"


def _signature(start=1_000, days=1) -> DecryptionSignature:
    return DecryptionSignature(
        private_key="0x01",
        public_key="0x02",
        signature="0x03",
        contract_addresses=[CONTRACT],
        user_address=USER,
        start_timestamp=start,
        duration_days=days,
    )


def test_signature_window_is_half_open():
    sig = _signature()
    end = 1_000 + config.SECONDS_PER_DAY
    assert sig.expires_at == end
    assert sig.is_valid(1_000)
    assert sig.is_valid(end - 1)
    assert not sig.is_valid(end)
    assert sig.is_expired(end)
    assert not sig.is_valid(999)


def test_signature_covers_scope_case_insensitively():
    sig = _signature()
    assert sig.covers(CONTRACT.lower(), USER.upper().replace("0X", "0x"))
    assert not sig.covers("0x0000000000000000000000000000000000000001", USER)
    assert not sig.covers(CONTRACT, "0x00000000000000000000000000000000000000bb")


def test_signature_json_round_trip():
    sig = _signature()
    assert DecryptionSignature.from_json(sig.to_json()) == sig


def test_receipt_find_event():
    receipt = TxReceipt(tx_hash="0x1", status=1, events=[ContractEvent("PostCreated", {"postId": 3})])
    assert receipt.find_event("PostCreated").args["postId"] == 3
    assert receipt.find_event("Other") is None


def test_reconstructed_content_truncation_flag():
    short = ReconstructedContent("1", "hi", "hi", 2, "chain")
    long = ReconstructedContent("1", "x", "x" * 12, 13, "chain")
    assert not short.is_truncated
    assert long.is_truncated
