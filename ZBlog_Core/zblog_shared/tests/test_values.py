import pytest

from ZBlog_Core.zblog_shared.errors import DecryptionRejectedError
from ZBlog_Core.zblog_shared.values import to_int, handle_key, lookup_decrypted


# ── to_int ──


@pytest.mark.parametrize("value, expected", [
    (7, 7),
    ("42", 42),
    (" 42 ", 42),
    ("0x2a", 42),
    (True, 1),
    (False, 0),
    (b"\x01\x00", 256),
    (bytearray(b"\x2a"), 42),
])
def test_to_int_normalizes(value, expected):
    assert to_int(value) == expected


def test_to_int_rejects_unknown_types():
    with pytest.raises(TypeError):
        to_int(1.5)


def test_to_int_rejects_garbage_strings():
    with pytest.raises(ValueError):
        to_int("not a number")


# ── handle_key ──


def test_handle_key_is_canonical_across_forms():
    as_str = "0x" + "ab" * 32
    as_bytes = bytes.fromhex("ab" * 32)
    as_int = int("ab" * 32, 16)
    assert handle_key(as_str) == handle_key(as_bytes) == handle_key(as_int) == as_str


def test_handle_key_lowercases_and_pads():
    assert handle_key("0xABC") == "0x" + "0" * 61 + "abc"


# ── lookup_decrypted ──


def test_lookup_matches_any_key_form():
    handle = "0x" + "01" * 32
    results = {bytes.fromhex("01" * 32): "5"}
    assert lookup_decrypted(results, handle) == 5


def test_lookup_missing_handle_is_rejected():
    with pytest.raises(DecryptionRejectedError):
        lookup_decrypted({}, "0x" + "02" * 32)
