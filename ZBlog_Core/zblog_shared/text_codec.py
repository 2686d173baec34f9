"""
Word codec: packs short text into the three uint32 words a post carries on-chain.

Layout:
    text[0:4]   → part1     byte i of a word = code point of character i
    text[4:8]   → part2     (byte 0 = least significant, little-endian)
    text[8:12]  → part3     short chunks are right-padded with NUL (0)

Only the first 12 characters fit. original_length keeps the true length so a
reader can tell the on-chain text is a prefix and go to the Content Cache for
the rest.

Limitations:
  - one byte per character: code points above 255 keep only their low byte
  - decode stops reading a word at its first zero byte, so an embedded NUL
    (or any character whose low byte is 0) cuts that word short
"""

import structlog

from ZBlog_Core.zblog_shared import config
from ZBlog_Core.zblog_shared.types import EncodedWords

logger = structlog.get_logger(__name__)

_BYTE_MASK = 0xFF


def _pack_word(chunk: str) -> int:
    """Pack up to 4 characters into one uint32, character i at byte i."""
    word = 0
    for i in range(config.CODEC_CHARS_PER_WORD):
        code = ord(chunk[i]) if i < len(chunk) else 0
        if code > _BYTE_MASK:
            logger.warning("codec_char_out_of_range", code_point=code, byte_index=i)
        word |= (code & _BYTE_MASK) << (i * 8)
    return word & config.CODEC_WORD_MASK


def _unpack_word(word: int) -> str:
    chars = []
    for i in range(config.CODEC_CHARS_PER_WORD):
        code = (word >> (i * 8)) & _BYTE_MASK
        if code == 0:
            break
        chars.append(chr(code))
    return "".join(chars)


def encode_text(text: str) -> EncodedWords:
    """Encode text into three packed words plus its untruncated length."""
    truncated = text[:config.CODEC_MAX_CHARS]
    size = config.CODEC_CHARS_PER_WORD

    chunks = [
        truncated[i * size:(i + 1) * size].ljust(size, "\0")
        for i in range(config.CODEC_WORD_COUNT)
    ]
    part1, part2, part3 = (_pack_word(chunk) for chunk in chunks)

    logger.debug(
        "codec_encoded",
        original_length=len(text),
        truncated=truncated,
        words=[part1, part2, part3],
    )
    return EncodedWords(part1=part1, part2=part2, part3=part3, original_length=len(text))


def decode_words(part1: int, part2: int, part3: int, length: int) -> str:
    """Rebuild the on-chain prefix (at most 12 characters) from three words.

    length is not applied here; compare it with CODEC_MAX_CHARS to detect
    a truncated post.
    """
    combined = "".join(
        _unpack_word(int(word) & config.CODEC_WORD_MASK)
        for word in (part1, part2, part3)
    )
    decoded = combined.replace("\0", "")

    logger.debug("codec_decoded", decoded=decoded, original_length=int(length))
    return decoded
