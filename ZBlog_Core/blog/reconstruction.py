"""
Content reconstruction: decrypted words + Content Cache → displayable text.

    cache hit   → the cached full text (authoritative)
    cache miss  → the decoded on-chain fragment, annotated with the true
                  length; posts longer than 12 characters are marked truncated
"""

from typing import Any, Mapping, Optional, Sequence

import structlog

from ZBlog_Core.zblog_shared import config
from ZBlog_Core.zblog_shared.text_codec import decode_words
from ZBlog_Core.zblog_shared.types import ReconstructedContent
from ZBlog_Core.zblog_shared.values import lookup_decrypted
from ZBlog_Core.zblog_db.content_cache import ContentCache

logger = structlog.get_logger(__name__)


def annotate_fragment(fragment: str, original_length: int) -> str:
    lines = [fragment, ""]
    if original_length > config.CODEC_MAX_CHARS:
        lines.append(f"(Decrypted from blockchain - first {config.CODEC_MAX_CHARS} characters only)")
    else:
        lines.append("(Decrypted from blockchain)")
    lines.append(f"Original length: {original_length} characters")
    return "\n".join(lines)


def reconstruct_content(
    post_id: str,
    encrypted_parts: Sequence[Any],
    encrypted_length: Any,
    decrypted_values: Mapping[Any, Any],
    cache: ContentCache,
    encrypted_category: Optional[Any] = None,
) -> ReconstructedContent:
    """Build the best available rendering of a post.

    decrypted_values is the raw userDecrypt result keyed by handle. Raises
    DecryptionRejectedError if a needed handle has no plaintext.
    """
    part1, part2, part3 = (lookup_decrypted(decrypted_values, h) for h in encrypted_parts)
    length = lookup_decrypted(decrypted_values, encrypted_length)
    category = None
    if encrypted_category is not None:
        category = lookup_decrypted(decrypted_values, encrypted_category)

    fragment = decode_words(part1, part2, part3, length)

    stored = cache.get_content(post_id)
    if stored is not None:
        logger.info("content_reconstructed", post_id=post_id, source="cache")
        return ReconstructedContent(
            post_id=post_id,
            text=stored.full_content,
            fragment=fragment,
            original_length=length,
            source="cache",
            category=category,
        )

    logger.info("content_reconstructed", post_id=post_id, source="chain", original_length=length)
    return ReconstructedContent(
        post_id=post_id,
        text=annotate_fragment(fragment, length),
        fragment=fragment,
        original_length=length,
        source="chain",
        category=category,
    )
