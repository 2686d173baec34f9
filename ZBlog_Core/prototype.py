"""
zBlog Prototype Demo — End-to-end 5-phase post lifecycle.

Requires Redis 7 (Content Cache db=2, signatures db=3). The ledger and the
encryption platform are simulated in-process.

Run:
    python -m ZBlog_Core.prototype
    python -m ZBlog_Core.prototype --keep        # keep existing Redis data
"""

import argparse
import asyncio

from eth_account import Account

from ZBlog_Core.zblog_shared.log import configure_logging
from ZBlog_Core.zblog_shared.types import Outcome
from ZBlog_Core.zblog_db.connection import (
    create_content_client,
    create_signature_client,
    health_check,
    close_all,
)
from ZBlog_Core.zblog_db.content_cache import ContentCache
from ZBlog_Core.zblog_db.signature_store import RedisStringStorage
from ZBlog_Core.blog.service import ZBlogService
from ZBlog_Core.bridge import create_simulated_ledger, connect_account


# ─── ANSI Display Helpers ───

class Display:
    """Terminal formatting with ANSI colors."""

    RESET   = "\033[0m"
    BOLD    = "\033[1m"
    DIM     = "\033[2m"

    RED     = "\033[91m"
    GREEN   = "\033[92m"
    YELLOW  = "\033[93m"
    BLUE    = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN    = "\033[96m"
    WHITE   = "\033[97m"

    OUTCOME_COLORS = {
        Outcome.OK:          GREEN,
        Outcome.DEGRADED:    YELLOW,
        Outcome.BUSY:        YELLOW,
        Outcome.INVALID:     RED,
        Outcome.UNAVAILABLE: RED,
        Outcome.FAILED:      RED,
    }

    @classmethod
    def phase_header(cls, number: int, title: str) -> None:
        line = "═" * 60
        print(f"\n{cls.CYAN}{cls.BOLD}{line}")
        print(f"  PHASE {number} — {title}")
        print(f"{line}{cls.RESET}\n")

    @classmethod
    def arrow(cls, msg: str) -> None:
        print(f"  {cls.BLUE}→{cls.RESET} {msg}")

    @classmethod
    def success(cls, msg: str) -> None:
        print(f"  {cls.GREEN}✓{cls.RESET} {msg}")

    @classmethod
    def failure(cls, msg: str) -> None:
        print(f"  {cls.RED}✗{cls.RESET} {msg}")

    @classmethod
    def outcome(cls, outcome: Outcome, msg: str) -> None:
        color = cls.OUTCOME_COLORS.get(outcome, cls.WHITE)
        print(f"  {color}{cls.BOLD}[{outcome.value}]{cls.RESET} {msg}")

    @classmethod
    def stat_row(cls, label: str, value, width: int = 28) -> None:
        print(f"  {label:<{width}} {cls.BOLD}{value}{cls.RESET}")

    @classmethod
    def table(cls, headers: list[str], rows: list[list], col_width: int = 14) -> None:
        header_line = "".join(f"{h:<{col_width}}" for h in headers)
        print(f"\n  {cls.BOLD}{header_line}{cls.RESET}")
        print(f"  {'─' * (col_width * len(headers))}")
        for row in rows:
            print("  " + "".join(f"{str(cell):<{col_width}}" for cell in row))
        print()

    @classmethod
    def block(cls, text: str) -> None:
        for line in text.split("\n"):
            print(f"    {cls.DIM}│{cls.RESET} {line}")

    @classmethod
    def section(cls, title: str) -> None:
        print(f"\n  {cls.MAGENTA}{cls.BOLD}── {title} ──{cls.RESET}")

    @classmethod
    def banner(cls) -> None:
        print(f"""
{cls.CYAN}{cls.BOLD}
    ╔═══════════════════════════════════════════════════╗
    ║     zBlog — Encrypted Blogging Demo               ║
    ║     Confidential Post Lifecycle Prototype         ║
    ╚═══════════════════════════════════════════════════╝
{cls.RESET}""")


# ─── Prototype Logic ───

# (content, category, access_level)
POST_PLAN = [
    ("Welcome to zBlog", 1, 0),
    (
        "Encrypted counters\n\nViews and likes are stored as ciphertexts; "
        "only the author can decrypt the totals.",
        2, 1,
    ),
]

ENGAGEMENT = {"views": 3, "likes": 2}


async def phase1_publish(author: ZBlogService) -> list[str]:
    """PUBLISH: encode → encrypt 7 scalars → createPost → cache full text."""
    Display.phase_header(1, "PUBLISH — Encrypted Post Creation")
    Display.arrow(f"Author: {author.signer.address}")

    post_ids = []
    for content, category, access_level in POST_PLAN:
        first_line = content.split("\n")[0]
        Display.section(f"Publishing '{first_line}'")
        result = await author.create_post(content, category, access_level)
        Display.outcome(result.outcome, result.message)
        if result.encoded is not None:
            Display.stat_row("Encoded words:", " ".join(f"0x{w:08x}" for w in result.encoded.words))
            Display.stat_row("Original length:", result.encoded.original_length)
            Display.stat_row("Truncated on-chain:", "yes" if result.encoded.is_truncated else "no")
        Display.stat_row("Content cached:", "yes" if result.content_stored else "no")
        if result.post_id:
            post_ids.append(result.post_id)

    total = await author.load_total_posts()
    Display.section("Ledger state")
    Display.stat_row("Total posts:", total)
    Display.stat_row("Author's posts:", len(author.posts))
    return post_ids


async def phase2_engage(reader: ZBlogService, post_ids: list[str]) -> None:
    """ENGAGE: a reader views and likes; counters move under encryption."""
    Display.phase_header(2, "ENGAGE — Encrypted Counters")
    Display.arrow(f"Reader: {reader.signer.address}")

    target = post_ids[0]
    for _ in range(ENGAGEMENT["views"]):
        result = await reader.view_post(target)
        Display.outcome(result.outcome, result.message)
    for _ in range(ENGAGEMENT["likes"]):
        result = await reader.like_post(target)
        Display.outcome(result.outcome, result.message)


async def phase3_stats(author: ZBlogService, reader: ZBlogService, post_ids: list[str]) -> None:
    """DECRYPT STATS: author decrypts both counters in one batch."""
    Display.phase_header(3, "DECRYPT STATS — Author-Only Counters")

    rows = []
    for post_id in post_ids:
        result = await author.decrypt_post_stats(post_id)
        Display.outcome(result.outcome, result.message)
        if result.stats is not None:
            rows.append([post_id, result.stats.view_count, result.stats.like_count])
    Display.table(["Post", "Views", "Likes"], rows)

    Display.section("Reader attempts the same")
    denied = await reader.decrypt_post_stats(post_ids[0])
    Display.outcome(denied.outcome, denied.message)


async def phase4_reconstruct(author: ZBlogService, post_ids: list[str]) -> None:
    """RECONSTRUCT: decrypt the on-chain words, then prefer the cached full text."""
    Display.phase_header(4, "RECONSTRUCT — On-Chain Words + Content Cache")

    for post_id in post_ids:
        result = await author.decrypt_post_content(post_id)
        Display.section(f"Post {post_id}")
        Display.outcome(result.outcome, result.message)
        if result.content is None:
            continue
        Display.stat_row("On-chain fragment:", repr(result.content.fragment))
        Display.stat_row("Source:", result.content.source)
        Display.block(result.content.text)

    Display.section("Cache miss (cache cleared)")
    removed = author.cache.clear()
    Display.arrow(f"Cleared {removed} cached records")
    result = await author.decrypt_post_content(post_ids[-1])
    if result.content is not None:
        Display.stat_row("Source:", result.content.source)
        Display.block(result.content.text)


async def phase5_grant(author: ZBlogService, reader: ZBlogService, post_ids: list[str]) -> None:
    """GRANT: author shares one post's content handles with the reader."""
    Display.phase_header(5, "GRANT — Per-Reader Access")

    target = post_ids[0]
    before = await reader.decrypt_post_content(target)
    Display.outcome(before.outcome, f"Before grant: {before.message}")

    granted = await author.grant_access(target, reader.signer.address)
    Display.outcome(granted.outcome, granted.message)

    after = await reader.decrypt_post_content(target)
    Display.outcome(after.outcome, f"After grant: {after.message}")
    if after.content is not None:
        Display.block(after.content.text)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="zBlog Prototype — encrypted post lifecycle")
    parser.add_argument(
        "--keep",
        action="store_true",
        help="Do not flush the demo databases before running",
    )
    return parser.parse_args()


async def main(keep: bool = False):
    configure_logging()
    Display.banner()

    # ─── Connect to infrastructure ───
    Display.arrow("Connecting to Redis (content db=2, signatures db=3)…")
    content_client = create_content_client()
    signature_client = create_signature_client()

    if not keep:
        Display.arrow("Flushing demo databases…")
        content_client.flushdb()
        signature_client.flushdb()

    cache = ContentCache(content_client)
    seeded = cache.seed_samples()
    storage = RedisStringStorage(signature_client)

    ledger = create_simulated_ledger()
    author = connect_account(ledger, Account.create(), cache, storage)
    reader = connect_account(ledger, Account.create(), cache, storage)

    status = health_check(content_client, signature_client)
    Display.stat_row("Content Cache:", "connected" if status.content_connected else "down")
    Display.stat_row("Signature store:", "connected" if status.signature_connected else "down")
    Display.stat_row("Sample records seeded:", seeded)
    Display.success("Infrastructure ready\n")

    try:
        post_ids = await phase1_publish(author)
        if not post_ids:
            Display.failure("No posts were created, stopping")
            return

        await phase2_engage(reader, post_ids)
        await phase3_stats(author, reader, post_ids)
        await phase4_reconstruct(author, post_ids)
        await phase5_grant(author, reader, post_ids)

        Display.section("Decryption sessions")
        Display.stat_row("userDecrypt calls:", ledger.fhevm.decrypt_calls)
        Display.stat_row("Transactions:", len(ledger.transactions))

        print(f"\n{Display.GREEN}{Display.BOLD}  ══ Demo complete ══{Display.RESET}\n")

    finally:
        close_all(content_client, signature_client)


if __name__ == "__main__":
    args = parse_args()
    asyncio.run(main(keep=args.keep))
