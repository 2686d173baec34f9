"""
ZBlogService — the post lifecycle for one signed-in account.

Create   → validate → encode (12-char window) → encrypt 7 scalars → createPost
           → PostCreated id (or "unknown") → full text into the Content Cache
Engage   → viewPost / likePost / grantAccess, one transaction each
Decrypt  → decryption session → batched userDecrypt → stats or reconstructed text
List     → getUserPosts → getPost per id (failures skipped, not fatal)

Every public operation returns a result object with an Outcome and a message;
ZBlogError never escapes an operation. create_post and load_user_posts are
guarded by busy flags: a call made while one is running returns BUSY at once.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from eth_utils import is_address

from ZBlog_Core.zblog_shared import config
from ZBlog_Core.zblog_shared.errors import (
    ZBlogError,
    DecryptionRejectedError,
    InvalidAccessLevelError,
    InvalidAddressError,
    InvalidCategoryError,
    InvalidContentError,
    InvalidPostIdError,
    InvalidPriceError,
    MissingPostIdError,
)
from ZBlog_Core.zblog_shared.text_codec import encode_text
from ZBlog_Core.zblog_shared.types import (
    ActionResult,
    BlogPost,
    ContentResult,
    CreatePostResult,
    DecryptRequest,
    DecryptionSignature,
    EncodedWords,
    Outcome,
    PostListResult,
    PostState,
    PostStats,
    StatsResult,
    TxReceipt,
)
from ZBlog_Core.zblog_shared.values import lookup_decrypted
from ZBlog_Core.zblog_db.content_cache import ContentCache
from ZBlog_Core.fhe.decryption_signature import DecryptionSessionManager
from ZBlog_Core.fhe.interfaces import FhevmInstance, Signer, ZBlogContract, post_id_arg
from ZBlog_Core.blog.reconstruction import reconstruct_content

logger = structlog.get_logger(__name__)


def derive_title(content: str, post_id: str) -> str:
    """First line of the post, or a generic title when it is blank."""
    first_line = content.split("\n")[0].strip()
    return first_line or f"Article #{post_id}"


def validate_post(content: str, category: int, access_level: int, price: int) -> None:
    if not content or not content.strip():
        raise InvalidContentError("content is empty")
    if not 0 <= category <= config.UINT8_MAX:
        raise InvalidCategoryError(category)
    if access_level not in config.VALID_ACCESS_LEVELS:
        raise InvalidAccessLevelError(access_level)
    if not 0 <= price <= config.UINT32_MAX:
        raise InvalidPriceError(price)


def validate_post_id(operation: str, post_id: Optional[str]) -> None:
    if not post_id:
        raise MissingPostIdError(operation)
    post_id = str(post_id)
    if not (post_id.isascii() and post_id.isdecimal()):
        raise InvalidPostIdError(post_id)


class ZBlogService:
    """Post lifecycle orchestration for one publisher/reader account."""

    def __init__(
        self,
        instance: Optional[FhevmInstance],
        contract: Optional[ZBlogContract],
        signer: Optional[Signer],
        cache: ContentCache,
        sessions: DecryptionSessionManager,
    ):
        self.instance = instance
        self.contract = contract
        self.signer = signer
        self.cache = cache
        self.sessions = sessions

        self.message = "Ready"
        self.posts: list[BlogPost] = []
        self.total_posts = 0
        self.is_creating_post = False
        self.is_loading_posts = False
        self.post_state = PostState.DRAFT

    @property
    def can_interact(self) -> bool:
        return self.instance is not None and self.contract is not None and self.signer is not None

    @property
    def can_perform_actions(self) -> bool:
        return self.can_interact and not self.is_creating_post and not self.is_loading_posts

    def _report(self, message: str) -> str:
        self.message = message
        return message

    def find_post(self, post_id: str) -> Optional[BlogPost]:
        for post in self.posts:
            if post.post_id == post_id:
                return post
        return None

    # ─── Create ───

    async def create_post(
        self,
        content: str,
        category: int,
        access_level: int,
        price: int = 0,
        title: Optional[str] = None,
    ) -> CreatePostResult:
        if self.is_creating_post:
            return CreatePostResult(Outcome.BUSY, PostState.DRAFT, "Post creation already in progress")

        try:
            validate_post(content, category, access_level, price)
        except ZBlogError as e:
            return CreatePostResult(Outcome.INVALID, PostState.DRAFT, self._report(str(e)))

        if not self.can_interact:
            return CreatePostResult(
                Outcome.UNAVAILABLE, PostState.DRAFT,
                self._report("Missing required parameters for post creation"),
            )

        self.is_creating_post = True
        self.post_state = PostState.SUBMITTING
        self._report("Creating encrypted blog post...")
        encoded = encode_text(content)
        try:
            result = await self._submit_post(content, category, access_level, price, title, encoded)
        except ZBlogError as e:
            logger.error("post_create_failed", error=str(e))
            self.post_state = PostState.FAILED
            return CreatePostResult(
                Outcome.FAILED, PostState.FAILED,
                self._report(f"Error creating post: {e}"), encoded=encoded,
            )
        finally:
            self.is_creating_post = False

        self.post_state = result.state
        if result.state == PostState.CONFIRMED:
            await self.load_user_posts()
        return result

    async def _submit_post(
        self,
        content: str,
        category: int,
        access_level: int,
        price: int,
        title: Optional[str],
        encoded: EncodedWords,
    ) -> CreatePostResult:
        user_address = self.signer.address

        enc_input = self.instance.create_encrypted_input(self.contract.address, user_address)
        enc_input.add32(encoded.part1)
        enc_input.add32(encoded.part2)
        enc_input.add32(encoded.part3)
        enc_input.add32(encoded.original_length)
        enc_input.add8(category)
        enc_input.add8(access_level)
        enc_input.add32(price)
        bundle = await enc_input.encrypt()

        self._report("Submitting transaction...")
        logger.info("post_submitting", author=user_address, original_length=encoded.original_length)
        receipt = await self.contract.create_post(*bundle.handles[:7], bundle.input_proof)

        if receipt.status != 1:
            logger.error("post_create_reverted", tx_hash=receipt.tx_hash)
            return CreatePostResult(
                Outcome.FAILED, PostState.FAILED,
                self._report("Transaction failed"), tx_hash=receipt.tx_hash, encoded=encoded,
            )

        post_id = self._extract_post_id(receipt)
        content_stored = self.cache.store_content(
            post_id,
            title or derive_title(content, post_id),
            content,
            user_address,
            category,
        )

        if post_id == config.UNKNOWN_POST_ID:
            outcome = Outcome.DEGRADED
            message = "Post created but its id could not be read from the receipt"
        elif not content_stored:
            outcome = Outcome.DEGRADED
            message = f"Post created but content storage failed! Post ID: {post_id}"
        else:
            outcome = Outcome.OK
            message = f"Post created! Post ID: {post_id}, content encrypted and stored"

        logger.info("post_created", post_id=post_id, content_stored=content_stored, tx_hash=receipt.tx_hash)
        return CreatePostResult(
            outcome, PostState.CONFIRMED, self._report(message),
            post_id=post_id, content_stored=content_stored,
            tx_hash=receipt.tx_hash, encoded=encoded,
        )

    def _extract_post_id(self, receipt: TxReceipt) -> str:
        event = receipt.find_event("PostCreated")
        if event is None or "postId" not in event.args:
            logger.warning("post_created_event_missing", tx_hash=receipt.tx_hash)
            return config.UNKNOWN_POST_ID
        return str(event.args["postId"])

    # ─── List ───

    async def load_user_posts(self) -> PostListResult:
        if self.is_loading_posts:
            return PostListResult(Outcome.BUSY, "Posts are already loading")
        if self.contract is None or self.signer is None:
            return PostListResult(Outcome.UNAVAILABLE, "No contract or signer available")

        self.is_loading_posts = True
        self._report("Loading your blog posts...")
        try:
            post_ids = await self.contract.get_user_posts(self.signer.address)
            self._report(f"Loading {len(post_ids)} posts...")

            loaded: list[BlogPost] = []
            failed: list[str] = []
            for post_id in post_ids:
                try:
                    pid, author, created_at = await self.contract.get_post(post_id)
                except ZBlogError as e:
                    logger.error("post_load_failed", post_id=str(post_id), error=str(e))
                    failed.append(str(post_id))
                    continue
                loaded.append(BlogPost(
                    post_id=str(pid),
                    author=author,
                    created_at=datetime.fromtimestamp(created_at, tz=timezone.utc),
                ))
        except ZBlogError as e:
            logger.error("posts_load_failed", error=str(e))
            return PostListResult(Outcome.FAILED, self._report(f"Error loading posts: {e}"))
        finally:
            self.is_loading_posts = False

        self.posts = loaded
        outcome = Outcome.DEGRADED if failed else Outcome.OK
        return PostListResult(
            outcome, self._report(f"Loaded {len(loaded)} blog posts"),
            posts=loaded, failed_ids=failed,
        )

    async def load_total_posts(self) -> Optional[int]:
        if self.contract is None:
            return None
        try:
            self.total_posts = await self.contract.get_total_posts()
        except ZBlogError as e:
            logger.error("total_posts_load_failed", error=str(e))
            return None
        return self.total_posts

    # ─── View / Like / Grant ───

    async def _submit_action(self, operation: str, post_id: str, submit) -> ActionResult:
        try:
            validate_post_id(operation, post_id)
        except ZBlogError as e:
            return ActionResult(Outcome.INVALID, self._report(str(e)), post_id=post_id)
        if not self.can_interact:
            return ActionResult(Outcome.UNAVAILABLE, self._report("Not connected"), post_id=post_id)

        try:
            receipt = await submit(post_id_arg(post_id))
        except ZBlogError as e:
            logger.error("post_action_failed", operation=operation, post_id=post_id, error=str(e))
            return ActionResult(Outcome.FAILED, self._report(f"Error in {operation}: {e}"), post_id=post_id)

        if receipt.status != 1:
            return ActionResult(
                Outcome.FAILED, self._report(f"{operation} transaction failed"),
                post_id=post_id, tx_hash=receipt.tx_hash,
            )

        logger.info("post_action_confirmed", operation=operation, post_id=post_id, tx_hash=receipt.tx_hash)
        return ActionResult(
            Outcome.OK, self._report(f"{operation} confirmed for post {post_id}"),
            post_id=post_id, tx_hash=receipt.tx_hash,
        )

    async def view_post(self, post_id: str) -> ActionResult:
        self._report(f"Viewing post {post_id}...")
        return await self._submit_action("viewPost", post_id, lambda pid: self.contract.view_post(pid))

    async def like_post(self, post_id: str) -> ActionResult:
        self._report(f"Liking post {post_id}...")
        return await self._submit_action("likePost", post_id, lambda pid: self.contract.like_post(pid))

    async def grant_access(self, post_id: str, reader_address: str) -> ActionResult:
        if not reader_address or not is_address(reader_address):
            return ActionResult(Outcome.INVALID, self._report(str(InvalidAddressError(reader_address))), post_id=post_id)

        self._report(f"Granting access for post {post_id} to {reader_address}...")
        return await self._submit_action(
            "grantAccess", post_id, lambda pid: self.contract.grant_access(pid, reader_address)
        )

    # ─── Decrypt ───

    async def _session(self) -> Optional[DecryptionSignature]:
        return await self.sessions.load_or_sign([self.contract.address], self.signer)

    def _ensure_usable(self, sig: DecryptionSignature) -> None:
        if not sig.is_valid(self.sessions.now()):
            raise DecryptionRejectedError("decryption signature expired")
        if not sig.covers(self.contract.address, self.signer.address):
            raise DecryptionRejectedError("decryption signature does not cover this contract")

    async def _user_decrypt(self, sig: DecryptionSignature, handles: list[Any]) -> dict:
        self._ensure_usable(sig)
        requests = [DecryptRequest(handle=h, contract_address=self.contract.address) for h in handles]
        return await self.instance.user_decrypt(
            requests,
            sig.private_key,
            sig.public_key,
            sig.signature,
            sig.contract_addresses,
            sig.user_address,
            sig.start_timestamp,
            sig.duration_days,
        )

    async def decrypt_post_stats(self, post_id: str) -> StatsResult:
        try:
            validate_post_id("decryptPostStats", post_id)
        except ZBlogError as e:
            return StatsResult(Outcome.INVALID, self._report(str(e)), post_id=post_id)
        if not self.can_interact:
            return StatsResult(Outcome.UNAVAILABLE, self._report("Not connected"), post_id=post_id)

        self._report(f"Decrypting statistics for post {post_id}...")
        sig = await self._session()
        if sig is None:
            return StatsResult(
                Outcome.UNAVAILABLE, self._report("Unable to build FHEVM decryption signature"), post_id=post_id,
            )

        try:
            pid = post_id_arg(post_id)
            view_handle = await self.contract.get_encrypted_view_count(pid)
            like_handle = await self.contract.get_encrypted_like_count(pid)
            results = await self._user_decrypt(sig, [view_handle, like_handle])
            stats = PostStats(
                view_count=lookup_decrypted(results, view_handle),
                like_count=lookup_decrypted(results, like_handle),
            )
        except (ZBlogError, ValueError, TypeError) as e:
            logger.error("stats_decrypt_failed", post_id=post_id, error=str(e))
            return StatsResult(Outcome.FAILED, self._report(f"Error decrypting stats: {e}"), post_id=post_id)

        post = self.find_post(post_id)
        if post is not None:
            post.view_count = stats.view_count
            post.like_count = stats.like_count

        return StatsResult(
            Outcome.OK,
            self._report(f"Post {post_id} stats - Views: {stats.view_count}, Likes: {stats.like_count}"),
            post_id=post_id, stats=stats,
        )

    async def decrypt_post_content(self, post_id: str) -> ContentResult:
        try:
            validate_post_id("decryptPostContent", post_id)
        except ZBlogError as e:
            return ContentResult(Outcome.INVALID, self._report(str(e)), post_id=post_id)
        if not self.can_interact:
            return ContentResult(Outcome.UNAVAILABLE, self._report("Not connected"), post_id=post_id)

        self._report(f"Decrypting content for post {post_id}...")
        sig = await self._session()
        if sig is None:
            return ContentResult(
                Outcome.UNAVAILABLE, self._report("Unable to create decryption signature"), post_id=post_id,
            )

        try:
            pid = post_id_arg(post_id)
            part1, part2, part3, length = await self.contract.get_encrypted_content(pid)
            category = await self.contract.get_encrypted_category(pid)
            results = await self._user_decrypt(sig, [part1, part2, part3, length, category])
            content = reconstruct_content(
                post_id, (part1, part2, part3), length, results, self.cache,
                encrypted_category=category,
            )
        except (ZBlogError, ValueError, TypeError) as e:
            logger.error("content_decrypt_failed", post_id=post_id, error=str(e))
            return ContentResult(Outcome.FAILED, self._report(f"Decryption failed: {e}"), post_id=post_id)

        post = self.find_post(post_id)
        if post is not None:
            post.category = content.category

        return ContentResult(
            Outcome.OK, self._report(f"Post {post_id} content decrypted from {content.source}"),
            post_id=post_id, content=content,
        )
