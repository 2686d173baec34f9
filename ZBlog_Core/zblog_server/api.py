"""
FastAPI endpoints for the zBlog post lifecycle.

Every route delegates to one ZBlogService operation and returns plain JSON;
encrypted handles never leave the service. Outcome statuses map to codes:

    OK, DEGRADED   → 200 (DEGRADED carries the reason in `message`)
    INVALID        → 422
    BUSY           → 409
    UNAVAILABLE    → 403
    FAILED         → 502
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field, field_validator

from ZBlog_Core.zblog_shared import config
from ZBlog_Core.zblog_shared.log import configure_logging
from ZBlog_Core.zblog_shared.types import BlogPost, Outcome
from ZBlog_Core.zblog_db.connection import (
    create_content_client,
    create_signature_client,
    health_check,
    close_all,
)
from ZBlog_Core.blog.service import ZBlogService
from ZBlog_Core.bridge import build_dev_service


service: Optional[ZBlogService] = None
content_client = None
signature_client = None


# ── Pydantic request/response models ──


class CreatePostRequest(BaseModel):
    content: str
    category: int = Field(0, ge=0, le=config.UINT8_MAX)
    access_level: int = config.ACCESS_PUBLIC
    price: int = Field(0, ge=0, le=config.UINT32_MAX)
    title: Optional[str] = None

    @field_validator("access_level")
    @classmethod
    def validate_access_level(cls, v):
        if v not in config.VALID_ACCESS_LEVELS:
            raise ValueError(f"Invalid access_level: {v}")
        return v


class CreatePostResponse(BaseModel):
    outcome: str
    state: str
    message: str
    post_id: Optional[str] = None
    content_stored: bool
    tx_hash: Optional[str] = None
    original_length: Optional[int] = None


class ActionResponse(BaseModel):
    outcome: str
    message: str
    post_id: Optional[str] = None
    tx_hash: Optional[str] = None


class GrantAccessRequest(BaseModel):
    reader_address: str


class PostOut(BaseModel):
    post_id: str
    author: str
    created_at: datetime
    category: Optional[int] = None
    view_count: Optional[int] = None
    like_count: Optional[int] = None


class PostListResponse(BaseModel):
    outcome: str
    message: str
    posts: list[PostOut]
    failed_ids: list[str]


class TotalResponse(BaseModel):
    total_posts: int


class StatsResponse(BaseModel):
    post_id: str
    view_count: int
    like_count: int


class ContentResponse(BaseModel):
    post_id: str
    text: str
    fragment: str
    original_length: int
    is_truncated: bool
    source: str
    category: Optional[int] = None


class HealthResponse(BaseModel):
    status: str
    account: Optional[str] = None
    content_connected: bool
    signature_connected: bool
    content_key_count: int
    signature_key_count: int


# ── App lifecycle ──


@asynccontextmanager
async def lifespan(app: FastAPI):
    global service, content_client, signature_client
    configure_logging()
    content_client = create_content_client()
    signature_client = create_signature_client()
    service = build_dev_service(content_client, signature_client)
    yield
    close_all(content_client, signature_client)
    service = content_client = signature_client = None


app = FastAPI(title="zBlog", version="1.0.0", lifespan=lifespan)


_STATUS_CODES = {
    Outcome.INVALID:     422,
    Outcome.BUSY:        409,
    Outcome.UNAVAILABLE: 403,
    Outcome.FAILED:      502,
}


def _get_service() -> ZBlogService:
    if service is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return service


def _raise_for_outcome(outcome: Outcome, message: str) -> None:
    code = _STATUS_CODES.get(outcome)
    if code is not None:
        raise HTTPException(status_code=code, detail=message)


def _post_out(post: BlogPost) -> PostOut:
    return PostOut(
        post_id=post.post_id,
        author=post.author,
        created_at=post.created_at,
        category=post.category,
        view_count=post.view_count,
        like_count=post.like_count,
    )


# ── Endpoints ──


@app.post("/v1/posts", response_model=CreatePostResponse)
async def create_post(req: CreatePostRequest):
    svc = _get_service()
    result = await svc.create_post(req.content, req.category, req.access_level, req.price, req.title)
    _raise_for_outcome(result.outcome, result.message)
    return CreatePostResponse(
        outcome=result.outcome.value,
        state=result.state.value,
        message=result.message,
        post_id=result.post_id,
        content_stored=result.content_stored,
        tx_hash=result.tx_hash,
        original_length=result.encoded.original_length if result.encoded else None,
    )


@app.get("/v1/posts", response_model=PostListResponse)
async def list_posts():
    svc = _get_service()
    result = await svc.load_user_posts()
    _raise_for_outcome(result.outcome, result.message)
    return PostListResponse(
        outcome=result.outcome.value,
        message=result.message,
        posts=[_post_out(p) for p in result.posts],
        failed_ids=result.failed_ids,
    )


@app.get("/v1/posts/total", response_model=TotalResponse)
async def total_posts():
    svc = _get_service()
    total = await svc.load_total_posts()
    if total is None:
        raise HTTPException(status_code=502, detail="Unable to read total posts")
    return TotalResponse(total_posts=total)


async def _action(result) -> ActionResponse:
    _raise_for_outcome(result.outcome, result.message)
    return ActionResponse(
        outcome=result.outcome.value,
        message=result.message,
        post_id=result.post_id,
        tx_hash=result.tx_hash,
    )


@app.post("/v1/posts/{post_id}/view", response_model=ActionResponse)
async def view_post(post_id: str):
    return await _action(await _get_service().view_post(post_id))


@app.post("/v1/posts/{post_id}/like", response_model=ActionResponse)
async def like_post(post_id: str):
    return await _action(await _get_service().like_post(post_id))


@app.post("/v1/posts/{post_id}/grant", response_model=ActionResponse)
async def grant_access(post_id: str, req: GrantAccessRequest):
    return await _action(await _get_service().grant_access(post_id, req.reader_address))


@app.get("/v1/posts/{post_id}/stats", response_model=StatsResponse)
async def post_stats(post_id: str):
    svc = _get_service()
    result = await svc.decrypt_post_stats(post_id)
    _raise_for_outcome(result.outcome, result.message)
    return StatsResponse(
        post_id=post_id,
        view_count=result.stats.view_count,
        like_count=result.stats.like_count,
    )


@app.get("/v1/posts/{post_id}/content", response_model=ContentResponse)
async def post_content(post_id: str):
    svc = _get_service()
    result = await svc.decrypt_post_content(post_id)
    _raise_for_outcome(result.outcome, result.message)
    c = result.content
    return ContentResponse(
        post_id=c.post_id,
        text=c.text,
        fragment=c.fragment,
        original_length=c.original_length,
        is_truncated=c.is_truncated,
        source=c.source,
        category=c.category,
    )


@app.get("/v1/health", response_model=HealthResponse)
async def health():
    account = service.signer.address if service is not None and service.signer is not None else None
    if content_client is None or signature_client is None:
        return HealthResponse(
            status="degraded",
            account=account,
            content_connected=False,
            signature_connected=False,
            content_key_count=0,
            signature_key_count=0,
        )

    h = health_check(content_client, signature_client)
    ok = h.content_connected and h.signature_connected
    return HealthResponse(
        status="ok" if ok else "degraded",
        account=account,
        content_connected=h.content_connected,
        signature_connected=h.signature_connected,
        content_key_count=h.content_key_count,
        signature_key_count=h.signature_key_count,
    )
