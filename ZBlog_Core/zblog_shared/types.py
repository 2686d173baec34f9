import json
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from ZBlog_Core.zblog_shared import config


@dataclass(frozen=True)
class EncodedWords:
    part1:           int
    part2:           int
    part3:           int
    original_length: int

    @property
    def words(self) -> tuple[int, int, int]:
        return (self.part1, self.part2, self.part3)

    @property
    def is_truncated(self) -> bool:
        return self.original_length > config.CODEC_MAX_CHARS


@dataclass
class StoredContent:
    post_id:      str
    title:        str
    full_content: str
    author:       str
    created_at:   int
    category:     int
    content_hash: int = 0


@dataclass(frozen=True)
class Found:
    record: StoredContent


@dataclass(frozen=True)
class Synthesized:
    """Placeholder built for an unknown hash. Never persist it."""
    record: StoredContent


HashLookup = Union[Found, Synthesized]


@dataclass
class BlogPost:
    post_id:    str
    author:     str
    created_at: datetime
    encrypted_content_hash: Optional[int] = None
    category:   Optional[int] = None
    view_count: Optional[int] = None
    like_count: Optional[int] = None
    is_active:  Optional[bool] = None


@dataclass
class DecryptionSignature:
    private_key:        str
    public_key:         str
    signature:          str
    contract_addresses: list[str]
    user_address:       str
    start_timestamp:    int
    duration_days:      int

    @property
    def expires_at(self) -> int:
        return self.start_timestamp + self.duration_days * config.SECONDS_PER_DAY

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def is_valid(self, now: float) -> bool:
        return self.start_timestamp <= now < self.expires_at

    def covers(self, contract_address: str, user_address: str) -> bool:
        scope = {a.lower() for a in self.contract_addresses}
        return (
            contract_address.lower() in scope
            and user_address.lower() == self.user_address.lower()
        )

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str) -> "DecryptionSignature":
        return cls(**json.loads(raw))


@dataclass
class EncryptedInputBundle:
    handles:     list[str]
    input_proof: str


@dataclass(frozen=True)
class DecryptRequest:
    handle:           Any
    contract_address: str


@dataclass
class ContractEvent:
    name: str
    args: dict[str, Any]


@dataclass
class TxReceipt:
    tx_hash: str
    status:  int
    events:  list[ContractEvent] = field(default_factory=list)

    def find_event(self, name: str) -> Optional[ContractEvent]:
        for event in self.events:
            if event.name == name:
                return event
        return None


@dataclass
class PostStats:
    view_count: int
    like_count: int


class PostState(str, Enum):
    DRAFT      = "DRAFT"
    SUBMITTING = "SUBMITTING"
    CONFIRMED  = "CONFIRMED"
    FAILED     = "FAILED"


class Outcome(str, Enum):
    OK          = "OK"
    DEGRADED    = "DEGRADED"       # succeeded with a sentinel id or without caching
    BUSY        = "BUSY"           # re-entrancy guard held, call was a no-op
    INVALID     = "INVALID"        # rejected before any network interaction
    UNAVAILABLE = "UNAVAILABLE"    # no decryption signature could be obtained
    FAILED      = "FAILED"


@dataclass
class CreatePostResult:
    outcome:        Outcome
    state:          PostState
    message:        str
    post_id:        Optional[str] = None
    content_stored: bool = False
    tx_hash:        Optional[str] = None
    encoded:        Optional[EncodedWords] = None


@dataclass
class ActionResult:
    outcome: Outcome
    message: str
    post_id: Optional[str] = None
    tx_hash: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome == Outcome.OK


@dataclass
class StatsResult:
    outcome: Outcome
    message: str
    post_id: Optional[str] = None
    stats:   Optional[PostStats] = None


@dataclass
class PostListResult:
    outcome:    Outcome
    message:    str
    posts:      list[BlogPost] = field(default_factory=list)
    failed_ids: list[str] = field(default_factory=list)


@dataclass
class ReconstructedContent:
    post_id:         str
    text:            str
    fragment:        str
    original_length: int
    source:          str        # "cache" | "chain"
    category:        Optional[int] = None

    @property
    def is_truncated(self) -> bool:
        return self.original_length > config.CODEC_MAX_CHARS


@dataclass
class ContentResult:
    outcome: Outcome
    message: str
    post_id: Optional[str] = None
    content: Optional[ReconstructedContent] = None


@dataclass
class HealthStatus:
    content_connected:   bool
    signature_connected: bool
    content_key_count:   int
    signature_key_count: int
    uptime_seconds:      float
