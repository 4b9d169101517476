"""
NewsQueue Data Models
====================

Pydantic data models and result types shared by the storage layer, the
ingestion pipeline and the scheduler. These models correspond to the
database schema and provide validation and type hints.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Any
from dataclasses import dataclass, field
from urllib.parse import urlparse
import json

from pydantic import BaseModel, Field, field_validator


INTERVAL_CHOICES = (1, 30, 45, 60, 75, 90)
AGE_GROUPS = ("Under 18", "18-24", "25-34", "35-44", "45-54", "55 and older")
PROFILE_FIELDS = ("language", "age_group")
SCHEDULE_FIELDS = ("interval_minutes", "source_ref")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_db_timestamp(value: datetime) -> str:
    """Serialize a timestamp so that string order matches time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class Outcome(str, Enum):
    """Classified result of a storage call, item or cycle."""
    SUCCESS = "success"
    CREATED = "created"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    TRANSIENT_ERROR = "transient_error"
    FATAL = "fatal"


class Language(str, Enum):
    """Subscriber interface languages."""
    ENG = "eng"
    RUS = "rus"


class Subscriber(BaseModel):
    """Subscriber registration and polling configuration."""
    subscriber_id: str = Field(..., min_length=1, description="Opaque subscriber (chat) ID")
    source_ref: Optional[str] = Field(default=None, description="Subscribed source link")
    interval_minutes: Optional[int] = Field(default=None, ge=1, description="Poll interval in minutes")
    language: Optional[Language] = Field(default=None)
    age_group: Optional[str] = Field(default=None)
    created_at: Optional[datetime] = Field(default_factory=utc_now)

    @property
    def is_complete(self) -> bool:
        """Whether registration has progressed far enough to schedule polling."""
        return bool(self.source_ref) and bool(self.interval_minutes)

    def config(self) -> Optional["SubscriberConfig"]:
        if not self.is_complete:
            return None
        return SubscriberConfig(source_ref=self.source_ref, interval_minutes=self.interval_minutes)

    def missing_fields(self, schedule_only: bool = False) -> List[str]:
        """Registration fields still unset, in the order they are asked for.

        With ``schedule_only`` only the fields that block ``is_complete`` are listed.
        """
        order = SCHEDULE_FIELDS if schedule_only else PROFILE_FIELDS + SCHEDULE_FIELDS
        return [name for name in order if getattr(self, name) is None]

    @classmethod
    def from_db_row(cls, row: Dict[str, Any]) -> "Subscriber":
        return cls(**dict(row))

    def __str__(self) -> str:
        return f"Subscriber({self.subscriber_id})"


@dataclass(frozen=True)
class SubscriberConfig:
    """The part of a subscriber's configuration that drives scheduling."""
    source_ref: str
    interval_minutes: int


class SubscriberUpdate(BaseModel):
    """Validated partial update of a subscriber.

    Only fields explicitly given are written. Each field maps to a fixed
    column, so the storage layer never inspects column metadata.
    """
    subscriber_id: str = Field(..., min_length=1)
    source_ref: Optional[str] = Field(default=None, max_length=2048)
    interval_minutes: Optional[int] = Field(default=None, ge=1, le=24 * 60)
    language: Optional[Language] = None
    age_group: Optional[str] = None

    @field_validator("source_ref")
    @classmethod
    def validate_source_ref(cls, v):
        if v is None:
            return v
        v = v.strip()
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"source_ref must be an http(s) URL: {v!r}")
        return v

    @field_validator("age_group")
    @classmethod
    def validate_age_group(cls, v):
        if v is not None and v not in AGE_GROUPS:
            raise ValueError(f"Unknown age group: {v!r}")
        return v

    def changes(self) -> Dict[str, Any]:
        """Column values to write, keyed by column name."""
        data = self.model_dump(exclude_unset=True, exclude_none=True, exclude={"subscriber_id"})
        if "language" in data:
            data["language"] = Language(data["language"]).value
        return data


@dataclass
class IndexEntry:
    """One (title, link, summary) triple from a source index."""

    title: str
    link: str
    summary: str = ""


class ContentItem(BaseModel):
    """Ingested content item, keyed by its canonical link."""
    id: Optional[int] = Field(default=None, description="Surrogate key assigned on insert")
    link: str = Field(..., min_length=1, max_length=2048, description="Canonical link")
    title: str = Field(default="", max_length=1000)
    summary: str = Field(default="")
    details: Dict[str, str] = Field(default_factory=dict, description="Source-defined extracted fields")
    source_ref: str = Field(..., min_length=1, description="Source the item was ingested from")
    fetched_at: datetime = Field(default_factory=utc_now)

    @field_validator("link")
    @classmethod
    def normalize_link(cls, v):
        return v.strip()

    def details_json(self) -> str:
        return json.dumps(self.details, ensure_ascii=False, sort_keys=True)

    @classmethod
    def from_db_row(cls, row: Dict[str, Any]) -> "ContentItem":
        data = dict(row)
        if isinstance(data.get("details"), str):
            data["details"] = json.loads(data["details"] or "{}")
        return cls(**data)

    def __str__(self) -> str:
        return f"ContentItem({self.title[:50]}...)"


class FeedSource(BaseModel):
    """Named entry of the source catalogue offered to subscribers."""
    id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=100)
    link: str = Field(..., min_length=1, max_length=2048)


@dataclass(frozen=True)
class StoreResult:
    """Result of ContentStore.upsert."""

    outcome: Outcome
    item_id: int
    delivered_to: int = 0

    @property
    def created(self) -> bool:
        return self.outcome == Outcome.CREATED


@dataclass(frozen=True)
class UnreadResult:
    """Oldest unread item of a subscriber plus the unread total."""

    item: Optional[ContentItem]
    unread_count: int

    @classmethod
    def none(cls) -> "UnreadResult":
        return cls(item=None, unread_count=0)

    @property
    def is_none(self) -> bool:
        return self.item is None

    @property
    def outcome(self) -> Outcome:
        return Outcome.NOT_FOUND if self.item is None else Outcome.SUCCESS


@dataclass
class CycleResult:
    """Statistics of one ingestion cycle for one subscriber."""
    subscriber_id: str
    source_ref: str
    outcome: Outcome = Outcome.SUCCESS
    indexed: int = 0
    stored: int = 0
    duplicates: int = 0
    skipped_existing: int = 0
    failed: int = 0
    unread_count: int = 0
    notified: bool = False
    error: Optional[str] = None
    duration_seconds: float = 0.0
    failed_links: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.outcome == Outcome.SUCCESS
