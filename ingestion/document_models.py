from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class Status(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"  # value present, produced by a fallback path
    ABSENT = "absent"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of an operation that degrades instead of raising."""

    status: Status
    value: Optional[T] = None
    reason: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> "Outcome[T]":
        return cls(Status.OK, value)

    @classmethod
    def degraded(cls, value: T, reason: str) -> "Outcome[T]":
        return cls(Status.DEGRADED, value, reason)

    @classmethod
    def absent(cls, reason: str) -> "Outcome[T]":
        return cls(Status.ABSENT, None, reason)

    @property
    def found(self) -> bool:
        return self.status is not Status.ABSENT


@dataclass(frozen=True)
class RawDocument:
    identity: str  # opaque key, usually a relative path
    text: Optional[str] = None  # pre-available decoded content
    data: Optional[bytes] = None  # fetchable byte content


@dataclass(frozen=True)
class ResolvedDocument:
    identity: str
    html: str


@dataclass(frozen=True)
class InferredDate:
    month_index: int  # 0 = January
    year: int

    def __post_init__(self) -> None:
        if not 0 <= self.month_index <= 11:
            raise ValueError(f"month_index out of range: {self.month_index}")


@dataclass(frozen=True)
class SectionSnippet:
    id: str
    title: str
    level: int
    html: str
    text: str


@dataclass(frozen=True)
class QueryMatch:
    title: str
    html: str
    text: str


@dataclass(frozen=True)
class SearchIndexEntry:
    identity: str
    text: str


@dataclass
class NewsletterRecord:
    id: str
    slug: str
    title: str
    date: Optional[InferredDate]
    excerpt: str
    source_path: str
    sections: List[SectionSnippet] = field(default_factory=list)
    text: str = ""  # flattened body, used for search
    content_sha1: str = ""
