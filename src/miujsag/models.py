"""Data types shared by the indexing and search pipelines.

Inbound records (`Article`, `Site`, `Category`) ignore unknown fields so callers
can hand over their own richer records; the indexed and returned shapes only
ever carry the fields declared here.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Site(BaseModel):
    """Publisher a document belongs to."""

    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    slug: Optional[str] = None


class Category(BaseModel):
    """Topic a document is filed under."""

    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    slug: Optional[str] = None


class Article(BaseModel):
    """Content record as handed over by the ingestion side."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    title: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    published_at: Optional[datetime] = None
    estimated_read_time: Optional[int] = None
    image: Optional[str] = None


class IndexedSite(BaseModel):
    id: int
    name: str
    slug: Optional[str] = None


class IndexedCategory(BaseModel):
    id: int
    name: str


class IndexableDocument(BaseModel):
    """Canonical body written to the engine under the article id."""

    model_config = ConfigDict(frozen=True)

    title: Optional[str] = None
    url: str
    description: Optional[str] = None
    content: str = ""
    published_at: Optional[datetime] = None
    estimated_read_time: Optional[int] = None
    image: Optional[str] = None
    site: IndexedSite
    category: IndexedCategory

    def to_body(self) -> dict[str, Any]:
        """JSON-ready body for the engine."""
        return self.model_dump(mode="json")


class SortMode(str, Enum):
    RELEVANCE = "relevance"
    DATE = "date"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SearchRequest(BaseModel):
    """User search parameters.

    `from_`/`until` stay unset until the query is built so the default window
    always ends at the moment of the search. Naive datetimes are read as UTC.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    query: str = Field(..., min_length=1)
    sites: frozenset[int] = frozenset()
    categories: frozenset[int] = frozenset()
    from_: Optional[datetime] = Field(default=None, alias="from")
    until: Optional[datetime] = None
    skip: int = Field(default=0, ge=0)
    sort: SortMode = SortMode.RELEVANCE

    @field_validator("query")
    @classmethod
    def _query_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("query must not be blank")
        return value

    @field_validator("from_", "until")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class SiteSummary(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None


class ArticleSummary(BaseModel):
    """A search hit without its content body."""

    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    estimated_read_time: Optional[int] = None
    published_at: Optional[datetime] = None
    image: Optional[str] = None
    site: SiteSummary = Field(default_factory=SiteSummary, alias="Site")
    highlight: Optional[str] = None


class SearchResult(BaseModel):
    total: int = 0
    articles: list[ArticleSummary] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for callers; unset fields such as a missing highlight are left out."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class IndexStatus(str, Enum):
    INSERTED = "inserted"
    SKIPPED = "skipped"


class SkipReason(str, Enum):
    ALREADY_EXISTS = "already_exists"


class IndexOutcome(BaseModel):
    """Result of a single `index_document` call."""

    model_config = ConfigDict(frozen=True)

    status: IndexStatus
    reason: Optional[SkipReason] = None

    @classmethod
    def inserted(cls) -> IndexOutcome:
        return cls(status=IndexStatus.INSERTED)

    @classmethod
    def skipped(cls, reason: SkipReason = SkipReason.ALREADY_EXISTS) -> IndexOutcome:
        return cls(status=IndexStatus.SKIPPED, reason=reason)

    @property
    def is_inserted(self) -> bool:
        return self.status is IndexStatus.INSERTED
