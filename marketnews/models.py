"""Item models flowing through the aggregation pipeline."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SourceKind(str, Enum):
    """Kinds of content source."""
    REDDIT = "reddit"
    SOCIAL = "social"
    RSS = "rss"
    API = "api"
    CRYPTO = "crypto"


class Sentiment(str, Enum):
    """Market sentiment label."""
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class RawItem(BaseModel):
    """Item as produced by a source adapter. Immutable."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    url: str = ""
    source_kind: SourceKind
    content: str | None = None
    author: str | None = None
    timestamp: int  # epoch milliseconds
    engagement_score: int = 0
    upvotes: int | None = None
    comments: int | None = None
    category: str = ""
    image_url: str | None = None

    @field_validator("id", "title")
    @classmethod
    def require_text(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must be a non-empty string")
        return v

    @property
    def text(self) -> str:
        """Title and content joined for keyword heuristics."""
        return f"{self.title} {self.content or ''}"


class Entities(BaseModel):
    """Entities extracted from an item's text."""
    tickers: list[str] = Field(default_factory=list)
    companies: list[str] = Field(default_factory=list)
    people: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)


class EnrichedItem(RawItem):
    """Raw item plus enrichment, clustering, ranking and translation fields."""

    model_config = ConfigDict(frozen=False)

    sentiment: Sentiment = Sentiment.NEUTRAL
    sentiment_score: float = Field(0.5, ge=0.0, le=1.0)
    relevance_score: float = Field(50.0, ge=0.0, le=100.0)
    quality_score: float = Field(50.0, ge=0.0, le=100.0)
    reading_time_minutes: int = Field(1, ge=1)
    entities: Entities = Field(default_factory=Entities)

    cluster_id: str | None = None
    similar_item_ids: list[str] = Field(default_factory=list, max_length=3)

    composite_score: float | None = None

    translated_title: str | None = None
    translated_content: str | None = None
    is_translated: bool = False
