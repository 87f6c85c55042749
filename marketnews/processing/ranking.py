"""
Query relevance and composite ranking of enriched items.

The composite score combines:
- relevance to the query (0-100)
- quality score (0-100)
- sentiment magnitude (sentiment score scaled by 20)
- recency, decaying 10 points per 100 minutes and floored at 0
"""

from dataclasses import dataclass

from ..config import Settings, get_settings
from ..logging import get_logger, log_processing_stage
from ..models import EnrichedItem
from ..utils import age_minutes, now_ms

logger = get_logger(__name__)

PHRASE_MATCH_BONUS = 50.0
TITLE_WORD_BONUS = 10.0
TITLE_POSITION_BONUS = 10.0
CONTENT_WORD_BONUS = 5.0
TICKER_MATCH_BONUS = 20.0
COMPANY_MATCH_BONUS = 15.0
SENTIMENT_SCALE = 20.0


@dataclass
class RankingWeights:
    """Configurable weights for the composite score."""
    relevance: float = 0.35
    quality: float = 0.30
    sentiment: float = 0.15
    recency: float = 0.20

    @classmethod
    def from_settings(cls, settings: Settings) -> "RankingWeights":
        return cls(
            relevance=settings.w_relevance,
            quality=settings.w_quality,
            sentiment=settings.w_sentiment,
            recency=settings.w_recency,
        )


@dataclass
class ItemScore:
    """Composite score breakdown for an item."""
    total_score: float
    relevance_score: float
    quality_score: float
    sentiment_component: float
    recency_factor: float


def calculate_relevance(item: EnrichedItem, query: str) -> float:
    """Score how well an item matches the query, 0 to 100."""
    lower_title = item.title.lower()
    lower_content = (item.content or "").lower()
    lower_query = query.lower()

    score = 0.0

    if lower_query in lower_title or lower_query in lower_content:
        score += PHRASE_MATCH_BONUS

    for word in lower_query.split():
        position = lower_title.find(word)
        if position >= 0:
            score += TITLE_WORD_BONUS
            # Earlier in the title scores higher
            score += max(0.0, TITLE_POSITION_BONUS - position / 10)
        if word in lower_content:
            score += CONTENT_WORD_BONUS

    if any(ticker.lower() in lower_query for ticker in item.entities.tickers):
        score += TICKER_MATCH_BONUS
    if any(company.lower() in lower_query for company in item.entities.companies):
        score += COMPANY_MATCH_BONUS

    return max(0.0, min(100.0, score))


def recency_factor(timestamp_ms: int, reference_ms: int | None = None) -> float:
    """100 for a brand new item, minus 1 point per 10 minutes of age, floored at 0."""
    return max(0.0, 100.0 - age_minutes(timestamp_ms, reference_ms) / 10)


class ItemRanker:
    """Weighted ranking of enriched items against a query."""

    def __init__(self, settings: Settings | None = None, weights: RankingWeights | None = None):
        settings = settings or get_settings()
        self.weights = weights or RankingWeights.from_settings(settings)

    def score_item(self, item: EnrichedItem, query: str, reference_ms: int) -> ItemScore:
        relevance = calculate_relevance(item, query)
        sentiment_component = item.sentiment_score * SENTIMENT_SCALE
        recency = recency_factor(item.timestamp, reference_ms)

        total_score = (
            self.weights.relevance * relevance
            + self.weights.quality * item.quality_score
            + self.weights.sentiment * sentiment_component
            + self.weights.recency * recency
        )
        return ItemScore(
            total_score=total_score,
            relevance_score=relevance,
            quality_score=item.quality_score,
            sentiment_component=sentiment_component,
            recency_factor=recency,
        )

    def rank(self, items: list[EnrichedItem], query: str,
             reference_ms: int | None = None) -> list[EnrichedItem]:
        """Score items and return them sorted by composite score, highest first.

        Equal scores keep their input order.
        """
        if not items:
            logger.info("No items to rank")
            return []

        if reference_ms is None:
            reference_ms = now_ms()

        for item in items:
            score = self.score_item(item, query, reference_ms)
            item.relevance_score = score.relevance_score
            item.composite_score = score.total_score

        ranked = sorted(items, key=lambda item: item.composite_score, reverse=True)

        logger.info(
            **log_processing_stage(
                stage="ranking",
                input_count=len(items),
                output_count=len(ranked),
                top_score=round(ranked[0].composite_score, 3),
            )
        )
        return ranked


def rank_items(items: list[EnrichedItem], query: str, settings: Settings | None = None,
               reference_ms: int | None = None) -> list[EnrichedItem]:
    """Convenience function for item ranking."""
    return ItemRanker(settings).rank(items, query, reference_ms)
