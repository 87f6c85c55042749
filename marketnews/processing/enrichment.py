"""
Keyword-heuristic enrichment of raw items.

Each raw item gets:
- a bullish/bearish/neutral sentiment label and score
- whitelisted entities (tickers, companies, people, locations)
- a 0-100 quality score
- an estimated reading time

Enrichment is a pure function of one item, its lexicon and a reference
time; it has no cross-item state.
"""

import math
import re
from dataclasses import dataclass

from ..config import EntityLexicon, LexiconConfig, QualityLexicon, SentimentLexicon, get_lexicon
from ..errors import EnrichmentItemError
from ..logging import get_logger, log_error, log_processing_stage
from ..models import EnrichedItem, Entities, RawItem, Sentiment
from ..utils import age_hours, now_ms
from .text_utils import count_occurrences, find_caps_tokens, unique

logger = get_logger(__name__)

NEUTRAL_RELEVANCE = 50.0
WORDS_PER_MINUTE = 200

# Sentiment hysteresis and smoothing
SENTIMENT_MARGIN = 2
SENTIMENT_SMOOTHING = 1


@dataclass
class QualityRules:
    """Additive quality score constants."""
    base: float = 50.0
    reputable_bonus: float = 20.0
    clickbait_penalty: float = 30.0
    long_content_chars: int = 500
    long_content_bonus: float = 15.0
    engagement_min_upvotes: int = 100
    engagement_log_factor: float = 5.0
    engagement_cap: float = 20.0
    # (max age in hours, bonus), checked in order
    recency_bonuses: tuple[tuple[float, float], ...] = ((1, 15.0), (6, 10.0), (24, 5.0))


def analyze_sentiment(text: str, lexicon: SentimentLexicon) -> tuple[Sentiment, float]:
    """Label text bullish, bearish or neutral from cue word counts.

    Returns:
        Sentiment label and score in [0, 1]
    """
    lower_text = text.lower()
    bullish = count_occurrences(lower_text, lexicon.bullish)
    bearish = count_occurrences(lower_text, lexicon.bearish)
    total = bullish + bearish + SENTIMENT_SMOOTHING

    if bullish > bearish + SENTIMENT_MARGIN:
        return Sentiment.BULLISH, min(1.0, bullish / total)
    if bearish > bullish + SENTIMENT_MARGIN:
        return Sentiment.BEARISH, min(1.0, bearish / total)
    return Sentiment.NEUTRAL, 0.5


def extract_entities(text: str, lexicon: EntityLexicon) -> Entities:
    """Extract whitelisted entities from text."""
    known_tickers = set(lexicon.tickers)
    tickers = [token for token in find_caps_tokens(text, 1, 5) if token in known_tickers]

    lower_text = text.lower()
    companies = [name for name in lexicon.companies if name.lower() in lower_text]
    people = [name for name in lexicon.people if name in text]
    locations = [
        name for name in lexicon.locations
        if re.search(rf'\b{re.escape(name)}\b', text)
    ]

    return Entities(
        tickers=unique(tickers),
        companies=unique(companies),
        people=unique(people),
        locations=unique(locations),
    )


def calculate_quality_score(
    item: RawItem,
    lexicon: QualityLexicon,
    reference_ms: int | None = None,
    rules: QualityRules | None = None,
) -> float:
    """Score an item's quality from 0 to 100."""
    rules = rules or QualityRules()
    score = rules.base

    source = item.source_kind.value.lower()
    author = (item.author or "").lower()
    if any(outlet in source or outlet in author for outlet in lexicon.reputable_outlets):
        score += rules.reputable_bonus

    title = item.title.lower()
    if any(phrase in title for phrase in lexicon.clickbait_phrases):
        score -= rules.clickbait_penalty

    if item.content and len(item.content) > rules.long_content_chars:
        score += rules.long_content_bonus

    if item.upvotes and item.upvotes > rules.engagement_min_upvotes:
        score += min(rules.engagement_cap, math.log10(item.upvotes) * rules.engagement_log_factor)

    hours_old = age_hours(item.timestamp, reference_ms)
    for max_hours, bonus in rules.recency_bonuses:
        if hours_old < max_hours:
            score += bonus
            break

    return max(0.0, min(100.0, score))


def estimate_reading_time(text: str) -> int:
    """Reading time in whole minutes at 200 words per minute, at least 1."""
    words = len(text.split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


class ItemEnricher:
    """Turns raw items into enriched items."""

    def __init__(self, lexicon: LexiconConfig | None = None, quality_rules: QualityRules | None = None):
        lexicon = lexicon or get_lexicon()
        self.sentiment_lexicon = lexicon.get_sentiment()
        self.entity_lexicon = lexicon.get_entities()
        self.quality_lexicon = lexicon.get_quality()
        self.quality_rules = quality_rules or QualityRules()

    def enrich(self, item: RawItem, reference_ms: int | None = None) -> EnrichedItem:
        """Enrich one item.

        Raises:
            EnrichmentItemError: if the item's fields cannot be processed
        """
        try:
            text = item.text
            sentiment, sentiment_score = analyze_sentiment(text, self.sentiment_lexicon)
            entities = extract_entities(text, self.entity_lexicon)
            quality_score = calculate_quality_score(
                item, self.quality_lexicon, reference_ms, self.quality_rules
            )
            reading_time = estimate_reading_time(item.content or item.title)

            return EnrichedItem(
                **item.model_dump(),
                sentiment=sentiment,
                sentiment_score=sentiment_score,
                relevance_score=NEUTRAL_RELEVANCE,
                quality_score=quality_score,
                reading_time_minutes=reading_time,
                entities=entities,
            )
        except (TypeError, ValueError, ArithmeticError) as e:
            raise EnrichmentItemError(item.id, str(e)) from e

    def enrich_items(self, items: list[RawItem], reference_ms: int | None = None) -> list[EnrichedItem]:
        """Enrich every item, dropping the ones that fail."""
        if reference_ms is None:
            reference_ms = now_ms()

        enriched = []
        for item in items:
            try:
                enriched.append(self.enrich(item, reference_ms))
            except EnrichmentItemError as e:
                logger.warning(**log_error(e, context="enrichment"))

        logger.info(
            **log_processing_stage(
                stage="enrichment",
                input_count=len(items),
                output_count=len(enriched),
            )
        )
        return enriched


def enrich_items(items: list[RawItem], lexicon: LexiconConfig | None = None,
                 reference_ms: int | None = None) -> list[EnrichedItem]:
    """Convenience function for item enrichment."""
    return ItemEnricher(lexicon).enrich_items(items, reference_ms)
