"""Pytest configuration and fixtures."""

import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Set test environment
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["JSON_LOGGING"] = "false"
os.environ["SOURCE_RETRY_ATTEMPTS"] = "0"

# Fixed "now" for deterministic recency math: 2025-10-09T09:46:40Z
REFERENCE_MS = 1_760_003_200_000
MINUTE_MS = 60 * 1000


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def reference_ms() -> int:
    return REFERENCE_MS


@pytest.fixture
def settings():
    """Settings with no retries and a short aggregate deadline."""
    from marketnews.config import Settings

    return Settings(
        source_retry_attempts=0,
        aggregate_timeout_seconds=2.0,
        rss_feeds=["https://feeds.example.com/markets.xml"],
    )


@pytest.fixture
def make_raw_item():
    """Factory for raw items, 30 minutes old by default."""
    from marketnews.models import RawItem, SourceKind

    counter = iter(range(10_000))

    def factory(title="Markets open flat", **overrides) -> RawItem:
        fields = {
            "id": f"reddit-{next(counter)}",
            "title": title,
            "url": "https://example.com/post",
            "source_kind": SourceKind.REDDIT,
            "content": "",
            "timestamp": REFERENCE_MS - 30 * MINUTE_MS,
        }
        fields.update(overrides)
        return RawItem(**fields)

    return factory


@pytest.fixture
def make_item():
    """Factory for enriched items with explicit entities and scores."""
    from marketnews.models import EnrichedItem, Entities, SourceKind

    counter = iter(range(10_000))

    def factory(title="Markets open flat", tickers=(), companies=(), **overrides) -> EnrichedItem:
        fields = {
            "id": f"item-{next(counter)}",
            "title": title,
            "source_kind": SourceKind.REDDIT,
            "content": "",
            "timestamp": REFERENCE_MS - 30 * MINUTE_MS,
            "quality_score": 50.0,
            "sentiment_score": 0.5,
            "entities": Entities(tickers=list(tickers), companies=list(companies)),
        }
        fields.update(overrides)
        return EnrichedItem(**fields)

    return factory
