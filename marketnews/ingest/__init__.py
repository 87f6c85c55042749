"""Source ingestion module."""

from .sources import (
    ADAPTERS,
    CryptoCompareAdapter,
    FinnhubAdapter,
    HackerNewsAdapter,
    MockAdapter,
    RedditAdapter,
    RSSAdapter,
    SourceAdapter,
    SourceHealthMonitor,
    build_adapters,
    create_adapter,
)

__all__ = [
    'ADAPTERS',
    'SourceAdapter',
    'RedditAdapter',
    'HackerNewsAdapter',
    'RSSAdapter',
    'FinnhubAdapter',
    'CryptoCompareAdapter',
    'MockAdapter',
    'SourceHealthMonitor',
    'create_adapter',
    'build_adapters',
]
