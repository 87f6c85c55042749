"""Content source adapters and source health tracking."""

import asyncio
import calendar
import hashlib
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Any

import aiohttp
import feedparser
from pydantic import ValidationError
from selectolax.lexbor import LexborHTMLParser

from ..config import Settings, get_settings
from ..errors import SourceMalformed, SourceUnavailable
from ..logging import get_logger, log_source_request
from ..models import RawItem, SourceKind
from ..utils import (
    clean_text,
    datetime_to_ms,
    extract_domain,
    now_ms,
    parse_date_string,
    retry_async,
)

logger = get_logger(__name__)

MAPPING_ERRORS = (KeyError, TypeError, ValueError, AttributeError, ValidationError)


class SourceAdapter(ABC):
    """Abstract base class for content source adapters.

    Adapters are async context managers owning one HTTP session. ``fetch``
    either returns fully built items or raises a ``SourceError``.
    """

    kind: SourceKind

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.session: aiohttp.ClientSession | None = None

    @property
    def name(self) -> str:
        return self.kind.value

    async def __aenter__(self):
        """Async context manager entry."""
        timeout = aiohttp.ClientTimeout(total=self.settings.source_timeout_seconds)
        self.session = aiohttp.ClientSession(
            timeout=timeout,
            headers={'User-Agent': self.settings.user_agent}
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self.session:
            await self.session.close()
            self.session = None

    @abstractmethod
    async def fetch(self, query: str) -> list[RawItem]:
        """Fetch items matching a free-text query.

        Raises:
            SourceUnavailable: on network, HTTP or timeout failure
            SourceMalformed: on an unexpected payload shape
        """

    async def _request(self, url: str, params: dict[str, Any] | None, as_json: bool) -> Any:
        if not self.session:
            raise RuntimeError("Session not initialized. Use async context manager.")

        async def fetch_once():
            started = time.perf_counter()
            async with self.session.get(url, params=params) as response:
                if 400 <= response.status < 500 and response.status != 429:
                    raise SourceUnavailable(self.name, f"GET {url} returned {response.status}")
                response.raise_for_status()
                body = await (response.json(content_type=None) if as_json else response.text())
                logger.debug(
                    **log_source_request(
                        self.name, url,
                        status_code=response.status,
                        response_time=time.perf_counter() - started,
                    )
                )
                return body

        try:
            return await retry_async(
                fetch_once,
                max_retries=self.settings.source_retry_attempts,
                backoff_factor=2.0,
                exceptions=(aiohttp.ClientError, asyncio.TimeoutError),
                label=f"{self.name} GET",
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SourceUnavailable(self.name, f"GET {url} failed: {e!r}") from e
        except ValueError as e:
            raise SourceMalformed(self.name, f"Invalid JSON from {url}: {e}") from e

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        return await self._request(url, params, as_json=True)

    async def _get_text(self, url: str, params: dict[str, Any] | None = None) -> str:
        return await self._request(url, params, as_json=False)

    def _map_entries(self, entries: Iterable[Any], mapper: Callable[[Any], RawItem]) -> list[RawItem]:
        """Map payload entries one by one, skipping entries that cannot be mapped.

        Raises:
            SourceMalformed: if there were entries and none of them mapped
        """
        items: list[RawItem] = []
        last_error: Exception | None = None
        for entry in entries:
            try:
                items.append(mapper(entry))
            except MAPPING_ERRORS as e:
                last_error = e
                logger.debug("Entry skipped", source=self.name, error=repr(e))

        if not items and last_error is not None:
            raise SourceMalformed(self.name, f"Unexpected entry shape: {last_error!r}") from last_error
        return items


class RedditAdapter(SourceAdapter):
    """Reddit search restricted to market-related posts."""

    kind = SourceKind.REDDIT
    SEARCH_URL = "https://www.reddit.com/search.json"
    QUERY_QUALIFIER = "(finance OR trading OR crypto OR stock)"
    LIMIT = 50

    async def fetch(self, query: str) -> list[RawItem]:
        payload = await self._get_json(self.SEARCH_URL, params={
            'q': f"{query} {self.QUERY_QUALIFIER}",
            'sort': 'relevance',
            't': 'day',
            'limit': self.LIMIT,
        })
        try:
            children = payload['data']['children']
        except (KeyError, TypeError) as e:
            raise SourceMalformed(self.name, f"Missing listing: {e!r}") from e
        return self._map_entries(children, self._to_item)

    @staticmethod
    def _to_item(child: dict) -> RawItem:
        post = child['data']
        thumbnail = post.get('thumbnail') or ''
        return RawItem(
            id=f"reddit-{post['id']}",
            title=post['title'],
            url=f"https://reddit.com{post['permalink']}",
            source_kind=SourceKind.REDDIT,
            content=post.get('selftext') or '',
            author=post.get('author'),
            timestamp=int(float(post['created_utc']) * 1000),
            engagement_score=int(post.get('score') or 0),
            upvotes=post.get('ups'),
            comments=post.get('num_comments'),
            category=post.get('subreddit') or '',
            image_url=thumbnail if thumbnail.startswith('http') else None,
        )


class CryptoCompareAdapter(SourceAdapter):
    """CryptoCompare news, filtered by category."""

    kind = SourceKind.CRYPTO
    NEWS_URL = "https://min-api.cryptocompare.com/data/v2/news/"
    LIMIT = 30

    async def fetch(self, query: str) -> list[RawItem]:
        payload = await self._get_json(self.NEWS_URL, params={
            'lang': 'EN',
            'categories': query,
        })
        if isinstance(payload, dict) and payload.get('Response') == 'Error':
            raise SourceUnavailable(self.name, payload.get('Message', 'API error'))
        try:
            entries = payload['Data'][:self.LIMIT]
        except (KeyError, TypeError) as e:
            raise SourceMalformed(self.name, f"Missing Data list: {e!r}") from e
        return self._map_entries(entries, self._to_item)

    @staticmethod
    def _to_item(entry: dict) -> RawItem:
        return RawItem(
            id=f"crypto-{entry['id']}",
            title=entry['title'],
            url=entry.get('url') or '',
            source_kind=SourceKind.CRYPTO,
            content=entry.get('body') or '',
            author=entry.get('source'),
            timestamp=int(entry['published_on']) * 1000,
            category=entry.get('categories') or 'Cryptocurrency',
            image_url=entry.get('imageurl'),
        )


class FinnhubAdapter(SourceAdapter):
    """Finnhub general market news."""

    kind = SourceKind.API
    NEWS_URL = "https://finnhub.io/api/v1/news"
    LIMIT = 20

    async def fetch(self, query: str) -> list[RawItem]:
        # The general feed is not query-filtered; ranking sorts it out.
        payload = await self._get_json(self.NEWS_URL, params={
            'category': 'general',
            'token': self.settings.finnhub_api_key,
        })
        if not isinstance(payload, list):
            raise SourceMalformed(self.name, f"Expected a list, got {type(payload).__name__}")
        return self._map_entries(payload[:self.LIMIT], self._to_item)

    @staticmethod
    def _to_item(entry: dict) -> RawItem:
        return RawItem(
            id=f"finnhub-{entry['id']}",
            title=entry['headline'],
            url=entry.get('url') or '',
            source_kind=SourceKind.API,
            content=entry.get('summary') or '',
            author=entry.get('source'),
            timestamp=int(entry['datetime']) * 1000,
            category=entry.get('category') or 'Finance',
            image_url=entry.get('image') or None,
        )


class HackerNewsAdapter(SourceAdapter):
    """Hacker News stories via the Algolia search API."""

    kind = SourceKind.SOCIAL
    SEARCH_URL = "https://hn.algolia.com/api/v1/search_by_date"
    LIMIT = 20

    async def fetch(self, query: str) -> list[RawItem]:
        payload = await self._get_json(self.SEARCH_URL, params={
            'query': query,
            'tags': 'story',
            'hitsPerPage': self.LIMIT,
        })
        try:
            hits = payload['hits']
        except (KeyError, TypeError) as e:
            raise SourceMalformed(self.name, f"Missing hits: {e!r}") from e
        return self._map_entries(hits, self._to_item)

    @staticmethod
    def _to_item(hit: dict) -> RawItem:
        if hit.get('created_at_i') is not None:
            timestamp = int(hit['created_at_i']) * 1000
        else:
            created = parse_date_string(hit['created_at'])
            if created is None:
                raise ValueError(f"Unparseable created_at: {hit['created_at']!r}")
            timestamp = datetime_to_ms(created)

        points = hit.get('points') or 0
        object_id = hit['objectID']
        return RawItem(
            id=f"hn-{object_id}",
            title=hit['title'],
            url=hit.get('url') or f"https://news.ycombinator.com/item?id={object_id}",
            source_kind=SourceKind.SOCIAL,
            content=hit.get('story_text') or '',
            author=hit.get('author'),
            timestamp=timestamp,
            engagement_score=int(points),
            upvotes=int(points),
            comments=hit.get('num_comments') or 0,
            category='Tech',
        )


def _html_to_text(html: str) -> str:
    """Strip markup from an RSS summary."""
    if not html:
        return ""
    body = LexborHTMLParser(html).body
    return clean_text(body.text(separator=' ') if body else html)


class RSSAdapter(SourceAdapter):
    """Configured RSS/Atom feeds, filtered client-side by query words."""

    kind = SourceKind.RSS

    def __init__(self, settings: Settings | None = None, feed_urls: list[str] | None = None):
        super().__init__(settings)
        self.feed_urls = feed_urls if feed_urls is not None else list(self.settings.rss_feeds)

    async def fetch(self, query: str) -> list[RawItem]:
        if not self.feed_urls:
            return []

        query_words = query.lower().split()
        items: list[RawItem] = []
        errors = []

        for url in self.feed_urls:
            try:
                text = await self._get_text(url)
                items.extend(self._parse_feed(url, text, query_words))
            except (SourceUnavailable, SourceMalformed) as e:
                logger.warning("Feed failed", feed=url, error=str(e))
                errors.append(e)

        if errors and len(errors) == len(self.feed_urls):
            raise errors[-1]
        return items

    def _parse_feed(self, url: str, text: str, query_words: list[str]) -> list[RawItem]:
        feed = feedparser.parse(text)
        if feed.bozo and not feed.entries:
            raise SourceMalformed(self.name, f"Unparseable feed {url}: {feed.get('bozo_exception')}")

        feed_title = feed.feed.get('title') or 'News'
        entries = []
        for entry in feed.entries:
            title = clean_text(entry.get('title', ''))
            summary = _html_to_text(entry.get('summary', ''))
            if not title:
                continue
            haystack = f"{title} {summary}".lower()
            if query_words and not any(word in haystack for word in query_words):
                continue
            entries.append((entry, title, summary))

        return self._map_entries(
            entries,
            lambda parts: self._to_item(parts[0], parts[1], parts[2], feed_title),
        )

    @staticmethod
    def _to_item(entry: Any, title: str, summary: str, feed_title: str) -> RawItem:
        link = entry.get('link') or ''
        key = link or entry.get('id') or title
        parsed_time = entry.get('published_parsed') or entry.get('updated_parsed')
        timestamp = calendar.timegm(parsed_time) * 1000 if parsed_time else now_ms()

        return RawItem(
            id=f"rss-{hashlib.sha1(key.encode('utf-8')).hexdigest()[:12]}",
            title=title,
            url=link,
            source_kind=SourceKind.RSS,
            content=summary,
            author=entry.get('author') or extract_domain(link) or None,
            timestamp=timestamp,
            category=feed_title,
        )


class MockAdapter(SourceAdapter):
    """Offline adapter returning canned items for one source kind."""

    SAMPLES = {
        SourceKind.REDDIT: [
            ("BTC rally continues as bulls push toward record high",
             "Bitcoin gained again overnight with traders calling for a breakout.", 850),
        ],
        SourceKind.SOCIAL: [
            ("Nvidia earnings beat expectations", "NVDA shares rose after hours.", 240),
        ],
        SourceKind.RSS: [
            ("Gold climbs as dollar weakens", "Bullion prices rose for a third session.", 0),
        ],
        SourceKind.API: [
            ("Fed holds rates steady, signals patience",
             "Jerome Powell said the committee will wait for more data.", 0),
        ],
        SourceKind.CRYPTO: [
            ("ETH slides as liquidation wave hits derivatives",
             "Ethereum fell sharply amid a sell-off and heavy liquidation.", 0),
        ],
    }

    def __init__(self, kind: SourceKind, settings: Settings | None = None):
        super().__init__(settings)
        self.kind = kind

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def fetch(self, query: str) -> list[RawItem]:
        now = now_ms()
        return [
            RawItem(
                id=f"{self.kind.value}-mock-{i}",
                title=title,
                url=f"https://example.com/{self.kind.value}/{i}",
                source_kind=self.kind,
                content=content,
                author="example",
                timestamp=now - (i + 1) * 15 * 60 * 1000,
                engagement_score=upvotes,
                upvotes=upvotes or None,
                category="Mock",
            )
            for i, (title, content, upvotes) in enumerate(self.SAMPLES[self.kind])
        ]


class SourceHealthMonitor:
    """Monitor source health and availability."""

    def __init__(self, failure_threshold: int = 3, check_interval: float = 3600):
        self.source_status: dict[str, dict[str, Any]] = {}
        self.failure_threshold = failure_threshold
        self.check_interval = check_interval

    def record_success(self, name: str, response_time: float, entry_count: int):
        """Record successful source fetch."""
        self.source_status[name] = {
            'status': 'healthy',
            'last_success': datetime.now(timezone.utc),
            'response_time': response_time,
            'entry_count': entry_count,
            'consecutive_failures': 0,
            'last_error': None,
        }
        logger.debug(
            "Source health: success recorded",
            name=name,
            response_time=response_time,
            entries=entry_count,
        )

    def record_failure(self, name: str, error: str):
        """Record failed source fetch."""
        status = self.source_status.setdefault(name, {
            'status': 'unknown',
            'consecutive_failures': 0,
        })
        status['consecutive_failures'] += 1
        status['last_error'] = error
        status['last_failure'] = datetime.now(timezone.utc)

        if status['consecutive_failures'] >= self.failure_threshold:
            status['status'] = 'unhealthy'
            logger.error(
                "Source marked as unhealthy",
                name=name,
                failures=status['consecutive_failures'],
                error=error,
            )
        else:
            status['status'] = 'degraded'
            logger.warning(
                "Source experiencing issues",
                name=name,
                failures=status['consecutive_failures'],
                error=error,
            )

    def get_health_report(self) -> dict[str, Any]:
        """Get health report for all monitored sources."""
        statuses = [s['status'] for s in self.source_status.values()]
        report = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'summary': {
                'total': len(statuses),
                'healthy': statuses.count('healthy'),
                'degraded': statuses.count('degraded'),
                'unhealthy': statuses.count('unhealthy'),
            },
            'sources': self.source_status,
        }
        logger.info("Source health report", **report['summary'])
        return report

    def should_skip_source(self, name: str) -> bool:
        """Check if source should be skipped due to poor health."""
        status = self.source_status.get(name)
        if not status or status['status'] != 'unhealthy':
            return False
        last_failure = status.get('last_failure')
        if last_failure:
            time_since_failure = datetime.now(timezone.utc) - last_failure
            if time_since_failure.total_seconds() < self.check_interval:
                logger.info(
                    "Skipping unhealthy source",
                    name=name,
                    time_since_failure=time_since_failure.total_seconds(),
                )
                return True
        return False


ADAPTERS: dict[SourceKind, type[SourceAdapter]] = {
    SourceKind.REDDIT: RedditAdapter,
    SourceKind.SOCIAL: HackerNewsAdapter,
    SourceKind.RSS: RSSAdapter,
    SourceKind.API: FinnhubAdapter,
    SourceKind.CRYPTO: CryptoCompareAdapter,
}


def create_adapter(kind: SourceKind, settings: Settings | None = None, mock: bool = False) -> SourceAdapter:
    """Create the adapter for a source kind."""
    if mock:
        return MockAdapter(kind, settings)
    try:
        adapter_class = ADAPTERS[SourceKind(kind)]
    except (KeyError, ValueError) as e:
        raise ValueError(f"Unknown source kind: {kind}") from e
    return adapter_class(settings)


def build_adapters(
    kinds: Iterable[SourceKind],
    settings: Settings | None = None,
    mock: bool = False,
) -> dict[SourceKind, SourceAdapter]:
    """Create one adapter per requested source kind."""
    return {SourceKind(kind): create_adapter(kind, settings, mock) for kind in kinds}
