"""Tests for source adapters against mocked HTTP endpoints."""

import pytest
from aresponses import Response, ResponsesMockServer

from marketnews.config import Settings
from marketnews.errors import SourceMalformed, SourceUnavailable
from marketnews.ingest.sources import (
    CryptoCompareAdapter,
    FinnhubAdapter,
    HackerNewsAdapter,
    MockAdapter,
    RedditAdapter,
    RSSAdapter,
    SourceHealthMonitor,
    build_adapters,
    create_adapter,
)
from marketnews.models import SourceKind

REDDIT_LISTING = {
    "data": {
        "children": [
            {
                "data": {
                    "id": "abc123",
                    "title": "BTC breaks out above resistance",
                    "permalink": "/r/CryptoCurrency/comments/abc123/btc/",
                    "selftext": "Bulls are in control.",
                    "author": "satoshi_fan",
                    "created_utc": 1760000000.0,
                    "score": 812,
                    "ups": 812,
                    "num_comments": 97,
                    "subreddit": "CryptoCurrency",
                    "thumbnail": "self",
                }
            }
        ]
    }
}

RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Market Wire</title>
    <item>
      <title>Bitcoin ETF inflows hit record</title>
      <link>https://wire.example.com/bitcoin-etf</link>
      <description>&lt;p&gt;Funds took in &lt;b&gt;$1.2bn&lt;/b&gt; on Monday.&lt;/p&gt;</description>
      <pubDate>Thu, 09 Oct 2025 08:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Wheat futures steady</title>
      <link>https://wire.example.com/wheat</link>
      <description>Grain markets were quiet.</description>
      <pubDate>Thu, 09 Oct 2025 07:00:00 GMT</pubDate>
    </item>
  </channel>
</rss>
"""


class TestRedditAdapter:
    @pytest.mark.asyncio
    async def test_fetch_maps_posts(self, settings):
        async with ResponsesMockServer() as server:
            server.add("www.reddit.com", "/search.json", "GET", REDDIT_LISTING)
            async with RedditAdapter(settings) as adapter:
                items = await adapter.fetch("bitcoin")

        assert len(items) == 1
        item = items[0]
        assert item.id == "reddit-abc123"
        assert item.source_kind == SourceKind.REDDIT
        assert item.url == "https://reddit.com/r/CryptoCurrency/comments/abc123/btc/"
        assert item.timestamp == 1_760_000_000_000
        assert item.upvotes == 812
        assert item.comments == 97
        assert item.image_url is None

    @pytest.mark.asyncio
    async def test_http_error_is_unavailable(self, settings):
        async with ResponsesMockServer() as server:
            server.add("www.reddit.com", "/search.json", "GET", Response(status=503))
            async with RedditAdapter(settings) as adapter:
                with pytest.raises(SourceUnavailable) as exc_info:
                    await adapter.fetch("bitcoin")

        assert exc_info.value.source == "reddit"

    @pytest.mark.asyncio
    async def test_unexpected_shape_is_malformed(self, settings):
        async with ResponsesMockServer() as server:
            server.add("www.reddit.com", "/search.json", "GET", {"kind": "Listing"})
            async with RedditAdapter(settings) as adapter:
                with pytest.raises(SourceMalformed):
                    await adapter.fetch("bitcoin")

    @pytest.mark.asyncio
    async def test_bad_post_is_skipped(self, settings):
        good = REDDIT_LISTING["data"]["children"][0]
        untitled = {"data": {**good["data"], "id": "def456", "title": ""}}
        second = {"data": {**good["data"], "id": "ghi789"}}
        listing = {"data": {"children": [good, untitled, {"data": {"id": "x"}}, second]}}
        async with ResponsesMockServer() as server:
            server.add("www.reddit.com", "/search.json", "GET", listing)
            async with RedditAdapter(settings) as adapter:
                items = await adapter.fetch("bitcoin")

        assert [item.id for item in items] == ["reddit-abc123", "reddit-ghi789"]

    @pytest.mark.asyncio
    async def test_every_post_bad_is_malformed(self, settings):
        listing = {"data": {"children": [{"data": {"id": "x"}}, {"data": {"title": ""}}]}}
        async with ResponsesMockServer() as server:
            server.add("www.reddit.com", "/search.json", "GET", listing)
            async with RedditAdapter(settings) as adapter:
                with pytest.raises(SourceMalformed):
                    await adapter.fetch("bitcoin")

    @pytest.mark.asyncio
    async def test_empty_listing(self, settings):
        async with ResponsesMockServer() as server:
            server.add("www.reddit.com", "/search.json", "GET", {"data": {"children": []}})
            async with RedditAdapter(settings) as adapter:
                assert await adapter.fetch("bitcoin") == []

    @pytest.mark.asyncio
    async def test_invalid_json_is_malformed(self, settings):
        async with ResponsesMockServer() as server:
            server.add("www.reddit.com", "/search.json", "GET", "<html>rate limited</html>")
            async with RedditAdapter(settings) as adapter:
                with pytest.raises(SourceMalformed):
                    await adapter.fetch("bitcoin")


class TestCryptoCompareAdapter:
    @pytest.mark.asyncio
    async def test_fetch_maps_news(self, settings):
        payload = {
            "Data": [
                {
                    "id": "991",
                    "title": "ETH slides as liquidations mount",
                    "url": "https://news.example.com/eth",
                    "body": "Ethereum fell 6%.",
                    "source": "coindesk",
                    "published_on": 1760000100,
                    "categories": "ETH|Market",
                    "imageurl": "https://img.example.com/eth.png",
                }
            ]
        }
        async with ResponsesMockServer() as server:
            server.add("min-api.cryptocompare.com", "/data/v2/news/", "GET", payload)
            async with CryptoCompareAdapter(settings) as adapter:
                items = await adapter.fetch("ETH")

        assert [item.id for item in items] == ["crypto-991"]
        assert items[0].author == "coindesk"
        assert items[0].timestamp == 1_760_000_100_000
        assert items[0].category == "ETH|Market"

    @pytest.mark.asyncio
    async def test_api_error_is_unavailable(self, settings):
        payload = {"Response": "Error", "Message": "rate limit exceeded"}
        async with ResponsesMockServer() as server:
            server.add("min-api.cryptocompare.com", "/data/v2/news/", "GET", payload)
            async with CryptoCompareAdapter(settings) as adapter:
                with pytest.raises(SourceUnavailable, match="rate limit"):
                    await adapter.fetch("ETH")


class TestFinnhubAdapter:
    @pytest.mark.asyncio
    async def test_fetch_maps_news(self, settings):
        payload = [
            {
                "id": 7001,
                "headline": "Fed holds rates steady",
                "url": "https://news.example.com/fed",
                "summary": "Officials signalled patience.",
                "source": "Reuters",
                "datetime": 1760000200,
                "category": "top news",
                "image": "",
            }
        ]
        async with ResponsesMockServer() as server:
            server.add("finnhub.io", "/api/v1/news", "GET", payload)
            async with FinnhubAdapter(settings) as adapter:
                items = await adapter.fetch("fed")

        assert items[0].id == "finnhub-7001"
        assert items[0].source_kind == SourceKind.API
        assert items[0].image_url is None

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, monkeypatch):
        sleeps = []

        async def record_sleep(delay):
            sleeps.append(delay)

        monkeypatch.setattr("marketnews.utils.asyncio.sleep", record_sleep)
        settings = Settings(source_retry_attempts=3)
        async with ResponsesMockServer() as server:
            server.add("finnhub.io", "/api/v1/news", "GET", Response(status=401))
            async with FinnhubAdapter(settings) as adapter:
                with pytest.raises(SourceUnavailable, match="401"):
                    await adapter.fetch("fed")

        assert sleeps == []

    @pytest.mark.asyncio
    async def test_error_payload_is_malformed(self, settings):
        async with ResponsesMockServer() as server:
            server.add("finnhub.io", "/api/v1/news", "GET", {"error": "Invalid API key"})
            async with FinnhubAdapter(settings) as adapter:
                with pytest.raises(SourceMalformed):
                    await adapter.fetch("fed")


class TestHackerNewsAdapter:
    @pytest.mark.asyncio
    async def test_fetch_maps_hits(self, settings):
        payload = {
            "hits": [
                {
                    "objectID": "4242",
                    "title": "Show HN: an order book visualizer",
                    "url": None,
                    "author": "pg",
                    "created_at": "2025-10-09T08:00:00Z",
                    "points": 150,
                    "num_comments": 40,
                }
            ]
        }
        async with ResponsesMockServer() as server:
            server.add("hn.algolia.com", "/api/v1/search_by_date", "GET", payload)
            async with HackerNewsAdapter(settings) as adapter:
                items = await adapter.fetch("order book")

        item = items[0]
        assert item.id == "hn-4242"
        assert item.source_kind == SourceKind.SOCIAL
        assert item.url == "https://news.ycombinator.com/item?id=4242"
        assert item.timestamp == 1_759_996_800_000
        assert item.upvotes == 150


class TestRSSAdapter:
    @pytest.mark.asyncio
    async def test_fetch_filters_by_query(self, settings):
        async with ResponsesMockServer() as server:
            server.add("feeds.example.com", "/markets.xml", "GET", RSS_FEED)
            async with RSSAdapter(settings) as adapter:
                items = await adapter.fetch("bitcoin")

        assert len(items) == 1
        item = items[0]
        assert item.id.startswith("rss-")
        assert item.title == "Bitcoin ETF inflows hit record"
        assert item.content == "Funds took in $1.2bn on Monday."
        assert item.category == "Market Wire"
        assert item.author == "wire.example.com"
        assert item.timestamp == 1_759_996_800_000

    @pytest.mark.asyncio
    async def test_one_failed_feed_is_tolerated(self, settings):
        feeds = ["https://feeds.example.com/markets.xml", "https://down.example.com/feed.xml"]
        async with ResponsesMockServer() as server:
            server.add("feeds.example.com", "/markets.xml", "GET", RSS_FEED)
            server.add("down.example.com", "/feed.xml", "GET", Response(status=500))
            async with RSSAdapter(settings, feed_urls=feeds) as adapter:
                items = await adapter.fetch("wheat")

        assert [item.title for item in items] == ["Wheat futures steady"]

    @pytest.mark.asyncio
    async def test_all_feeds_failing_raises(self, settings):
        async with ResponsesMockServer() as server:
            server.add("feeds.example.com", "/markets.xml", "GET", Response(status=500))
            async with RSSAdapter(settings) as adapter:
                with pytest.raises(SourceUnavailable):
                    await adapter.fetch("bitcoin")

    @pytest.mark.asyncio
    async def test_no_feeds_configured(self, settings):
        async with RSSAdapter(settings, feed_urls=[]) as adapter:
            assert await adapter.fetch("bitcoin") == []


@pytest.mark.asyncio
async def test_mock_adapter_serves_canned_items(settings):
    async with MockAdapter(SourceKind.CRYPTO, settings) as adapter:
        items = await adapter.fetch("anything")

    assert items
    assert all(item.source_kind == SourceKind.CRYPTO for item in items)


def test_create_adapter(settings):
    assert isinstance(create_adapter(SourceKind.SOCIAL, settings), HackerNewsAdapter)
    assert isinstance(create_adapter("rss", settings), RSSAdapter)
    assert isinstance(create_adapter(SourceKind.API, settings, mock=True), MockAdapter)

    with pytest.raises(ValueError, match="Unknown source kind"):
        create_adapter("fax", settings)


def test_build_adapters(settings):
    adapters = build_adapters([SourceKind.REDDIT, SourceKind.CRYPTO], settings)

    assert set(adapters) == {SourceKind.REDDIT, SourceKind.CRYPTO}
    assert adapters[SourceKind.CRYPTO].name == "crypto"


class TestSourceHealthMonitor:
    def test_unhealthy_after_threshold(self):
        monitor = SourceHealthMonitor(failure_threshold=3)

        for _ in range(2):
            monitor.record_failure("rss", "timeout")
        assert monitor.source_status["rss"]["status"] == "degraded"
        assert monitor.should_skip_source("rss") is False

        monitor.record_failure("rss", "timeout")
        assert monitor.source_status["rss"]["status"] == "unhealthy"
        assert monitor.should_skip_source("rss") is True

    def test_success_resets_failures(self):
        monitor = SourceHealthMonitor(failure_threshold=1)
        monitor.record_failure("api", "boom")

        monitor.record_success("api", 0.2, 5)

        assert monitor.should_skip_source("api") is False
        report = monitor.get_health_report()
        assert report["summary"] == {"total": 1, "healthy": 1, "degraded": 0, "unhealthy": 0}

    def test_skip_expires_after_interval(self):
        monitor = SourceHealthMonitor(failure_threshold=1, check_interval=0)
        monitor.record_failure("reddit", "boom")

        assert monitor.should_skip_source("reddit") is False
