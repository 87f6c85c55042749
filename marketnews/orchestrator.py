"""Aggregation pipeline and command line entry point."""

import asyncio
import logging
import sys
import time
from collections.abc import Callable, Iterable

import click
import orjson
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .cache import QueryResultCache, SignatureStore
from .config import LexiconConfig, Settings, get_settings, validate_config
from .errors import InvalidQueryError, SourceError
from .ingest.sources import SourceAdapter, SourceHealthMonitor, create_adapter
from .logging import PerformanceLogger, get_logger, log_error, log_processing_stage, setup_logging
from .models import EnrichedItem, RawItem, SourceKind
from .processing.clustering import TopicClusterer
from .processing.dedupe import ItemDeduplicator
from .processing.enrichment import ItemEnricher
from .processing.ranking import ItemRanker
from .translate import TranslationBackend, Translator
from .utils import now_ms

logger = get_logger(__name__)

AdapterFactory = Callable[[SourceKind], SourceAdapter]


class AggregationPipeline:
    """Fetch, enrich, deduplicate, cluster and rank items for a query.

    Source adapters are created per run through ``adapter_factory`` so that
    concurrent runs never share an HTTP session. The result cache, seen
    signature store and health monitor are optional and owned by the caller.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        adapter_factory: AdapterFactory | None = None,
        lexicon: LexiconConfig | None = None,
        result_cache: QueryResultCache | None = None,
        seen_store: SignatureStore | None = None,
        health_monitor: SourceHealthMonitor | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.settings = settings or get_settings()
        self.adapter_factory = adapter_factory or (
            lambda kind: create_adapter(kind, self.settings, mock=self.settings.mock)
        )
        self.lexicon = lexicon
        self.result_cache = result_cache
        self.seen_store = seen_store
        self.health_monitor = health_monitor or SourceHealthMonitor()
        self.clock = clock

        self.enricher = ItemEnricher(lexicon)
        self.deduplicator = ItemDeduplicator(self.settings, seen_store)
        self.clusterer = TopicClusterer(self.settings)
        self.ranker = ItemRanker(self.settings)

    def _validate(self, query: str, sources: Iterable[SourceKind | str] | None) -> tuple[str, list[SourceKind]]:
        if not isinstance(query, str) or not query.strip():
            raise InvalidQueryError("Query must be a non-empty string")
        query = query.strip()
        if len(query) > self.settings.max_query_length:
            raise InvalidQueryError(
                f"Query longer than {self.settings.max_query_length} characters"
            )

        if sources is None:
            return query, list(SourceKind)
        try:
            requested = {SourceKind(source) for source in sources}
        except ValueError as e:
            raise InvalidQueryError(str(e)) from e
        if not requested:
            raise InvalidQueryError("At least one source must be enabled")
        return query, [kind for kind in SourceKind if kind in requested]

    async def aggregate(
        self,
        query: str,
        enabled_sources: Iterable[SourceKind | str] | None = None,
    ) -> list[EnrichedItem]:
        """Run the full pipeline for a query.

        Source failures never raise; they shrink the result instead.

        Raises:
            InvalidQueryError: if the query or source selection is malformed
        """
        query, kinds = self._validate(query, enabled_sources)

        cache_key = None
        if self.result_cache is not None:
            cache_key = self.result_cache.make_key(query, [kind.value for kind in kinds])
            cached = self.result_cache.get(cache_key)
            if cached is not None:
                logger.info("Serving cached results", query=query, count=len(cached))
                if self.seen_store is not None:
                    cached, _ = self.deduplicator.deduplicate(cached)
                return cached

        with PerformanceLogger("aggregate", logger):
            raw_items = await self.fetch_all(query, kinds)

            reference_ms = self.clock()
            enriched = self.enricher.enrich_items(raw_items, reference_ms)
            unique_items, _ = self.deduplicator.deduplicate(enriched)
            self.clusterer.cluster(unique_items)
            ranked = self.ranker.rank(unique_items, query, reference_ms)

        if cache_key is not None:
            self.result_cache.set(cache_key, ranked)
        return ranked

    async def _fetch_source(self, kind: SourceKind, query: str) -> list[RawItem]:
        adapter = self.adapter_factory(kind)
        started = time.perf_counter()
        async with adapter:
            items = await adapter.fetch(query)
        self.health_monitor.record_success(kind.value, time.perf_counter() - started, len(items))
        return items

    async def fetch_all(self, query: str, kinds: list[SourceKind]) -> list[RawItem]:
        """Fetch from every source concurrently and merge the successes.

        Waits for all sources to settle, up to the aggregate deadline.
        Sources still running at the deadline are cancelled.
        """
        active = [kind for kind in kinds if not self.health_monitor.should_skip_source(kind.value)]
        if not active:
            logger.warning("No sources available", requested=[kind.value for kind in kinds])
            return []

        tasks = {
            kind: asyncio.create_task(self._fetch_source(kind, query), name=f"fetch-{kind.value}")
            for kind in active
        }

        try:
            _, pending = await asyncio.wait(
                tasks.values(), timeout=self.settings.aggregate_timeout_seconds
            )
        except asyncio.CancelledError:
            await self._cancel(tasks.values())
            raise

        if pending:
            await self._cancel(pending)

        merged: list[RawItem] = []
        seen_ids: set[str] = set()
        for kind, task in tasks.items():
            if task in pending or task.cancelled():
                if task in pending:
                    message = f"timed out after {self.settings.aggregate_timeout_seconds}s"
                else:
                    message = "cancelled"
                logger.warning("Source did not finish", source=kind.value, reason=message)
                self.health_monitor.record_failure(kind.value, message)
                continue

            error = task.exception()
            if error is not None:
                level = logging.WARNING if isinstance(error, SourceError) else logging.ERROR
                logger.log(level, **log_error(error, context="fetch", source=kind.value))
                self.health_monitor.record_failure(kind.value, str(error))
                continue

            for item in task.result():
                if item.id in seen_ids:
                    continue
                seen_ids.add(item.id)
                merged.append(item)

        logger.info(
            **log_processing_stage(
                stage="fetch_all_sources",
                input_count=len(active),
                output_count=len(merged),
            )
        )
        return merged

    @staticmethod
    async def _cancel(tasks: Iterable[asyncio.Task]) -> None:
        tasks = list(tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def translate(
        self,
        items: list[EnrichedItem],
        glossary: dict[str, str] | None = None,
        backend: TranslationBackend | None = None,
    ) -> list[EnrichedItem]:
        """Translate ranked items; failed items come back untranslated."""
        return await Translator(glossary, backend, self.settings).translate(items)


def aggregate_news(
    query: str,
    sources: Iterable[SourceKind | str] | None = None,
    settings: Settings | None = None,
) -> list[EnrichedItem]:
    """Blocking convenience wrapper around ``AggregationPipeline.aggregate``."""
    return asyncio.run(AggregationPipeline(settings).aggregate(query, sources))


def render_table(items: list[EnrichedItem], console: Console, translated: bool = False) -> None:
    """Print ranked items as a table."""
    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Score", justify="right")
    table.add_column("Sentiment", justify="center")
    table.add_column("Source")
    table.add_column("Cluster", style="dim")
    table.add_column("Title", overflow="fold")

    colors = {"bullish": "green", "bearish": "red", "neutral": "white"}
    for rank, item in enumerate(items, start=1):
        color = colors[item.sentiment.value]
        title = item.translated_title if translated and item.is_translated else item.title
        table.add_row(
            str(rank),
            f"{item.composite_score or 0:.1f}",
            f"[{color}]{item.sentiment.value}[/{color}]",
            item.source_kind.value,
            item.cluster_id or "-",
            escape(title),
        )
    console.print(table)


@click.command()
@click.argument("query")
@click.option(
    "--source",
    "-s",
    "sources",
    multiple=True,
    type=click.Choice([kind.value for kind in SourceKind]),
    help="Source to query (repeatable, default: all)",
)
@click.option("--limit", type=int, default=20, show_default=True, help="Items to print")
@click.option("--translate", "translate_flag", is_flag=True, help="Translate titles with the glossary")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("--mock", is_flag=True, help="Use canned offline sources")
@click.option("--log-level", default="ERROR", help="Log level")
@click.option("--verbose", is_flag=True, help="Show detailed progress information")
@click.option(
    "--validate-config",
    "validate_config_flag",
    is_flag=True,
    help="Validate configuration and exit",
)
def cli(query, sources, limit, translate_flag, output_json, mock, log_level, verbose, validate_config_flag):
    """Aggregate, deduplicate, cluster and rank market news for QUERY."""
    setup_logging(log_level="INFO" if verbose else log_level, json_logging=False)
    console = Console()

    settings = get_settings()
    if mock:
        settings.mock = True

    if validate_config_flag:
        if validate_config(settings):
            console.print("[green]Configuration is valid[/green]")
            sys.exit(0)
        console.print("[red]Configuration validation failed[/red]")
        sys.exit(1)

    pipeline = AggregationPipeline(settings)

    async def run() -> list[EnrichedItem]:
        items = await pipeline.aggregate(query, sources or None)
        items = items[:limit]
        if translate_flag:
            items = await pipeline.translate(items)
        return items

    try:
        items = asyncio.run(run())
    except InvalidQueryError as e:
        raise click.BadParameter(str(e), param_hint="QUERY") from e
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(1)

    if output_json:
        payload = [item.model_dump(mode="json") for item in items]
        click.echo(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode())
    elif items:
        render_table(items, console, translated=translate_flag)
    else:
        console.print("[yellow]No items found[/yellow]")


if __name__ == "__main__":
    cli()
