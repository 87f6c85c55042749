"""Exception hierarchy for the market news aggregator."""


class MarketNewsError(Exception):
    """Base class for all aggregator errors."""


class InvalidQueryError(MarketNewsError, ValueError):
    """Raised when an aggregation call is malformed (empty query, no sources)."""


class SourceError(MarketNewsError):
    """A single source adapter failed; the pipeline skips that source."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source}: {message}")


class SourceUnavailable(SourceError):
    """Network, HTTP or timeout failure while fetching from a source."""


class SourceMalformed(SourceError):
    """A source answered with a payload of unexpected shape."""


class EnrichmentItemError(MarketNewsError):
    """A single item could not be enriched and is dropped."""

    def __init__(self, item_id: str, message: str):
        self.item_id = item_id
        super().__init__(f"{item_id}: {message}")


class TranslationError(MarketNewsError):
    """Translation of an item failed; the untranslated item is kept."""
