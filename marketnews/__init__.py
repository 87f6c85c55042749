"""Market news aggregation: multi-source fetch, enrichment, dedup, clustering and ranking."""

__version__ = "0.1.0"
