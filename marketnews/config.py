"""Configuration management for the market news aggregator."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_LEXICON_PATH = Path(__file__).parent / "lexicon.yaml"


class SentimentLexicon(BaseModel):
    """Bullish and bearish cue words."""
    bullish: list[str] = Field(default_factory=list)
    bearish: list[str] = Field(default_factory=list)


class EntityLexicon(BaseModel):
    """Known entity names used for whitelist extraction."""
    tickers: list[str] = Field(default_factory=list)
    companies: list[str] = Field(default_factory=list)
    people: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)


class QualityLexicon(BaseModel):
    """Source reputation and clickbait tables."""
    reputable_outlets: list[str] = Field(default_factory=list)
    clickbait_phrases: list[str] = Field(default_factory=list)


class Settings(BaseSettings):
    """Main application settings."""

    # ── Operational Mode ───────────────────────────────────────────────────
    mock: bool = Field(False, description="Use canned offline sources")

    # ── Ingestion Settings ─────────────────────────────────────────────────
    user_agent: str = Field(
        "MarketNewsAggregator/0.1 (market news aggregation)",
        description="User agent for source requests"
    )
    source_timeout_seconds: float = Field(10.0, description="Per-adapter HTTP timeout")
    source_retry_attempts: int = Field(2, description="Retries per source request")
    aggregate_timeout_seconds: float = Field(
        20.0, description="Deadline for the whole source fan-out"
    )
    finnhub_api_key: str = Field("demo", description="Finnhub API token")
    rss_feeds: list[str] = Field(
        default_factory=lambda: [
            "https://feeds.content.dowjones.io/public/rss/mw_topstories",
            "https://www.coindesk.com/arc/outboundfeeds/rss/",
        ],
        description="RSS feed URLs polled by the rss source"
    )

    # ── Query Settings ─────────────────────────────────────────────────────
    max_query_length: int = Field(200, description="Longest accepted query")

    # ── Processing Settings ────────────────────────────────────────────────
    dedupe_threshold: float = Field(0.8, description="Signature similarity threshold")
    cluster_threshold: float = Field(0.6, description="Topic similarity threshold")

    # ── Ranking Weights ────────────────────────────────────────────────────
    w_relevance: float = Field(0.35, description="Relevance weight")
    w_quality: float = Field(0.30, description="Quality weight")
    w_sentiment: float = Field(0.15, description="Sentiment magnitude weight")
    w_recency: float = Field(0.20, description="Recency weight")

    # ── Caching ────────────────────────────────────────────────────────────
    cache_ttl_seconds: float = Field(300.0, description="Query result cache TTL")

    # ── Translation ────────────────────────────────────────────────────────
    target_language: str = Field("TH", description="Translation target language tag")

    # ── Lexicon ────────────────────────────────────────────────────────────
    lexicon_path: Path | None = Field(None, description="Override for lexicon YAML")

    # ── Logging ────────────────────────────────────────────────────────────
    log_level: str = Field("INFO", description="Log level")
    json_logging: bool = Field(True, description="Enable JSON logging")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("w_relevance", "w_quality", "w_sentiment", "w_recency")
    @classmethod
    def validate_weights(cls, v: float) -> float:
        """Validate weight values are between 0 and 1."""
        if not 0 <= v <= 1:
            raise ValueError("Weight must be between 0 and 1")
        return v

    @field_validator("dedupe_threshold", "cluster_threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        """Validate similarity thresholds."""
        if not 0 <= v <= 1:
            raise ValueError("Similarity threshold must be between 0 and 1")
        return v

    @field_validator("source_timeout_seconds", "aggregate_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeout must be positive")
        return v


class LexiconConfig:
    """Heuristic word tables loaded from YAML."""

    def __init__(self, config_path: str | Path = DEFAULT_LEXICON_PATH):
        self.config_path = Path(config_path)
        self._config: dict[str, Any] = {}
        self.load_config()

    def load_config(self) -> None:
        """Load lexicon tables from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Lexicon file not found: {self.config_path}")

        with open(self.config_path, encoding="utf-8") as f:
            self._config = yaml.safe_load(f) or {}

    def get_sentiment(self) -> SentimentLexicon:
        return SentimentLexicon(**self._config.get("sentiment", {}))

    def get_entities(self) -> EntityLexicon:
        return EntityLexicon(**self._config.get("entities", {}))

    def get_quality(self) -> QualityLexicon:
        return QualityLexicon(**self._config.get("quality", {}))

    def get_glossary(self) -> dict[str, str]:
        """Get the default translation glossary (source term -> target term)."""
        return dict(self._config.get("glossary", {}))


# Global instances
settings = Settings()
lexicon = LexiconConfig(settings.lexicon_path or DEFAULT_LEXICON_PATH)


def get_settings() -> Settings:
    """Get application settings."""
    return settings


def get_lexicon() -> LexiconConfig:
    """Get heuristic lexicon."""
    return lexicon


def validate_config(settings: Settings) -> bool:
    """Validate configuration completeness."""
    try:
        weight_sum = (
            settings.w_relevance
            + settings.w_quality
            + settings.w_sentiment
            + settings.w_recency
        )
        if abs(weight_sum - 1.0) > 0.01:
            raise ValueError(f"Ranking weights sum to {weight_sum}, should be 1.0")

        lexicon = LexiconConfig(settings.lexicon_path or DEFAULT_LEXICON_PATH)
        sentiment = lexicon.get_sentiment()
        if not sentiment.bullish or not sentiment.bearish:
            raise ValueError("Sentiment lexicon must define bullish and bearish words")
        if not lexicon.get_entities().tickers:
            raise ValueError("Entity lexicon must define a ticker whitelist")

        return True

    except (ValueError, FileNotFoundError, yaml.YAMLError) as e:
        print(f"Configuration validation failed: {e}")
        return False


if __name__ == "__main__":
    if validate_config(get_settings()):
        print("✅ Configuration is valid")
    else:
        print("❌ Configuration validation failed")
        exit(1)
