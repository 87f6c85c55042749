"""Utility functions for the market news aggregator."""

import asyncio
import re
import time
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import urlparse

from .logging import get_logger

logger = get_logger(__name__)

MS_PER_MINUTE = 60 * 1000
MS_PER_HOUR = 60 * MS_PER_MINUTE


def now_ms() -> int:
    """Current wall clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def age_minutes(timestamp_ms: int, reference_ms: int | None = None) -> float:
    """Age of an epoch-millisecond timestamp in minutes (negative if in the future)."""
    if reference_ms is None:
        reference_ms = now_ms()
    return (reference_ms - timestamp_ms) / MS_PER_MINUTE


def age_hours(timestamp_ms: int, reference_ms: int | None = None) -> float:
    """Age of an epoch-millisecond timestamp in hours."""
    return age_minutes(timestamp_ms, reference_ms) / 60


def datetime_to_ms(dt: datetime) -> int:
    """Convert a datetime to epoch milliseconds, assuming UTC when naive."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return int(dt.timestamp() * 1000)


def parse_date_string(date_str: str) -> datetime | None:
    """Parse ISO 8601 and RFC 2822 date strings.

    Args:
        date_str: Date string to parse

    Returns:
        Parsed timezone-aware datetime or None if parsing fails
    """
    if not date_str:
        return None

    date_str = date_str.strip()

    # RFC 2822, common in RSS feeds: "Thu, 17 Jul 2025 23:17:14 GMT"
    try:
        parsed = parsedate_to_datetime(date_str)
    except (ValueError, TypeError):
        parsed = None

    if parsed is None:
        try:
            parsed = datetime.fromisoformat(date_str.replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Failed to parse date string", date_string=date_str)
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def extract_domain(url: str) -> str:
    """Extract domain from URL, without a leading 'www.'."""
    domain = urlparse(url).netloc.lower()
    if domain.startswith('www.'):
        domain = domain[4:]
    return domain


def clean_text(text: str) -> str:
    """Clean and normalize text content.

    Args:
        text: Raw text

    Returns:
        Cleaned text
    """
    if not text:
        return ""

    text = re.sub(r'\s+', ' ', text.strip())

    html_entities = {
        '&amp;': '&',
        '&lt;': '<',
        '&gt;': '>',
        '&quot;': '"',
        '&#39;': "'",
        '&nbsp;': ' ',
    }

    for entity, replacement in html_entities.items():
        text = text.replace(entity, replacement)

    return text


def truncate_text(text: str, max_length: int, suffix: str = "...") -> str:
    """Truncate text to maximum length."""
    if len(text) <= max_length:
        return text

    return text[:max_length - len(suffix)] + suffix


async def retry_async(
    func: Callable[[], Awaitable[Any]],
    max_retries: int = 3,
    backoff_factor: float = 2.0,
    exceptions: tuple[type[BaseException], ...] = (Exception,),
    max_delay: float = 30.0,
    label: str | None = None,
) -> Any:
    """Await ``func()`` until it succeeds, sleeping between failed attempts.

    The n-th retry waits ``backoff_factor ** n`` seconds, capped at
    ``max_delay``. Exceptions outside ``exceptions`` propagate at once and
    the last caught one is re-raised when retries run out.
    """
    for attempt in range(max_retries + 1):
        try:
            return await func()
        except exceptions as e:
            if attempt == max_retries:
                logger.error(
                    "Giving up after retries",
                    operation=label,
                    attempts=attempt + 1,
                    error=str(e)
                )
                raise
            delay = min(backoff_factor ** attempt, max_delay)
            logger.warning(
                "Attempt failed, retrying",
                operation=label,
                attempt=attempt + 1,
                delay=delay,
                error=str(e)
            )
            await asyncio.sleep(delay)
