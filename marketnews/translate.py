"""
Glossary-based translation of ranked items.

Translation runs in a fixed order so tickers survive untouched:
1. all-caps 2-5 letter tokens are swapped for placeholders
2. glossary terms are substituted (whole word, case-insensitive)
3. the remaining text goes through the translation backend
4. placeholders are restored

A failure anywhere returns the original item untranslated.
"""

import asyncio
import re
from collections.abc import Awaitable, Callable

from .config import Settings, get_lexicon, get_settings
from .errors import TranslationError
from .logging import get_logger, log_error, log_processing_stage
from .models import EnrichedItem

logger = get_logger(__name__)

TranslationBackend = Callable[[str], Awaitable[str]]

TICKER_PATTERN = re.compile(r'\b[A-Z]{2,5}\b')
PLACEHOLDER_TEMPLATE = "__TICKER{index}__"
MAX_CONTENT_CHARS = 500


def tag_translation(target_language: str) -> TranslationBackend:
    """Backend that marks text as translated by prefixing a language tag."""

    async def translate(text: str) -> str:
        return f"[{target_language}] {text}"

    return translate


def protect_tickers(text: str) -> tuple[str, list[tuple[str, str]]]:
    """Replace candidate tickers with unique placeholders.

    Returns:
        Protected text and (placeholder, original) pairs
    """
    protected: list[tuple[str, str]] = []

    def _replace(match: re.Match) -> str:
        placeholder = PLACEHOLDER_TEMPLATE.format(index=len(protected))
        protected.append((placeholder, match.group(0)))
        return placeholder

    return TICKER_PATTERN.sub(_replace, text), protected


def restore_tickers(text: str, protected: list[tuple[str, str]]) -> str:
    """Put original tickers back in place of their placeholders.

    Raises:
        TranslationError: if the backend lost a placeholder
    """
    for placeholder, original in protected:
        if placeholder not in text:
            raise TranslationError(f"Placeholder {placeholder} lost during translation")
        text = text.replace(placeholder, original, 1)
    return text


def apply_glossary(text: str, glossary: dict[str, str]) -> str:
    """Substitute glossary terms, longest first so phrases beat single words."""
    for term in sorted(glossary, key=len, reverse=True):
        replacement = glossary[term]
        text = re.sub(
            rf'\b{re.escape(term)}\b',
            lambda _match, value=replacement: value,
            text,
            flags=re.IGNORECASE,
        )
    return text


class Translator:
    """Translates item titles and content with protected tickers."""

    def __init__(
        self,
        glossary: dict[str, str] | None = None,
        backend: TranslationBackend | None = None,
        settings: Settings | None = None,
    ):
        settings = settings or get_settings()
        self.glossary = glossary if glossary is not None else get_lexicon().get_glossary()
        self.backend = backend or tag_translation(settings.target_language)

    async def translate_text(self, text: str) -> str:
        protected_text, protected = protect_tickers(text)
        substituted = apply_glossary(protected_text, self.glossary)
        translated = await self.backend(substituted)
        if not isinstance(translated, str):
            raise TranslationError(f"Backend returned {type(translated).__name__}, expected str")
        return restore_tickers(translated, protected)

    async def translate_item(self, item: EnrichedItem) -> EnrichedItem:
        """Translate one item; on failure return it unchanged."""
        try:
            translated_title = await self.translate_text(item.title)
            translated_content = None
            if item.content:
                translated_content = await self.translate_text(item.content[:MAX_CONTENT_CHARS])
        except Exception as e:
            logger.warning(**log_error(e, context="translation", item_id=item.id))
            return item

        return item.model_copy(update={
            "translated_title": translated_title,
            "translated_content": translated_content,
            "is_translated": True,
        })

    async def translate(self, items: list[EnrichedItem]) -> list[EnrichedItem]:
        """Translate items concurrently, keeping their order."""
        translated = await asyncio.gather(*(self.translate_item(item) for item in items))
        logger.info(
            **log_processing_stage(
                stage="translation",
                input_count=len(items),
                output_count=sum(1 for item in translated if item.is_translated),
            )
        )
        return list(translated)


async def translate_items(
    items: list[EnrichedItem],
    glossary: dict[str, str] | None = None,
    backend: TranslationBackend | None = None,
) -> list[EnrichedItem]:
    """Convenience function for item translation."""
    return await Translator(glossary, backend).translate(items)
