"""Tests for glossary translation with protected tickers."""

import pytest

from marketnews.config import Settings
from marketnews.errors import TranslationError
from marketnews.translate import (
    Translator,
    apply_glossary,
    protect_tickers,
    restore_tickers,
    translate_items,
)


async def identity(text: str) -> str:
    return text


async def broken_backend(text: str) -> str:
    raise RuntimeError("translation service down")


async def lossy_backend(text: str) -> str:
    return "placeholders gone"


def test_protect_tickers():
    text, protected = protect_tickers("BTC and ETH rally, A NASDAQ listing")

    assert text == "__TICKER0__ and __TICKER1__ rally, A NASDAQ listing"
    assert protected == [("__TICKER0__", "BTC"), ("__TICKER1__", "ETH")]


def test_restore_tickers_round_trip():
    text, protected = protect_tickers("SOL beats ETH")

    assert restore_tickers(text, protected) == "SOL beats ETH"


def test_restore_tickers_detects_lost_placeholder():
    with pytest.raises(TranslationError):
        restore_tickers("nothing here", [("__TICKER0__", "BTC")])


def test_apply_glossary_longest_term_first():
    glossary = {"bull": "B", "bullish": "BB", "bull market": "BM"}

    assert apply_glossary("Bullish bull market, bulls", glossary) == "BB BM, bulls"


class TestTranslator:
    @pytest.mark.asyncio
    async def test_tickers_are_shielded_from_glossary(self):
        translator = Translator(glossary={"ath": "จุดสูงสุดใหม่", "bullish": "ขาขึ้น"}, backend=identity)

        assert await translator.translate_text("ATH is bullish") == "ATH is ขาขึ้น"

    @pytest.mark.asyncio
    async def test_default_backend_tags_language(self):
        translator = Translator(glossary={}, settings=Settings(target_language="TH"))

        assert await translator.translate_text("BTC up") == "[TH] BTC up"

    @pytest.mark.asyncio
    async def test_translate_item(self, make_item):
        item = make_item("BTC rally continues", content="word " * 200)
        translator = Translator(glossary={"rally": "ทรงตัวขึ้น"}, backend=identity)

        translated = await translator.translate_item(item)

        assert translated.is_translated is True
        assert translated.translated_title == "BTC ทรงตัวขึ้น continues"
        assert len(translated.translated_content) <= 500
        assert translated.title == item.title
        assert item.is_translated is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("backend", [broken_backend, lossy_backend])
    async def test_failure_returns_original(self, make_item, backend):
        item = make_item("BTC rally continues")

        result = await Translator(glossary={}, backend=backend).translate_item(item)

        assert result is item
        assert result.is_translated is False
        assert result.translated_title is None

    @pytest.mark.asyncio
    async def test_translate_keeps_order(self, make_item):
        items = [make_item(f"Story {i}") for i in range(5)]

        translated = await translate_items(items, glossary={}, backend=identity)

        assert [item.id for item in translated] == [item.id for item in items]
        assert all(item.is_translated for item in translated)
