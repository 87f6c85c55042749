"""
Near-duplicate removal using word-set signatures.

Items are processed in arrival order. Each item's signature is compared
with every signature accepted so far; an item whose Jaccard similarity to
any of them exceeds the threshold is dropped. The first item seen always
wins, even if a later duplicate has a higher quality score.

Comparison is O(n^2) in the batch size, which is fine for per-query
batches of tens to a few hundred items.
"""

from dataclasses import dataclass

from ..cache import SignatureStore
from ..config import Settings, get_settings
from ..logging import get_logger, log_processing_stage
from ..models import EnrichedItem
from .text_utils import item_signature, jaccard_similarity, word_set

logger = get_logger(__name__)


@dataclass
class DuplicateMatch:
    """A dropped item and the accepted item it duplicated."""
    duplicate_id: str
    kept_id: str | None  # None when matched against an earlier run
    similarity: float


class ItemDeduplicator:
    """Signature-similarity deduplication."""

    def __init__(self, settings: Settings | None = None, seen_store: SignatureStore | None = None):
        settings = settings or get_settings()
        self.threshold = settings.dedupe_threshold
        self.seen_store = seen_store

    def _find_match(
        self,
        words: set[str],
        accepted: list[tuple[str | None, set[str]]],
    ) -> tuple[str | None, float] | None:
        for kept_id, accepted_words in accepted:
            similarity = jaccard_similarity(words, accepted_words)
            if similarity > self.threshold:
                return kept_id, similarity
        return None

    def deduplicate(self, items: list[EnrichedItem]) -> tuple[list[EnrichedItem], list[DuplicateMatch]]:
        """Drop near-duplicates, keeping the first-seen item of each group.

        Returns:
            Surviving items in original order, and the duplicates dropped
        """
        if self.seen_store is None:
            return self._deduplicate(items, [])

        with self.seen_store.lock:
            previous = [(None, words) for _, words in self.seen_store.items()]
            unique_items, matches = self._deduplicate(items, previous)
            for item in unique_items:
                signature = item_signature(item.title, item.content)
                self.seen_store.add(signature, word_set(signature))
            return unique_items, matches

    def _deduplicate(
        self,
        items: list[EnrichedItem],
        accepted: list[tuple[str | None, set[str]]],
    ) -> tuple[list[EnrichedItem], list[DuplicateMatch]]:
        unique_items: list[EnrichedItem] = []
        matches: list[DuplicateMatch] = []

        for item in items:
            words = word_set(item_signature(item.title, item.content))
            match = self._find_match(words, accepted)
            if match is not None:
                kept_id, similarity = match
                matches.append(DuplicateMatch(item.id, kept_id, similarity))
                logger.debug(
                    "Duplicate dropped",
                    item_id=item.id,
                    kept_id=kept_id,
                    similarity=round(similarity, 3),
                )
                continue

            accepted.append((item.id, words))
            unique_items.append(item)

        logger.info(
            **log_processing_stage(
                stage="deduplication",
                input_count=len(items),
                output_count=len(unique_items),
                duplicates=len(matches),
            )
        )
        return unique_items, matches


def deduplicate_items(items: list[EnrichedItem], settings: Settings | None = None,
                      seen_store: SignatureStore | None = None) -> list[EnrichedItem]:
    """Convenience function for item deduplication."""
    unique_items, _ = ItemDeduplicator(settings, seen_store).deduplicate(items)
    return unique_items
