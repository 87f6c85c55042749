"""Text processing utilities shared by the processing stages."""

import re

SIGNATURE_LENGTH = 150

_NON_SIGNATURE_CHARS = re.compile(r'[^a-z0-9\s]')


def item_signature(title: str, content: str | None, length: int = SIGNATURE_LENGTH) -> str:
    """Build the near-duplicate signature of an item.

    The signature is the lowercased title and content, cut to ``length``
    characters, with everything except ASCII letters, digits and whitespace
    removed. Truncation happens before stripping.

    Args:
        title: Item title
        content: Item body, may be None
        length: Number of characters kept

    Returns:
        Normalized signature string
    """
    text = f"{title} {content or ''}".lower()
    return _NON_SIGNATURE_CHARS.sub('', text[:length])


def word_set(text: str) -> set[str]:
    """Split text on whitespace into a set of words."""
    return set(text.split())


def jaccard_similarity(words1: set[str], words2: set[str]) -> float:
    """Jaccard index of two word sets; 0.0 when both are empty."""
    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)


def text_similarity(text1: str, text2: str) -> float:
    """Word-set Jaccard similarity of two strings."""
    return jaccard_similarity(word_set(text1), word_set(text2))


def count_occurrences(text: str, words: list[str]) -> int:
    """Total non-overlapping substring occurrences of every word in text."""
    return sum(text.count(word) for word in words if word)


def find_caps_tokens(text: str, min_length: int = 1, max_length: int = 5) -> list[str]:
    """Find standalone all-caps ASCII tokens, in order of appearance."""
    pattern = rf'\b[A-Z]{{{min_length},{max_length}}}\b'
    return re.findall(pattern, text)


def unique(values: list[str]) -> list[str]:
    """De-duplicate while keeping first-seen order."""
    return list(dict.fromkeys(values))
