"""
CORE App - String normalisation & fuzzy matching

Shared by receipt proof-scoring (vendor and item names) and the dispute
validator (snapshot item lookup).
"""

import re
from collections import Counter

_STORE_NUMBER = re.compile(r'\bstore\s*#?\s*\d+\b')
_HASH_NUMBER = re.compile(r'#\s*\d+\b')
_NON_WORD = re.compile(r'[^\w\s]|_')
_WHITESPACE = re.compile(r'\s+')


def normalize_key(value) -> str:
    """Trim, lowercase and collapse inner whitespace."""
    if not value:
        return ''
    return _WHITESPACE.sub(' ', str(value).strip().lower())


def normalize_name(value) -> str:
    """
    Normalise a merchant or item name for comparison.

    Lowercases, drops store-number suffixes ("Store #1234", "#12"),
    replaces punctuation with spaces and collapses whitespace.

    Example: "Wendy's Store #4411" -> "wendy s"
    """
    if not value:
        return ''
    text = str(value).lower()
    text = _STORE_NUMBER.sub(' ', text)
    text = _HASH_NUMBER.sub(' ', text)
    text = _NON_WORD.sub(' ', text)
    return _WHITESPACE.sub(' ', text).strip()


def _bigrams(text: str) -> Counter:
    return Counter(text[i:i + 2] for i in range(len(text) - 1))


def dice_coefficient(a: str, b: str) -> float:
    """
    Bigram-overlap (Sørensen-Dice) similarity in [0, 1].

    Bigrams are counted as a multiset so repeated pairs only match as many
    times as they occur in both strings.
    """
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    if len(a) < 2 or len(b) < 2:
        return 0.0

    overlap = sum((_bigrams(a) & _bigrams(b)).values())
    return (2 * overlap) / ((len(a) - 1) + (len(b) - 1))
