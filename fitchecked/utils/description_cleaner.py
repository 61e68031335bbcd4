"""Utilities to normalize free-text garment descriptions."""

import re


# Words that carry no garment information at the edges of a phrase
FILLER_WORDS = {'with', 'and', 'the', 'a', 'an', 'for', 'in', 'on', 'at', 'of', 'or', 'to'}

# Words kept on each side of a matched keyword
CONTEXT_WORDS_BEFORE = 3
CONTEXT_WORDS_AFTER = 3


def normalize_description(raw_description: str) -> str:
    """Lowercase a description and collapse separators and whitespace."""
    if not raw_description:
        return ''

    text = raw_description.lower()

    # Normalize separators
    text = text.replace('|', ', ')
    text = text.replace('•', ', ')
    text = text.replace('+', ' and ')
    text = text.replace('&', ' and ')

    # Fix punctuation
    text = re.sub(r'\s*,\s*', ', ', text)
    text = re.sub(r'\s+', ' ', text)

    return text.strip()


def split_clauses(text: str) -> list[str]:
    """Split a normalized description on clause punctuation."""
    return [c.strip() for c in re.split(r'[,;.!?]', text) if c.strip()]


def strip_filler(words: list[str]) -> list[str]:
    """Drop filler words from both ends of a word list."""
    start, end = 0, len(words)
    while start < end and words[start] in FILLER_WORDS:
        start += 1
    while end > start and words[end - 1] in FILLER_WORDS:
        end -= 1
    return words[start:end]


def extract_phrase(text: str, keyword: str) -> str:
    """Extract a short phrase around ``keyword`` from a normalized description.

    The phrase stays inside the clause that contains the keyword and keeps a
    few words of context on each side. Falls back to the keyword itself.
    """
    keyword = keyword.lower()
    anchor = keyword.split()[0]

    for clause in split_clauses(text):
        if keyword not in clause:
            continue
        words = clause.split()
        index = next((i for i, w in enumerate(words) if anchor in w), None)
        if index is None:
            continue
        window = words[max(0, index - CONTEXT_WORDS_BEFORE):index + CONTEXT_WORDS_AFTER + 1]
        phrase = ' '.join(strip_filler(window))
        return phrase or keyword

    return keyword
