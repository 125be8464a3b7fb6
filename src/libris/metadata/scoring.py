# ABOUTME: Title similarity and author-match confidence used to accept or reject matches.
# ABOUTME: Holds the named thresholds that the resolver and enrichment orchestrator share.

import re

from libris.metadata.normalizer import normalize_title

# Title or author similarity at or above this counts as the same entity.
MATCH_THRESHOLD = 0.85

# Minimum author confidence (0-100) for automatic acceptance per provider.
# Google Books author strings are noisier, so its floor is lower.
OPENLIBRARY_AUTHOR_FLOOR = 50
GOOGLE_BOOKS_AUTHOR_FLOOR = 30

_CONFIDENCE_EXACT = 100
_CONFIDENCE_FIRST_AND_LAST = 80
_CONFIDENCE_LAST_ONLY = 50
_CONFIDENCE_SUBSTRING = 30

_PERIOD_RE = re.compile(r"\.")
_WHITESPACE_RE = re.compile(r"\s+")


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings (insert, delete, substitute)."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (char_a != char_b),
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Score two titles (or names) between 0.0 and 1.0.

    Both sides are normalized first. Equal strings score 1.0, an empty
    side scores 0.0, containment of one in the other scores 0.9, and
    everything else scores 1 - distance / longer length.
    """
    norm_a = normalize_title(a)
    norm_b = normalize_title(b)
    if norm_a == norm_b:
        return 1.0
    if not norm_a or not norm_b:
        return 0.0
    if norm_a in norm_b or norm_b in norm_a:
        return 0.9
    return 1.0 - levenshtein(norm_a, norm_b) / max(len(norm_a), len(norm_b))


def _normalize_person(name: str) -> str:
    """Lowercase, flip "Last, First", and drop periods from initials."""
    text = name.strip().lower()
    if "," in text:
        last, first = (part.strip() for part in text.split(",", 1))
        text = f"{first} {last}"
    text = _PERIOD_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def _first_names_agree(a: str, b: str) -> bool:
    if a == b:
        return True
    # An initial agrees with any first name starting with that letter.
    if len(a) == 1 or len(b) == 1:
        return a[0] == b[0]
    return False


def _pair_confidence(target: str, source: str) -> int:
    if not target or not source:
        return 0
    if target == source:
        return _CONFIDENCE_EXACT

    target_tokens = target.split()
    source_tokens = source.split()
    if target_tokens[-1] == source_tokens[-1]:
        if (
            len(target_tokens) > 1
            and len(source_tokens) > 1
            and _first_names_agree(target_tokens[0], source_tokens[0])
        ):
            return _CONFIDENCE_FIRST_AND_LAST
        return _CONFIDENCE_LAST_ONLY

    if target in source or source in target:
        return _CONFIDENCE_SUBSTRING
    return 0


def author_match_confidence(target: str | None, source_authors: list[str]) -> int:
    """Best confidence (0-100) that any source author is the target author.

    100 for the same normalized name, 80 for the same last name plus a
    matching first name or initial, 50 for the last name alone, 30 when
    one name contains the other, else 0.
    """
    if not target:
        return 0
    normalized_target = _normalize_person(target)
    return max(
        (
            _pair_confidence(normalized_target, _normalize_person(source))
            for source in source_authors
        ),
        default=0,
    )
