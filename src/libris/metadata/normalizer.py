# ABOUTME: Canonical string forms for titles, slugs, ISBNs, series suffixes, and author lists.
# ABOUTME: Pure functions shared by the importers, the entity resolver, and the providers.

import re
from collections.abc import Iterable
from dataclasses import dataclass

# Pre-compiled regexes for title and slug normalization.
_NON_WORD_RE = re.compile(r"[^\w\s]")
_NON_SLUG_RE = re.compile(r"[^\w\s-]")
_WHITESPACE_RE = re.compile(r"\s+")
_HYPHEN_RUN_RE = re.compile(r"-+")
_ISBN_NOISE_RE = re.compile(r"[-\s]")
# Goodreads CSV-derived exports wrap ISBNs as ="0765326353".
_ISBN_WRAPPER_RE = re.compile(r'^="?|"$')
_SEARCH_NOISE_RE = re.compile(r"[^\w\s']")

_ORDER = r"(?P<order>\d+(?:\.\d+)?)"

# Series suffix patterns, tried in order. The first match wins.
_SERIES_PATTERNS: tuple[re.Pattern[str], ...] = (
    # "Mistborn (Mistborn, #1)" / "Title (Series, 2.5)"
    re.compile(rf"^(?P<title>.+?)\s*\((?P<series>[^()]+?),\s*#?{_ORDER}\)$"),
    # "The Way of Kings (The Stormlight Archive, Book 1)"
    re.compile(
        rf"^(?P<title>.+?)\s*\((?P<series>[^()]+?),?\s+Book\s+{_ORDER}\)$",
        re.IGNORECASE,
    ),
    # "Title (Series #3)"
    re.compile(rf"^(?P<title>.+?)\s*\((?P<series>[^()]+?)\s*#{_ORDER}\)$"),
)
_COLON_SERIES_RE = re.compile(
    rf"^(?P<title>.+?):\s*(?P<series>.+?)\s+(?:Book\s+)?#?{_ORDER}$",
    re.IGNORECASE,
)
# Longer colon segments are almost always subtitles, not series names.
_MAX_COLON_SERIES_LENGTH = 50

_AUTHOR_SPLIT_RE = re.compile(r",\s*(?:and\s+)?|\s+and\s+", re.IGNORECASE)
_ADDITIONAL_SPLIT_RE = re.compile(r",\s*")


@dataclass(frozen=True)
class SeriesInfo:
    """A title split into its clean form and an optional series membership."""

    clean_title: str
    series_name: str | None = None
    series_order: float | None = None


def normalize_title(title: str) -> str:
    """Reduce a title to its comparison form.

    Lowercases, drops every character that is not a word character or
    whitespace, collapses whitespace runs, and trims. Applying it twice
    gives the same result as applying it once.
    """
    text = _NON_WORD_RE.sub("", title.lower())
    return _WHITESPACE_RE.sub(" ", text).strip()


def slugify(text: str) -> str:
    """Build a URL-safe slug, e.g. "The Hobbit: Part 2!" -> "the-hobbit-part-2"."""
    slug = _NON_SLUG_RE.sub("", text.lower().strip())
    slug = _WHITESPACE_RE.sub("-", slug)
    slug = _HYPHEN_RUN_RE.sub("-", slug)
    return slug.strip("-")


def make_unique_slug(base: str, existing: set[str]) -> str:
    """Return base, or the first free base-2, base-3, ... slug.

    MUTATES existing: the chosen slug is added so later calls in the same
    run cannot pick it again.
    """
    slug = base
    counter = 2
    while slug in existing:
        slug = f"{base}-{counter}"
        counter += 1
    existing.add(slug)
    return slug


def normalize_isbn(isbn: str | None) -> str | None:
    """Strip hyphens and whitespace; keep the value only if 10 or 13 chars long.

    No checksum validation is performed.
    """
    if not isbn:
        return None
    cleaned = _ISBN_NOISE_RE.sub("", _ISBN_WRAPPER_RE.sub("", isbn.strip()))
    if len(cleaned) in (10, 13):
        return cleaned
    return None


def parse_series(title: str) -> SeriesInfo:
    """Split a series suffix off a title.

    >>> parse_series("Mistborn (Mistborn, #1)")
    SeriesInfo(clean_title='Mistborn', series_name='Mistborn', series_order=1.0)

    Titles without a recognizable suffix come back unchanged with no series.
    """
    stripped = title.strip()
    for pattern in _SERIES_PATTERNS:
        match = pattern.match(stripped)
        if match:
            return _series_from_match(match)

    match = _COLON_SERIES_RE.match(stripped)
    if match and len(match.group("series")) < _MAX_COLON_SERIES_LENGTH:
        return _series_from_match(match)

    return SeriesInfo(clean_title=stripped)


def _series_from_match(match: re.Match[str]) -> SeriesInfo:
    return SeriesInfo(
        clean_title=match.group("title").strip(),
        series_name=match.group("series").strip(),
        series_order=float(match.group("order")),
    )


def parse_authors(primary: str | None, additional: str | None = None) -> list[str]:
    """Turn an export's author fields into an ordered, de-duplicated name list.

    A primary field holding a single "Last, First" name (one comma, a
    one-word surname, no " and ") is flipped to "First Last". Anything
    else is split on commas and "and". The additional-authors field is a
    plain comma-separated list.
    """
    authors: list[str] = []

    if primary and primary.strip():
        text = primary.strip()
        if "," in text and " and " not in text.lower():
            parts = [part.strip() for part in text.split(",")]
            if len(parts) == 2 and parts[1] and " " not in parts[0]:
                authors.append(f"{parts[1]} {parts[0]}")
            else:
                authors.extend(parts)
        else:
            authors.extend(part.strip() for part in _AUTHOR_SPLIT_RE.split(text))

    if additional and additional.strip():
        authors.extend(part.strip() for part in _ADDITIONAL_SPLIT_RE.split(additional))

    return _dedupe(name for name in authors if name)


def _dedupe(names: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(names))


def last_name(name: str) -> str:
    """Return the last whitespace-separated token of a name ("" for blank input)."""
    tokens = name.split()
    return tokens[-1] if tokens else ""


def clean_search_title(title: str) -> str:
    """Strip punctuation that confuses free-text provider search.

    Apostrophes survive ("Ender's Game"), everything else that is not a
    word character becomes a space.
    """
    return _WHITESPACE_RE.sub(" ", _SEARCH_NOISE_RE.sub(" ", title)).strip()
