# ABOUTME: Parsing functions for Open Library API JSON responses.
# ABOUTME: First-match extractor chains that tolerate the API's many shape variants.

import re
from dataclasses import dataclass
from typing import Any

from libris.metadata.candidate import CandidateRecord

SOURCE = "openlibrary"

_COVERS_BASE_URL = "https://covers.openlibrary.org"
_WORK_KEY_RE = re.compile(r"/works/(OL\w+W)")
_AUTHOR_KEY_RE = re.compile(r"/authors/(OL\w+A)")
_YEAR_RE = re.compile(r"\b(\d{3,4})\b")


@dataclass
class AuthorDetails:
    """Biographical data for one Open Library author record."""

    openlibrary_id: str
    name: str
    bio: str | None = None
    photo_url: str | None = None
    birth_date: str | None = None
    death_date: str | None = None


def build_cover_url(kind: str, value: str | int, size: str = "L") -> str:
    """Build an Open Library cover image URL.

    Args:
        kind: "isbn", "id" (numeric cover id), or "olid" (edition key).
        value: The identifier to look up cover art for.
        size: Image size: "S" (small), "M" (medium), or "L" (large).
    """
    return f"{_COVERS_BASE_URL}/b/{kind}/{value}-{size}.jpg"


def build_author_photo_url(photo_id: int) -> str:
    return f"{_COVERS_BASE_URL}/a/id/{photo_id}-L.jpg"


def _dicts(value: Any) -> list[dict[str, Any]]:
    """The dict entries of a list field; anything else gives []."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and item.strip()]


def _text(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) and value.strip() else default


def extract_description(value: Any) -> str | None:
    """Extract text from a description-like field.

    Handles the OL quirk where text fields can be either a plain string
    or a dict with {"type": ..., "value": "actual text"}.
    """
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        inner = value.get("value")
        if isinstance(inner, str):
            return inner.strip() or None
    return None


def parse_description(data: dict[str, Any]) -> str | None:
    """Return the first usable description across the fields OL uses for one."""
    for key in ("description", "notes"):
        text = extract_description(data.get(key))
        if text:
            return text

    # Search docs carry a list of first sentences instead.
    first_sentence = data.get("first_sentence")
    if isinstance(first_sentence, list) and first_sentence:
        first_sentence = first_sentence[0]
    return extract_description(first_sentence)


def extract_work_id(data: dict[str, Any]) -> str | None:
    """Find the work id ("OL45883W") in an edition, work, or search doc."""
    key = data.get("key")
    if isinstance(key, str):
        match = _WORK_KEY_RE.search(key)
        if match:
            return match.group(1)

    works = _dicts(data.get("works"))
    if works:
        match = _WORK_KEY_RE.search(_text(works[0].get("key")))
        if match:
            return match.group(1)

    return _first(data.get("id_works"))


def extract_cover_url(data: dict[str, Any], isbn: str | None = None) -> str | None:
    """Return the best cover URL for a record, or None if it has no cover.

    Preference order: numeric cover id (search "cover_i" or edition
    "covers"), books-API "cover.large", edition key, and finally the ISBN
    URL. The ISBN URL is only used when some cover field was present,
    since OL serves a placeholder for ISBNs without art.
    """
    cover_i = data.get("cover_i")
    if isinstance(cover_i, int) and cover_i > 0:
        return build_cover_url("id", cover_i)

    covers = data.get("covers")
    if isinstance(covers, list):
        for cover_id in covers:
            # OL marks deleted covers with -1.
            if isinstance(cover_id, int) and cover_id > 0:
                return build_cover_url("id", cover_id)

    cover = data.get("cover")
    if isinstance(cover, dict):
        for size in ("large", "medium"):
            url = cover.get(size)
            if isinstance(url, str) and url:
                return url

    edition_key = data.get("cover_edition_key")
    if isinstance(edition_key, str) and edition_key:
        return build_cover_url("olid", edition_key)

    has_cover_field = any(key in data for key in ("cover_i", "covers", "cover"))
    if isbn and has_cover_field:
        return build_cover_url("isbn", isbn)
    return None


def _first(values: Any) -> str | None:
    if isinstance(values, list) and values and isinstance(values[0], (str, int)):
        return str(values[0])
    return None


def parse_author_keys(data: Any) -> list[str]:
    """Collect author ids from an edition ([{key}]) or a work ([{author: {key}}])."""
    if not isinstance(data, dict):
        return []
    keys: list[str] = []
    for entry in _dicts(data.get("authors")):
        ref = entry.get("author", entry)
        key = _text(ref.get("key")) if isinstance(ref, dict) else ""
        match = _AUTHOR_KEY_RE.search(key)
        if match:
            keys.append(match.group(1))
    return keys


def parse_edition(data: dict[str, Any], isbn: str | None = None) -> CandidateRecord:
    """Parse an Open Library ISBN endpoint (edition) response.

    Author names are not part of an edition; the provider resolves them
    from parse_author_keys() separately.
    """
    isbn = isbn or _first(data.get("isbn_13")) or _first(data.get("isbn_10"))
    work_id = extract_work_id(data)
    return CandidateRecord(
        source=SOURCE,
        source_id=work_id or f"isbn:{isbn}",
        title=_text(data.get("title"), "Unknown"),
        description=parse_description(data),
        cover_url=extract_cover_url(data, isbn),
        isbn=isbn,
        external_id=work_id,
    )


def parse_work(data: dict[str, Any]) -> CandidateRecord:
    """Parse an Open Library Works endpoint response."""
    work_id = extract_work_id(data)
    return CandidateRecord(
        source=SOURCE,
        source_id=work_id or "unknown",
        title=_text(data.get("title"), "Unknown"),
        description=parse_description(data),
        cover_url=extract_cover_url(data),
        external_id=work_id,
    )


def parse_search_doc(doc: dict[str, Any]) -> CandidateRecord:
    """Parse one doc from the Search API into a candidate."""
    isbn = _first(doc.get("isbn"))
    work_id = extract_work_id(doc)
    return CandidateRecord(
        source=SOURCE,
        source_id=work_id or "unknown",
        title=_text(doc.get("title"), "Unknown"),
        authors=_strings(doc.get("author_name")),
        description=parse_description(doc),
        cover_url=extract_cover_url(doc, isbn),
        isbn=isbn,
        external_id=work_id,
    )


def parse_search_results(data: Any) -> list[CandidateRecord]:
    if not isinstance(data, dict):
        return []
    return [parse_search_doc(doc) for doc in _dicts(data.get("docs"))]


def parse_books_api(data: Any, isbn: str) -> CandidateRecord | None:
    """Parse a Books API (jscmd=data) response keyed by "ISBN:<isbn>"."""
    if not isinstance(data, dict):
        return None
    entry = data.get(f"ISBN:{isbn}")
    if not isinstance(entry, dict):
        return None
    authors = [a["name"] for a in _dicts(entry.get("authors")) if _text(a.get("name"))]
    return CandidateRecord(
        source=SOURCE,
        source_id=f"isbn:{isbn}",
        title=_text(entry.get("title"), "Unknown"),
        authors=authors,
        description=parse_description(entry),
        cover_url=extract_cover_url(entry, isbn),
        isbn=isbn,
    )


def extract_year(value: Any) -> str | None:
    """Best-effort year from free-text dates like "5 January 1932"."""
    if not isinstance(value, str) or not value.strip():
        return None
    match = _YEAR_RE.search(value)
    return match.group(1) if match else value.strip()


def parse_author_record(data: Any) -> AuthorDetails | None:
    """Parse an Open Library Authors endpoint response."""
    if not isinstance(data, dict):
        return None
    match = _AUTHOR_KEY_RE.search(_text(data.get("key")))
    name = _text(data.get("name")) or _text(data.get("personal_name"))
    if not match or not name:
        return None

    photo_url = None
    photos = data.get("photos")
    for photo_id in photos if isinstance(photos, list) else []:
        if isinstance(photo_id, int) and photo_id > 0:
            photo_url = build_author_photo_url(photo_id)
            break

    return AuthorDetails(
        openlibrary_id=match.group(1),
        name=name,
        bio=extract_description(data.get("bio")),
        photo_url=photo_url,
        birth_date=extract_year(data.get("birth_date")),
        death_date=extract_year(data.get("death_date")),
    )


def parse_author_search(data: Any) -> list[tuple[str, str]]:
    """Return (author id, name) pairs from an author search response."""
    if not isinstance(data, dict):
        return []
    results: list[tuple[str, str]] = []
    for doc in _dicts(data.get("docs")):
        key = _text(doc.get("key"))
        name = _text(doc.get("name"))
        if key and name:
            results.append((key.rsplit("/", 1)[-1], name))
    return results
