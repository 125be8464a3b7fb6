# ABOUTME: Loaders for Goodreads, Kindle, and Audible library exports ({"books": [...]} JSON).
# ABOUTME: Each entry becomes an ImportRecord with series parsed out and ISBNs normalized.

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from libris.metadata.normalizer import normalize_isbn, normalize_title, parse_authors, parse_series
from libris.metadata.types import ImportRecord

logger = logging.getLogger(__name__)

SOURCES = ("goodreads", "kindle", "audible")


class ExportFormatError(Exception):
    """Raised when an export file is unreadable or not shaped like an export."""


def _int_or_none(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _float_or_none(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_goodreads_entry(entry: dict[str, Any]) -> ImportRecord:
    series = parse_series(str(entry["title"]))
    return ImportRecord(
        source="goodreads",
        title=series.clean_title,
        authors=parse_authors(entry.get("author"), entry.get("additionalAuthors")),
        isbn=normalize_isbn(entry.get("isbn")),
        isbn13=normalize_isbn(entry.get("isbn13")),
        external_id=_str_or_none(entry.get("bookId")),
        series_name=series.series_name,
        series_order=series.series_order,
        publisher=_str_or_none(entry.get("publisher")),
        pages=_int_or_none(entry.get("pages")),
        year_published=_int_or_none(
            entry.get("yearPublished") or entry.get("originalPublicationYear")
        ),
    )


def parse_kindle_entry(entry: dict[str, Any]) -> ImportRecord:
    series = parse_series(str(entry["title"]))
    return ImportRecord(
        source="kindle",
        title=series.clean_title,
        authors=parse_authors(entry.get("author")),
        asin=_str_or_none(entry.get("asin")),
        series_name=series.series_name,
        series_order=series.series_order,
    )


def parse_audible_entry(entry: dict[str, Any]) -> ImportRecord:
    """Audible exports carry series explicitly; a title suffix is the fallback."""
    series = parse_series(str(entry["title"]))
    series_name = _str_or_none(entry.get("series")) or series.series_name
    series_order = _float_or_none(entry.get("seriesOrder"))
    return ImportRecord(
        source="audible",
        title=series.clean_title,
        authors=parse_authors(entry.get("author")),
        asin=_str_or_none(entry.get("asin")),
        series_name=series_name,
        series_order=series_order if series_order is not None else series.series_order,
    )


_PARSERS: dict[str, Callable[[dict[str, Any]], ImportRecord]] = {
    "goodreads": parse_goodreads_entry,
    "kindle": parse_kindle_entry,
    "audible": parse_audible_entry,
}


def load_export(path: Path, source: str) -> list[ImportRecord]:
    """Read an export file and parse every entry that has a title.

    Args:
        path: JSON file shaped {"books": [...]}.
        source: "goodreads", "kindle", or "audible".

    Raises:
        ExportFormatError: If the file cannot be read or parsed, or has no
            "books" list.
        ValueError: If source is not a known export source.
    """
    if source not in _PARSERS:
        raise ValueError(f"Unknown export source {source!r}; expected one of {SOURCES}")

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ExportFormatError(f"Cannot read {path}: {exc}") from exc

    entries = data.get("books") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise ExportFormatError(f"{path} has no \"books\" list")

    parse = _PARSERS[source]
    records = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict) or not _str_or_none(entry.get("title")):
            logger.warning("Skipping %s entry %d without a title", source, index)
            continue
        records.append(parse(entry))
    return records


def load_exclusions(path: Path) -> list[str]:
    """Read {"excludedTitles": [...]} and return the titles, normalized.

    Raises:
        ExportFormatError: If the file cannot be read or parsed.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ExportFormatError(f"Cannot read {path}: {exc}") from exc
    titles = data.get("excludedTitles", []) if isinstance(data, dict) else []
    return [normalize_title(t) for t in titles if isinstance(t, str) and t.strip()]
