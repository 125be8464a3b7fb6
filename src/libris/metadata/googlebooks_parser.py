# ABOUTME: Parsing functions for Google Books volumes API JSON responses.
# ABOUTME: Converts volume items into CandidateRecords with upgraded cover URLs.

from typing import Any

from libris.metadata.candidate import CandidateRecord

SOURCE = "googlebooks"


def upgrade_cover_url(url: str) -> str:
    """Ask Google for the larger, un-curled image over https."""
    return (
        url.replace("http://", "https://")
        .replace("zoom=1", "zoom=2")
        .replace("&edge=curl", "")
    )


def _strings(value: Any) -> list[str]:
    """Non-blank strings from a list field; anything else gives []."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and item.strip()]


def extract_cover_url(volume_info: dict[str, Any]) -> str | None:
    image_links = volume_info.get("imageLinks")
    if not isinstance(image_links, dict):
        return None
    for key in ("thumbnail", "smallThumbnail"):
        url = image_links.get(key)
        if isinstance(url, str) and url:
            return upgrade_cover_url(url)
    return None


def extract_isbn(volume_info: dict[str, Any]) -> str | None:
    """ISBN-13 if the volume lists one, else ISBN-10."""
    identifiers = volume_info.get("industryIdentifiers")
    if not isinstance(identifiers, list):
        return None
    by_type = {
        ident.get("type"): ident.get("identifier")
        for ident in identifiers
        if isinstance(ident, dict) and isinstance(ident.get("identifier"), str)
    }
    return by_type.get("ISBN_13") or by_type.get("ISBN_10")


def parse_volume(item: Any) -> CandidateRecord | None:
    """Parse one volume resource; None when it has no volumeInfo or title."""
    if not isinstance(item, dict):
        return None
    info = item.get("volumeInfo")
    if not isinstance(info, dict):
        return None
    title = info.get("title")
    if not isinstance(title, str) or not title.strip():
        return None
    volume_id = item.get("id") if isinstance(item.get("id"), str) else None
    description = info.get("description")
    if not isinstance(description, str) or not description.strip():
        description = None
    return CandidateRecord(
        source=SOURCE,
        source_id=volume_id or "unknown",
        title=title,
        authors=_strings(info.get("authors")),
        description=description.strip() if description else None,
        cover_url=extract_cover_url(info),
        isbn=extract_isbn(info),
        external_id=volume_id,
    )


def parse_volumes(data: Any) -> list[CandidateRecord]:
    """Parse a volumes search response; a missing or malformed "items" means zero results."""
    items = data.get("items") if isinstance(data, dict) else None
    if not isinstance(items, list):
        return []
    results = []
    for item in items:
        candidate = parse_volume(item)
        if candidate is not None:
            results.append(candidate)
    return results
