# ABOUTME: Duplicate consolidation for authors and series whose normalized names are equal.
# ABOUTME: Links move to a canonical row and duplicates are deleted, one group at a time.

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from libris.db.catalog import LibraryCatalog
from libris.db.mapping import AuthorRecord, SeriesRecord
from libris.metadata.normalizer import normalize_title

logger = logging.getLogger(__name__)

# Slugs minted by make_unique_slug for a name that already existed.
_NUMBERED_SLUG_RE = re.compile(r"-\d+$")

# Profile fields copied from a duplicate when the canonical author lacks them.
_PROFILE_FIELDS = ("openlibrary_id", "bio", "photo_url", "birth_date", "death_date")

Named = TypeVar("Named", AuthorRecord, SeriesRecord)


@dataclass
class ConsolidationResult:
    """Counts from one consolidation run.

    reassigned: book links moved to the canonical row.
    removed: book links dropped because the canonical author already had them.
    deleted: duplicate rows deleted.
    """

    groups: int = 0
    reassigned: int = 0
    removed: int = 0
    deleted: int = 0
    merged_names: list[str] = field(default_factory=list)


def find_duplicates(rows: list[Named]) -> list[list[Named]]:
    """Group rows by normalized name, keeping only groups of two or more."""
    groups: dict[str, list[Named]] = {}
    for row in rows:
        groups.setdefault(normalize_title(row.name), []).append(row)
    return [group for key, group in groups.items() if key and len(group) > 1]


def choose_canonical(group: list[Named]) -> Named:
    """Pick the row the rest of the group merges into.

    Prefers a slug without a numeric suffix, then the most books, then the
    oldest row.
    """
    return min(
        group,
        key=lambda r: (bool(_NUMBERED_SLUG_RE.search(r.slug)), -r.book_count, r.id),
    )


def _consolidate(
    rows: list[Named],
    catalog: LibraryCatalog,
    merge: Callable[[Named, list[Named], ConsolidationResult], None],
    *,
    kind: str,
    dry_run: bool,
) -> ConsolidationResult:
    result = ConsolidationResult()
    for group in find_duplicates(rows):
        canonical = choose_canonical(group)
        losers = [row for row in group if row.id != canonical.id]
        result.groups += 1
        result.merged_names.append(canonical.name)
        logger.info(
            "Merging %d duplicate %s(s) of %r into %s",
            len(losers), kind, canonical.name, canonical.slug,
        )
        if dry_run:
            result.reassigned += sum(loser.book_count for loser in losers)
            result.deleted += len(losers)
            continue
        with catalog.transaction():
            merge(canonical, losers, result)
    return result


def consolidate_duplicate_authors(
    catalog: LibraryCatalog, *, dry_run: bool = False
) -> ConsolidationResult:
    """Merge every group of same-named authors into one author.

    Running it twice in a row is safe: the second run finds no groups.
    """

    def merge(
        canonical: AuthorRecord, losers: list[AuthorRecord], result: ConsolidationResult
    ) -> None:
        profile: dict[str, str] = {}
        for loser in losers:
            reassigned, removed = catalog.reassign_author_links(loser.id, canonical.id)
            result.reassigned += reassigned
            result.removed += removed
            for name in _PROFILE_FIELDS:
                value = getattr(loser, name)
                if value and not getattr(canonical, name) and name not in profile:
                    profile[name] = value
            catalog.delete_author(loser.id)
            result.deleted += 1
        if profile:
            catalog.update_author(canonical.id, **profile)

    return _consolidate(
        catalog.list_authors(), catalog, merge, kind="author", dry_run=dry_run
    )


def consolidate_duplicate_series(
    catalog: LibraryCatalog, *, dry_run: bool = False
) -> ConsolidationResult:
    """Merge every group of same-named series into one series.

    Books keep their series_order; only the series they point at changes.
    """

    def merge(
        canonical: SeriesRecord, losers: list[SeriesRecord], result: ConsolidationResult
    ) -> None:
        for loser in losers:
            result.reassigned += catalog.move_series_books(loser.id, canonical.id)
            catalog.delete_series(loser.id)
            result.deleted += 1

    return _consolidate(
        catalog.list_series(), catalog, merge, kind="series", dry_run=dry_run
    )
