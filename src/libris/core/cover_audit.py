# ABOUTME: Re-validates every stored cover URL with a bounded worker pool.
# ABOUTME: Workers only download and check; the calling thread clears rejected covers.

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from libris.db.catalog import LibraryCatalog
from libris.db.mapping import BookRecord
from libris.metadata.covers import REASON_UNREACHABLE, CoverCheck, CoverValidator
from libris.metadata.types import EnrichmentStatus

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 10


@dataclass
class CoverAuditResult:
    checked: int = 0
    valid: int = 0
    cleared: int = 0
    unreachable: int = 0
    failures: list[tuple[int, str]] = field(default_factory=list)


# Progress callback: (book, check) after each cover is judged
AuditCallback = Callable[[BookRecord, CoverCheck], None]


def audit_covers(
    catalog: LibraryCatalog,
    validator: CoverValidator,
    *,
    workers: int = DEFAULT_WORKERS,
    dry_run: bool = False,
    on_checked: AuditCallback | None = None,
) -> CoverAuditResult:
    """Check every book's cover and clear the ones whose content is rejected.

    A cleared book goes back to PARTIAL so the next enrichment pass looks
    for a replacement. A cover that could not be downloaded is only
    counted; the next audit tries it again.
    """
    books = catalog.list_with_covers()
    result = CoverAuditResult()
    if not books:
        return result

    with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
        futures = {
            executor.submit(validator.validate, book.cover_url): book
            for book in books
            if book.cover_url
        }
        for future in as_completed(futures):
            book = futures[future]
            check = future.result()
            result.checked += 1
            if check.valid:
                result.valid += 1
            elif check.reason == REASON_UNREACHABLE:
                logger.warning("Cover for %r unreachable, keeping it: %s", book.title, check.url)
                result.unreachable += 1
            else:
                logger.info("Bad cover for %r (%s): %s", book.title, check.reason, check.url)
                result.failures.append((book.id, check.reason or "invalid"))
                if not dry_run:
                    catalog.update_book(
                        book.id,
                        cover_url=None,
                        cover_source=None,
                        enrichment_status=EnrichmentStatus.PARTIAL,
                    )
                result.cleared += 1
            if on_checked is not None:
                on_checked(book, check)
    return result
