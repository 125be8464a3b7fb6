# ABOUTME: Enrichment orchestrator: fills missing descriptions and covers from metadata providers.
# ABOUTME: Runs resumable batches over the catalog and enriches author profiles from Open Library.

import logging
import sqlite3
from collections import Counter
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from functools import partial
from typing import Any

from libris.core.approvals import PendingApproval
from libris.core.progress import BatchCursor, ProgressStore, utc_now
from libris.db.catalog import LibraryCatalog
from libris.db.mapping import AuthorRecord, BookRecord
from libris.metadata.candidate import CandidateRecord
from libris.metadata.covers import CoverValidator
from libris.metadata.http import MetadataFetchError
from libris.metadata.openlibrary import OpenLibraryProvider
from libris.metadata.openlibrary_parser import AuthorDetails
from libris.metadata.provider import MetadataProvider
from libris.metadata.scoring import OPENLIBRARY_AUTHOR_FLOOR, author_match_confidence
from libris.metadata.types import RETRYABLE_STATUSES, EnrichmentStatus

logger = logging.getLogger(__name__)

# A cover that would overwrite an existing one needs at least this author
# confidence to be written without review.
AUTO_ACCEPT_CONFIDENCE = 80
DEFAULT_BATCH_SIZE = 50

FIELD_DESCRIPTION = "description"
FIELD_COVER = "cover"

# Book column holding each provider's id.
_PROVIDER_ID_COLUMNS = {
    "openlibrary": "openlibrary_id",
    "googlebooks": "google_books_id",
}


@dataclass(frozen=True)
class EnrichmentOptions:
    """Runtime knobs for an enrichment run."""

    batch_size: int = DEFAULT_BATCH_SIZE
    limit: int | None = None
    resume: bool = True
    replace_bad_covers: bool = False
    dry_run: bool = False


@dataclass
class EnrichmentOutcome:
    """What happened to one book."""

    book_id: int
    title: str
    status: EnrichmentStatus = EnrichmentStatus.NOT_FOUND
    filled: list[str] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)
    low_confidence: int = 0
    rejected_covers: int = 0
    pending: PendingApproval | None = None
    error: str | None = None

    @property
    def updated(self) -> bool:
        return bool(self.filled)


@dataclass
class EnrichmentSummary:
    """Counts per outcome category for a run, plus the approvals it produced."""

    processed: int = 0
    enriched: int = 0
    partial: int = 0
    not_found: int = 0
    failed: int = 0
    updated: int = 0
    low_confidence: int = 0
    rejected_covers: int = 0
    pending: list[PendingApproval] = field(default_factory=list)
    by_source: Counter[str] = field(default_factory=Counter)
    completed_pass: bool = False
    cursor: BatchCursor = field(default_factory=BatchCursor)

    def record(self, outcome: EnrichmentOutcome) -> None:
        self.processed += 1
        if outcome.status is EnrichmentStatus.ENRICHED:
            self.enriched += 1
        elif outcome.status is EnrichmentStatus.PARTIAL:
            self.partial += 1
        elif outcome.status is EnrichmentStatus.FAILED:
            self.failed += 1
        else:
            self.not_found += 1
        self.updated += int(outcome.updated)
        self.low_confidence += outcome.low_confidence
        self.rejected_covers += outcome.rejected_covers
        self.by_source.update(outcome.sources)
        if outcome.pending is not None:
            self.pending.append(outcome.pending)


@dataclass
class AuthorEnrichmentSummary:
    processed: int = 0
    updated: int = 0
    not_found: int = 0
    failed: int = 0


# Progress callbacks
BookCallback = Callable[[BookRecord, EnrichmentOutcome], None]
AuthorCallback = Callable[[AuthorRecord, bool], None]


class _BookEnrichment:
    """Mutable working state while one book is being enriched."""

    def __init__(self, book: BookRecord, wants_cover: bool, replacing: bool) -> None:
        self.book = book
        self.wanted = {FIELD_COVER} if wants_cover else set()
        if book.description is None:
            self.wanted.add(FIELD_DESCRIPTION)
        self.missing = set(self.wanted)
        self.replacing = replacing
        self.updates: dict[str, Any] = {}
        self.had_error = False
        self.outcome = EnrichmentOutcome(book_id=book.id, title=book.title)

    def fill(self, field_name: str, source: str, **columns: Any) -> None:
        self.updates.update(columns)
        self.missing.discard(field_name)
        self.outcome.filled.append(field_name)
        if source not in self.outcome.sources:
            self.outcome.sources.append(source)

    def status(self) -> EnrichmentStatus:
        filled = self.wanted - self.missing
        if not self.missing:
            return EnrichmentStatus.ENRICHED
        if filled:
            return EnrichmentStatus.PARTIAL
        if self.had_error:
            return EnrichmentStatus.FAILED
        return EnrichmentStatus.NOT_FOUND


class Enricher:
    """Fills missing book metadata from providers in priority order.

    Per book and provider, lookups go ISBN first, then the provider's own
    id, then a title+author search (only if nothing was filled from that
    provider yet). Candidates are scored on author agreement; those under
    the provider's floor are discarded. Only empty fields are filled, except
    in replace_bad_covers mode, where an existing cover that fails
    validation is replaced.
    """

    def __init__(
        self,
        catalog: LibraryCatalog,
        providers: Sequence[MetadataProvider],
        validator: CoverValidator,
        options: EnrichmentOptions | None = None,
        *,
        progress_store: ProgressStore | None = None,
    ) -> None:
        self._catalog = catalog
        self._providers = list(providers)
        self._validator = validator
        self.options = options or EnrichmentOptions()
        self._progress = progress_store
        self._author_source = next(
            (p for p in self._providers if isinstance(p, OpenLibraryProvider)), None
        )

    # --- Books ---

    def enrich_book(self, book: BookRecord) -> EnrichmentOutcome:
        """Enrich one book and persist the result (unless dry_run)."""
        wants_cover = book.cover_url is None
        replacing = False
        if book.cover_url is not None and self.options.replace_bad_covers:
            check = self._validator.validate(book.cover_url)
            if not check.valid:
                logger.info("Existing cover for %r is bad (%s)", book.title, check.reason)
                wants_cover = replacing = True

        state = _BookEnrichment(book, wants_cover, replacing)
        for provider in self._providers:
            if not state.missing:
                break
            self._consult(provider, state)

        outcome = state.outcome
        outcome.status = state.status()
        if FIELD_COVER in outcome.filled:
            outcome.pending = None

        if not self.options.dry_run:
            self._catalog.update_book(
                book.id,
                **state.updates,
                enrichment_status=outcome.status,
                enriched_at=utc_now(),
            )
        logger.debug(
            "%s -> %s (filled: %s)", book.title, outcome.status, ", ".join(outcome.filled) or "-"
        )
        return outcome

    def _lookups(
        self, book: BookRecord, provider: MetadataProvider
    ) -> Iterator[tuple[str, Callable[[], CandidateRecord | None]]]:
        for isbn in book.isbns:
            yield "isbn", partial(provider.lookup_by_isbn, isbn)
        id_column = _PROVIDER_ID_COLUMNS.get(provider.name)
        provider_id = getattr(book, id_column) if id_column else None
        if provider_id:
            yield "provider_id", partial(provider.lookup_by_provider_id, provider_id)
        if book.primary_author:
            yield "search", partial(
                provider.lookup_by_title_author, book.title, book.primary_author
            )

    def _consult(self, provider: MetadataProvider, state: _BookEnrichment) -> None:
        book = state.book
        filled_before = len(state.outcome.filled)
        for strategy, lookup in self._lookups(book, provider):
            if not state.missing:
                break
            # Search only when the exact lookups filled nothing.
            if strategy == "search" and len(state.outcome.filled) > filled_before:
                break
            try:
                candidate = lookup()
            except MetadataFetchError as exc:
                logger.warning(
                    "%s %s lookup failed for %r: %s", provider.name, strategy, book.title, exc
                )
                state.had_error = True
                continue
            if candidate is None:
                continue

            candidate = candidate.with_confidence(
                author_match_confidence(book.primary_author, candidate.authors)
            )
            if candidate.confidence < provider.author_floor:
                logger.debug(
                    "Discarding %s candidate %r for %r: author confidence %d",
                    provider.name, candidate.title, book.title, candidate.confidence,
                )
                state.outcome.low_confidence += 1
                if state.replacing and candidate.confidence > 0:
                    self._propose(provider, candidate, state)
                continue

            self._accept(provider, candidate, state)

    def _accept(
        self, provider: MetadataProvider, candidate: CandidateRecord, state: _BookEnrichment
    ) -> None:
        book = state.book
        id_column = _PROVIDER_ID_COLUMNS.get(provider.name)
        if (
            id_column
            and candidate.external_id
            and getattr(book, id_column) is None
            and id_column not in state.updates
        ):
            state.updates[id_column] = candidate.external_id

        if FIELD_DESCRIPTION in state.missing and candidate.description:
            state.fill(FIELD_DESCRIPTION, provider.name, description=candidate.description)

        if FIELD_COVER not in state.missing:
            return
        if state.replacing and candidate.confidence < AUTO_ACCEPT_CONFIDENCE:
            self._propose(provider, candidate, state)
            return
        cover_url = self._first_valid_cover(provider, candidate, state)
        if cover_url is not None:
            state.fill(FIELD_COVER, provider.name, cover_url=cover_url, cover_source=provider.name)

    def _first_valid_cover(
        self, provider: MetadataProvider, candidate: CandidateRecord, state: _BookEnrichment
    ) -> str | None:
        """The candidate's own cover if it validates, else the provider's alternatives."""
        if candidate.cover_url and self._cover_ok(candidate.cover_url, state):
            return candidate.cover_url

        book = state.book
        isbn = book.isbns[0] if book.isbns else candidate.isbn
        try:
            alternatives = provider.cover_candidates(book.title, book.primary_author, isbn)
        except MetadataFetchError as exc:
            logger.warning("%s cover search failed for %r: %s", provider.name, book.title, exc)
            return None
        for url in alternatives:
            if url != candidate.cover_url and self._cover_ok(url, state):
                return url
        return None

    def _cover_ok(self, url: str, state: _BookEnrichment) -> bool:
        check = self._validator.validate(url)
        if not check.valid:
            logger.debug("Rejected cover %s for %r: %s", url, state.book.title, check.reason)
            state.outcome.rejected_covers += 1
        return check.valid

    def _propose(
        self, provider: MetadataProvider, candidate: CandidateRecord, state: _BookEnrichment
    ) -> None:
        """Queue a low-confidence replacement cover for review (first one wins)."""
        if state.outcome.pending is not None or not candidate.cover_url:
            return
        if not self._cover_ok(candidate.cover_url, state):
            return
        book = state.book
        state.outcome.pending = PendingApproval(
            entity_id=book.id,
            title=book.title,
            current_cover_ref=book.cover_url,
            proposed_cover_ref=candidate.cover_url,
            matched_author=candidate.author,
            source_provider=provider.name,
            confidence=candidate.confidence,
        )

    def _enrich_safely(self, book: BookRecord) -> EnrichmentOutcome:
        try:
            return self.enrich_book(book)
        # No single book may abort the batch.
        except Exception as exc:
            logger.exception("Enrichment failed for %r", book.title)
            if not self.options.dry_run:
                try:
                    self._catalog.update_book(
                        book.id,
                        enrichment_status=EnrichmentStatus.FAILED,
                        enriched_at=utc_now(),
                    )
                except sqlite3.Error:
                    logger.exception("Could not mark %r as failed", book.title)
            return EnrichmentOutcome(
                book_id=book.id,
                title=book.title,
                status=EnrichmentStatus.FAILED,
                error=str(exc),
            )

    def run(
        self,
        *,
        batch_size: int | None = None,
        limit: int | None = None,
        resume: bool | None = None,
        on_book: BookCallback | None = None,
    ) -> EnrichmentSummary:
        """Enrich eligible books in batches, saving the cursor after each batch.

        Books are visited in id order; the cursor offset counts rows of the
        whole catalog, so books leaving the eligible set mid-pass do not
        shift it. Reaching the end of the catalog completes the pass and
        resets the cursor. A dry run never touches the progress file.

        Args:
            batch_size: Rows per batch (default from options).
            limit: Stop after this many books have been processed.
            resume: Continue from the saved cursor instead of the start.
            on_book: Optional progress callback.
        """
        batch_size = batch_size or self.options.batch_size
        limit = limit if limit is not None else self.options.limit
        resume = self.options.resume if resume is None else resume
        eligible = (
            set(EnrichmentStatus) if self.options.replace_bad_covers else set(RETRYABLE_STATUSES)
        )
        store = None if self.options.dry_run else self._progress

        cursor = self._progress.resume() if (resume and self._progress) else BatchCursor()
        if cursor.last_offset:
            logger.info("Resuming at offset %d", cursor.last_offset)
        offset = cursor.last_offset
        summary = EnrichmentSummary()

        while True:
            page = self._catalog.list_page(offset, batch_size)
            if not page:
                summary.completed_pass = True
                cursor = store.reset() if store is not None else BatchCursor()
                logger.info("Enrichment pass complete")
                break

            consumed = processed = updated = 0
            limit_reached = False
            for book in page:
                if limit is not None and summary.processed >= limit:
                    limit_reached = True
                    break
                consumed += 1
                if book.enrichment_status not in eligible:
                    continue
                outcome = self._enrich_safely(book)
                summary.record(outcome)
                processed += 1
                updated += int(outcome.updated)
                if on_book is not None:
                    on_book(book, outcome)

            offset += consumed
            cursor = cursor.advance(offset=offset, processed=processed, updated=updated)
            if store is not None:
                store.save(cursor)
            if limit_reached:
                break

        summary.cursor = cursor
        return summary

    # --- Authors ---

    def enrich_authors(
        self, *, limit: int | None = None, on_author: AuthorCallback | None = None
    ) -> AuthorEnrichmentSummary:
        """Fill empty author profile fields from Open Library author records.

        The Open Library author is found through the author's stored id, the
        work of one of their books, or a name search, in that order. Photos
        are validated like covers but without the portrait-shape check.
        """
        summary = AuthorEnrichmentSummary()
        source = self._author_source
        if source is None:
            logger.warning("No Open Library provider configured; skipping authors")
            return summary

        candidates = [
            a for a in self._catalog.list_authors() if a.bio is None or a.photo_url is None
        ]
        for author in candidates:
            if limit is not None and summary.processed >= limit:
                break
            summary.processed += 1
            try:
                details = self._find_author(source, author)
            except MetadataFetchError as exc:
                logger.warning("Author lookup failed for %r: %s", author.name, exc)
                summary.failed += 1
                if on_author is not None:
                    on_author(author, False)
                continue

            updated = details is not None and self._apply_author(author, details)
            if details is None:
                summary.not_found += 1
            elif updated:
                summary.updated += 1
            if on_author is not None:
                on_author(author, updated)
        return summary

    def _find_author(
        self, source: OpenLibraryProvider, author: AuthorRecord
    ) -> AuthorDetails | None:
        if author.openlibrary_id:
            return source.lookup_author(author.openlibrary_id)

        for book in self._catalog.books_for_author(author.id):
            if not book.openlibrary_id:
                continue
            for author_id in source.author_ids_for_work(book.openlibrary_id):
                details = source.lookup_author(author_id)
                if details is not None and self._same_author(
                    author, details.name, OPENLIBRARY_AUTHOR_FLOOR
                ):
                    return details

        for author_id, name in source.search_authors(author.name):
            if self._same_author(author, name, AUTO_ACCEPT_CONFIDENCE):
                return source.lookup_author(author_id)
        return None

    @staticmethod
    def _same_author(author: AuthorRecord, name: str, floor: int) -> bool:
        return author_match_confidence(author.name, [name]) >= floor

    def _apply_author(self, author: AuthorRecord, details: AuthorDetails) -> bool:
        updates: dict[str, Any] = {}
        if author.openlibrary_id is None:
            updates["openlibrary_id"] = details.openlibrary_id
        if author.bio is None and details.bio:
            updates["bio"] = details.bio
        if author.photo_url is None and details.photo_url:
            check = self._validator.validate(details.photo_url, check_geometry=False)
            if check.valid:
                updates["photo_url"] = details.photo_url
        if author.birth_date is None and details.birth_date:
            updates["birth_date"] = details.birth_date
        if author.death_date is None and details.death_date:
            updates["death_date"] = details.death_date

        if not updates:
            return False
        if not self.options.dry_run:
            self._catalog.update_author(author.id, **updates, enriched_at=utc_now())
        return True
