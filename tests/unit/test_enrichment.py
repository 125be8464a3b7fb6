# ABOUTME: Unit tests for the enrichment orchestrator and author profile enrichment.
# ABOUTME: Books use scripted FakeProviders; authors use Open Library on a FakeHttpClient.

from pathlib import Path

import pytest

from libris.core.enrichment import EnrichmentOptions, Enricher
from libris.core.progress import BatchCursor, ProgressStore
from libris.db.catalog import LibraryCatalog
from libris.metadata.covers import CoverValidator
from libris.metadata.googlebooks import GoogleBooksProvider
from libris.metadata.http import MetadataFetchError
from libris.metadata.openlibrary import OpenLibraryProvider
from libris.metadata.types import EnrichmentStatus
from tests.fixtures.catalog_data import add_author, add_book
from tests.fixtures.fake_http import FakeHttpClient
from tests.fixtures.fake_provider import FakeProvider, candidate
from tests.fixtures.images import PLACEHOLDER_GIF, make_jpeg
from tests.fixtures.openlibrary_responses import (
    AUTHOR_RESPONSE,
    AUTHOR_SEARCH_RESPONSE,
    WORK_RESPONSE,
)

ISBN = "9780765326355"
GOOD = "https://covers.example/good.jpg"
PLACEHOLDER = "https://covers.example/nocover.gif"
OLD_COVER = "https://covers.example/old.gif"
AUTHOR_PHOTO = "https://covers.openlibrary.org/a/id/6982367-L.jpg"


@pytest.fixture
def validator() -> CoverValidator:
    return CoverValidator(
        FakeHttpClient(
            images={
                GOOD: make_jpeg(300, 450),
                PLACEHOLDER: PLACEHOLDER_GIF,
                OLD_COVER: PLACEHOLDER_GIF,
                AUTHOR_PHOTO: make_jpeg(400, 400),
            }
        )
    )


def _twok(catalog: LibraryCatalog, **fields) -> int:
    return add_book(catalog, "The Way of Kings", ["Brandon Sanderson"], **fields)


class TestEnrichBook:
    """Tests for Enricher.enrich_book."""

    def test_isbn_hit_fills_description_and_cover(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        book_id = _twok(catalog, isbn13=ISBN)
        provider = FakeProvider(
            by_isbn={
                ISBN: candidate(
                    description="Roshar.", cover_url=GOOD, external_id="OL15358691W"
                )
            }
        )
        outcome = Enricher(catalog, [provider], validator).enrich_book(catalog.get_by_id(book_id))

        assert outcome.status is EnrichmentStatus.ENRICHED
        assert outcome.filled == ["description", "cover"]
        assert provider.calls == [("isbn", ISBN)]
        book = catalog.get_by_id(book_id)
        assert book.description == "Roshar."
        assert book.cover_url == GOOD
        assert book.cover_source == "openlibrary"
        assert book.openlibrary_id == "OL15358691W"
        assert book.enrichment_status is EnrichmentStatus.ENRICHED
        assert book.enriched_at is not None

    def test_wrong_author_is_discarded(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        """A study guide by another 'author' is never accepted."""
        book_id = _twok(catalog, isbn13=ISBN)
        provider = FakeProvider(
            by_isbn={ISBN: candidate(authors=["Course Notes Press"], description="Summary.")}
        )
        outcome = Enricher(catalog, [provider], validator).enrich_book(catalog.get_by_id(book_id))

        assert outcome.status is EnrichmentStatus.NOT_FOUND
        assert outcome.low_confidence == 1
        book = catalog.get_by_id(book_id)
        assert book.description is None
        assert book.enrichment_status is EnrichmentStatus.NOT_FOUND

    def test_second_provider_fills_what_first_lacks(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        book_id = _twok(catalog, isbn13=ISBN)
        openlibrary = FakeProvider(by_isbn={ISBN: candidate(description="Roshar.")})
        google = FakeProvider(
            "googlebooks",
            30,
            by_isbn={
                ISBN: candidate(
                    "googlebooks", authors=["Sanderson"], cover_url=GOOD, external_id="QVn"
                )
            },
        )
        outcome = Enricher(catalog, [openlibrary, google], validator).enrich_book(
            catalog.get_by_id(book_id)
        )

        assert outcome.status is EnrichmentStatus.ENRICHED
        assert outcome.sources == ["openlibrary", "googlebooks"]
        book = catalog.get_by_id(book_id)
        assert book.cover_source == "googlebooks"
        assert book.google_books_id == "QVn"

    def test_partial_when_only_description_found(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        book_id = _twok(catalog, isbn13=ISBN)
        provider = FakeProvider(by_isbn={ISBN: candidate(description="Roshar.")})
        outcome = Enricher(catalog, [provider], validator).enrich_book(catalog.get_by_id(book_id))
        assert outcome.status is EnrichmentStatus.PARTIAL
        assert catalog.get_by_id(book_id).cover_url is None

    def test_bad_cover_falls_back_to_alternatives(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        book_id = _twok(catalog, isbn13=ISBN, description="Already here.")
        provider = FakeProvider(
            by_isbn={ISBN: candidate(cover_url=PLACEHOLDER)},
            covers=[PLACEHOLDER, GOOD],
        )
        outcome = Enricher(catalog, [provider], validator).enrich_book(catalog.get_by_id(book_id))

        assert outcome.status is EnrichmentStatus.ENRICHED
        assert outcome.rejected_covers == 1
        assert catalog.get_by_id(book_id).cover_url == GOOD

    def test_fetch_errors_mark_failed(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        book_id = _twok(catalog, isbn13=ISBN)
        provider = FakeProvider(by_isbn={ISBN: MetadataFetchError("timed out")})
        outcome = Enricher(catalog, [provider], validator).enrich_book(catalog.get_by_id(book_id))
        assert outcome.status is EnrichmentStatus.FAILED
        assert ("search", "The Way of Kings") in provider.calls

    def test_search_used_without_isbn(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        book_id = _twok(catalog)
        provider = FakeProvider(
            by_title={"The Way of Kings": candidate(description="Roshar.", cover_url=GOOD)}
        )
        outcome = Enricher(catalog, [provider], validator).enrich_book(catalog.get_by_id(book_id))
        assert provider.calls == [("search", "The Way of Kings")]
        assert outcome.status is EnrichmentStatus.ENRICHED

    def test_search_runs_after_empty_isbn_hit(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        """An ISBN match with nothing usable still falls through to the title search."""
        book_id = _twok(catalog, isbn13=ISBN)
        provider = FakeProvider(
            by_isbn={ISBN: candidate()},
            by_title={"The Way of Kings": candidate(description="Roshar.")},
        )
        outcome = Enricher(catalog, [provider], validator).enrich_book(catalog.get_by_id(book_id))

        assert ("search", "The Way of Kings") in provider.calls
        assert outcome.status is EnrichmentStatus.PARTIAL
        assert catalog.get_by_id(book_id).description == "Roshar."

    def test_malformed_provider_payload_keeps_other_fields(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        """A null field in one provider's JSON does not throw away what another found."""
        book_id = _twok(catalog, isbn13=ISBN)
        openlibrary = FakeProvider(by_isbn={ISBN: candidate(description="Roshar.")})
        volume = {"id": "x", "volumeInfo": {"title": "The Way of Kings", "authors": None}}
        google = GoogleBooksProvider(FakeHttpClient({"googleapis.com": {"items": [volume]}}))
        outcome = Enricher(catalog, [openlibrary, google], validator).enrich_book(
            catalog.get_by_id(book_id)
        )

        assert outcome.status is EnrichmentStatus.PARTIAL
        assert outcome.error is None
        assert catalog.get_by_id(book_id).description == "Roshar."

    def test_search_skipped_after_useful_isbn_hit(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        book_id = _twok(catalog, isbn13=ISBN)
        provider = FakeProvider(
            by_isbn={ISBN: candidate(description="Roshar.")},
            by_title={"The Way of Kings": candidate(description="Other.", cover_url=GOOD)},
        )
        Enricher(catalog, [provider], validator).enrich_book(catalog.get_by_id(book_id))
        assert ("search", "The Way of Kings") not in provider.calls

    def test_provider_id_lookup(self, catalog: LibraryCatalog, validator: CoverValidator) -> None:
        book_id = _twok(catalog, openlibrary_id="OL15358691W")
        provider = FakeProvider(
            by_id={"OL15358691W": candidate(description="Roshar.", cover_url=GOOD)}
        )
        outcome = Enricher(catalog, [provider], validator).enrich_book(catalog.get_by_id(book_id))
        assert provider.calls[0] == ("provider_id", "OL15358691W")
        assert outcome.status is EnrichmentStatus.ENRICHED

    def test_authorless_book_is_never_accepted(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        book_id = add_book(catalog, "Anonymous", isbn13=ISBN)
        provider = FakeProvider(by_isbn={ISBN: candidate(description="Roshar.")})
        outcome = Enricher(catalog, [provider], validator).enrich_book(catalog.get_by_id(book_id))
        assert outcome.status is EnrichmentStatus.NOT_FOUND
        assert outcome.low_confidence == 1


class TestReplaceBadCovers:
    """Tests for replace_bad_covers mode."""

    def _enricher(self, catalog, validator, authors: list[str]) -> Enricher:
        provider = FakeProvider(by_isbn={ISBN: candidate(authors=authors, cover_url=GOOD)})
        return Enricher(
            catalog, [provider], validator, EnrichmentOptions(replace_bad_covers=True)
        )

    def test_confident_match_replaces_cover(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        book_id = _twok(catalog, isbn13=ISBN, description="x", cover_url=OLD_COVER)
        enricher = self._enricher(catalog, validator, ["Brandon Sanderson"])
        outcome = enricher.enrich_book(catalog.get_by_id(book_id))
        assert outcome.pending is None
        assert catalog.get_by_id(book_id).cover_url == GOOD

    def test_uncertain_match_is_proposed(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        """Last-name-only agreement (50) queues a review instead of overwriting."""
        book_id = _twok(catalog, isbn13=ISBN, description="x", cover_url=OLD_COVER)
        enricher = self._enricher(catalog, validator, ["Sanderson"])
        outcome = enricher.enrich_book(catalog.get_by_id(book_id))

        assert outcome.pending is not None
        assert outcome.pending.entity_id == book_id
        assert outcome.pending.current_cover_ref == OLD_COVER
        assert outcome.pending.proposed_cover_ref == GOOD
        assert outcome.pending.confidence == 50
        assert catalog.get_by_id(book_id).cover_url == OLD_COVER

    def test_good_cover_is_left_alone(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        book_id = _twok(catalog, isbn13=ISBN, description="x", cover_url=GOOD)
        enricher = self._enricher(catalog, validator, ["Brandon Sanderson"])
        outcome = enricher.enrich_book(catalog.get_by_id(book_id))
        assert outcome.filled == []
        assert outcome.status is EnrichmentStatus.ENRICHED

    def test_run_includes_enriched_books(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        _twok(
            catalog,
            isbn13=ISBN,
            description="x",
            cover_url=OLD_COVER,
            enrichment_status=EnrichmentStatus.ENRICHED,
        )
        summary = self._enricher(catalog, validator, ["Sanderson"]).run()
        assert summary.processed == 1
        assert len(summary.pending) == 1


class TestRun:
    """Tests for batched, resumable runs."""

    def test_limit_then_resume_completes_pass(
        self, catalog: LibraryCatalog, validator: CoverValidator, tmp_path: Path
    ) -> None:
        ids = [add_book(catalog, f"Book {n}", ["Someone"]) for n in range(5)]
        store = ProgressStore(tmp_path / "progress.json")
        seen: list[int] = []

        first = Enricher(
            catalog,
            [FakeProvider()],
            validator,
            EnrichmentOptions(batch_size=2, limit=3),
            progress_store=store,
        ).run(on_book=lambda book, outcome: seen.append(book.id))
        assert first.processed == 3
        assert first.not_found == 3
        assert not first.completed_pass
        assert first.cursor.last_offset == 3
        assert store.load().last_offset == 3
        assert store.load().total_processed == 3

        second = Enricher(
            catalog, [FakeProvider()], validator, EnrichmentOptions(batch_size=2),
            progress_store=store,
        ).run(on_book=lambda book, outcome: seen.append(book.id))
        assert second.processed == 2
        assert second.completed_pass
        assert seen == ids
        assert store.load() == BatchCursor()

    def test_enriched_books_are_skipped_but_counted(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        first = add_book(catalog, "One", ["Someone"])
        add_book(catalog, "Two", ["Someone"], enrichment_status=EnrichmentStatus.ENRICHED)
        third = add_book(catalog, "Three", ["Someone"])
        seen: list[int] = []
        summary = Enricher(catalog, [FakeProvider()], validator).run(
            on_book=lambda book, outcome: seen.append(book.id)
        )
        assert seen == [first, third]
        assert summary.processed == 2

    def test_restart_ignores_saved_cursor(
        self, catalog: LibraryCatalog, validator: CoverValidator, tmp_path: Path
    ) -> None:
        for n in range(3):
            add_book(catalog, f"Book {n}", ["Someone"])
        store = ProgressStore(tmp_path / "progress.json")
        store.save(BatchCursor(last_offset=2))
        summary = Enricher(
            catalog, [FakeProvider()], validator, progress_store=store
        ).run(resume=False)
        assert summary.processed == 3

    def test_dry_run_writes_nothing(
        self, catalog: LibraryCatalog, validator: CoverValidator, tmp_path: Path
    ) -> None:
        book_id = _twok(catalog, isbn13=ISBN)
        store = ProgressStore(tmp_path / "progress.json")
        provider = FakeProvider(by_isbn={ISBN: candidate(description="Roshar.", cover_url=GOOD)})
        summary = Enricher(
            catalog, [provider], validator, EnrichmentOptions(dry_run=True), progress_store=store
        ).run()

        assert summary.enriched == 1
        assert summary.updated == 1
        book = catalog.get_by_id(book_id)
        assert book.description is None
        assert book.enrichment_status is EnrichmentStatus.PENDING
        assert not store.path.exists()

    def test_unexpected_error_fails_one_book_only(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        broken = add_book(catalog, "Broken", ["Someone"], isbn13=ISBN)
        fine = add_book(catalog, "Fine", ["Someone"])
        provider = FakeProvider(
            by_isbn={ISBN: RuntimeError("parser exploded")},
            by_title={"Fine": candidate(title="Fine", authors=["Someone"], description="ok")},
        )
        summary = Enricher(catalog, [provider], validator).run()

        assert summary.failed == 1
        assert summary.partial == 1
        assert catalog.get_by_id(broken).enrichment_status is EnrichmentStatus.FAILED
        assert catalog.get_by_id(fine).description == "ok"


class TestEnrichAuthors:
    """Tests for Enricher.enrich_authors against Open Library fixtures."""

    def _enricher(
        self, catalog: LibraryCatalog, validator: CoverValidator, responses: dict, **options
    ) -> tuple[Enricher, FakeHttpClient]:
        http = FakeHttpClient(responses=responses)
        enricher = Enricher(
            catalog, [OpenLibraryProvider(http)], validator, EnrichmentOptions(**options)
        )
        return enricher, http

    def test_name_search_fills_profile(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        author_id = add_author(catalog, "Brandon Sanderson")
        enricher, _ = self._enricher(
            catalog,
            validator,
            {
                "/search/authors.json": AUTHOR_SEARCH_RESPONSE,
                "/authors/OL1394865A.json": AUTHOR_RESPONSE,
            },
        )
        summary = enricher.enrich_authors()

        assert (summary.processed, summary.updated) == (1, 1)
        author = catalog.get_author(author_id)
        assert author.openlibrary_id == "OL1394865A"
        assert author.bio == "Brandon Sanderson writes epic fantasy."
        assert author.photo_url == AUTHOR_PHOTO
        assert author.birth_date == "1975"
        assert author.enriched_at is not None

    def test_work_authors_are_tried_before_search(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        """An initial-only name matches through the book's work at 80."""
        add_book(catalog, "The Way of Kings", ["B. Sanderson"], openlibrary_id="OL15358691W")
        enricher, http = self._enricher(
            catalog,
            validator,
            {
                "/works/OL15358691W.json": WORK_RESPONSE,
                "/authors/OL1394865A.json": AUTHOR_RESPONSE,
            },
        )
        summary = enricher.enrich_authors()
        assert summary.updated == 1
        assert not any("search" in url for url in http.request_log)

    def test_unknown_author_not_found(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        add_author(catalog, "Nobody In Particular")
        enricher, _ = self._enricher(catalog, validator, {})
        summary = enricher.enrich_authors()
        assert summary.not_found == 1
        assert summary.updated == 0

    def test_fetch_error_counts_failed(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        add_author(catalog, "Brandon Sanderson")
        enricher, _ = self._enricher(
            catalog, validator, {"/search/authors.json": MetadataFetchError("down")}
        )
        assert enricher.enrich_authors().failed == 1

    def test_dry_run_counts_without_writing(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        author_id = add_author(catalog, "Brandon Sanderson")
        enricher, _ = self._enricher(
            catalog,
            validator,
            {
                "/search/authors.json": AUTHOR_SEARCH_RESPONSE,
                "/authors/OL1394865A.json": AUTHOR_RESPONSE,
            },
            dry_run=True,
        )
        assert enricher.enrich_authors().updated == 1
        assert catalog.get_author(author_id).bio is None

    def test_without_openlibrary_provider(
        self, catalog: LibraryCatalog, validator: CoverValidator
    ) -> None:
        add_author(catalog, "Brandon Sanderson")
        summary = Enricher(catalog, [FakeProvider()], validator).enrich_authors()
        assert summary.processed == 0
