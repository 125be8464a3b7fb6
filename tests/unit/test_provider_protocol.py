# ABOUTME: Unit tests for the MetadataProvider protocol.
# ABOUTME: Validates that both real providers and the test fake satisfy the runtime contract.

from libris.metadata.googlebooks import GoogleBooksProvider
from libris.metadata.openlibrary import OpenLibraryProvider
from libris.metadata.provider import MetadataProvider
from libris.metadata.scoring import GOOGLE_BOOKS_AUTHOR_FLOOR, OPENLIBRARY_AUTHOR_FLOOR
from tests.fixtures.fake_http import FakeHttpClient
from tests.fixtures.fake_provider import FakeProvider


class NotAProvider:
    """Missing the lookup methods; should not satisfy the protocol."""

    @property
    def name(self) -> str:
        return "broken"


class TestMetadataProvider:
    """Tests for MetadataProvider protocol."""

    def test_real_providers_are_instances(self) -> None:
        assert isinstance(OpenLibraryProvider(FakeHttpClient()), MetadataProvider)
        assert isinstance(GoogleBooksProvider(FakeHttpClient()), MetadataProvider)

    def test_fake_provider_is_instance(self) -> None:
        assert isinstance(FakeProvider(), MetadataProvider)

    def test_invalid_implementation_is_not_instance(self) -> None:
        assert not isinstance(NotAProvider(), MetadataProvider)

    def test_author_floors(self) -> None:
        """Google Books is trusted less, so its floor is lower."""
        assert OpenLibraryProvider(FakeHttpClient()).author_floor == OPENLIBRARY_AUTHOR_FLOOR == 50
        assert GoogleBooksProvider(FakeHttpClient()).author_floor == GOOGLE_BOOKS_AUTHOR_FLOOR == 30
