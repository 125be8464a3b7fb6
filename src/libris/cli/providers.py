# ABOUTME: Builds the default provider chain and cover validator for CLI commands.
# ABOUTME: Each provider gets its own HTTP client and rate-limit gate.

from libris.metadata.covers import CoverValidator
from libris.metadata.googlebooks import GoogleBooksProvider, googlebooks_gate
from libris.metadata.http import LibrisHttpClient, RateLimitGate
from libris.metadata.openlibrary import OpenLibraryProvider, openlibrary_gate
from libris.metadata.provider import MetadataProvider


def create_providers(google_api_key: str | None = None) -> list[MetadataProvider]:
    """Open Library first, Google Books as the fallback."""
    return [
        OpenLibraryProvider(http_client=LibrisHttpClient(gate=openlibrary_gate())),
        GoogleBooksProvider(
            http_client=LibrisHttpClient(gate=googlebooks_gate()),
            api_key=google_api_key,
        ),
    ]


def create_validator() -> CoverValidator:
    """Cover downloads hit CDNs, not the metadata APIs, so they are not throttled."""
    return CoverValidator(http_client=LibrisHttpClient(gate=RateLimitGate(0), max_retries=1))
