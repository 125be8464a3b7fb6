# ABOUTME: MetadataProvider protocol defining the contract for metadata sources.
# ABOUTME: OpenLibrary and Google Books implement this; the orchestrator only sees the protocol.

from typing import Protocol, runtime_checkable

from libris.metadata.candidate import CandidateRecord


@runtime_checkable
class MetadataProvider(Protocol):
    """Protocol for metadata lookup services.

    Lookups return None when the provider has no data. Transport failures
    surface as MetadataFetchError so the caller can tell "not found" from
    "unreachable".
    """

    @property
    def name(self) -> str: ...

    @property
    def author_floor(self) -> int: ...

    def lookup_by_isbn(self, isbn: str) -> CandidateRecord | None: ...

    def lookup_by_provider_id(self, provider_id: str) -> CandidateRecord | None: ...

    def lookup_by_title_author(
        self, title: str, author: str | None = None
    ) -> CandidateRecord | None: ...

    def cover_candidates(
        self, title: str, author: str | None, isbn: str | None
    ) -> list[str]: ...
