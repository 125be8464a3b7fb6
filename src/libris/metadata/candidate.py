# ABOUTME: CandidateRecord is a provider response normalized into a typed shape.
# ABOUTME: Carries provenance and a 0-100 author confidence against the book being enriched.

from dataclasses import dataclass, field, replace


@dataclass(frozen=True)
class CandidateRecord:
    """Metadata offered by one provider for one book.

    Providers build these with confidence 0; the enrichment orchestrator
    scores them against the target book's author via with_confidence().
    """

    source: str
    source_id: str
    title: str
    authors: list[str] = field(default_factory=list)
    description: str | None = None
    cover_url: str | None = None
    isbn: str | None = None
    external_id: str | None = None
    confidence: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.confidence <= 100:
            msg = f"confidence must be between 0 and 100, got {self.confidence}"
            raise ValueError(msg)

    def with_confidence(self, confidence: int) -> "CandidateRecord":
        return replace(self, confidence=confidence)

    @property
    def author(self) -> str:
        return ", ".join(self.authors) if self.authors else ""
