# ABOUTME: Pending-approval report for low-confidence cover replacements.
# ABOUTME: Written as JSON for a human to review, then applied to the catalog on request.

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from libris.db.catalog import LibraryCatalog
from libris.metadata.covers import CoverValidator
from libris.metadata.types import EnrichmentStatus

logger = logging.getLogger(__name__)


class ApprovalReportError(Exception):
    """Raised when a pending-approval report cannot be read."""


@dataclass(frozen=True)
class PendingApproval:
    """A cover that would replace an existing one but needs a human's OK."""

    entity_id: int
    title: str
    current_cover_ref: str | None
    proposed_cover_ref: str
    matched_author: str
    source_provider: str
    confidence: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "entityId": self.entity_id,
            "title": self.title,
            "currentCoverRef": self.current_cover_ref,
            "proposedCoverRef": self.proposed_cover_ref,
            "matchedAuthor": self.matched_author,
            "sourceProvider": self.source_provider,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PendingApproval":
        return cls(
            entity_id=int(data["entityId"]),
            title=data["title"],
            current_cover_ref=data.get("currentCoverRef"),
            proposed_cover_ref=data["proposedCoverRef"],
            matched_author=data.get("matchedAuthor", ""),
            source_provider=data["sourceProvider"],
            confidence=int(data.get("confidence", 0)),
        )


@dataclass
class ApplyResult:
    applied: int = 0
    rejected: int = 0
    missing: int = 0
    remaining: list[PendingApproval] = field(default_factory=list)


def read_report(path: Path) -> list[PendingApproval]:
    """Load a report; a missing file is an empty report.

    Raises:
        ApprovalReportError: If the file exists but is not a valid report.
    """
    if not path.exists():
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return [PendingApproval.from_dict(entry) for entry in data]
    except (OSError, ValueError, TypeError, KeyError) as exc:
        raise ApprovalReportError(f"Cannot read approval report {path}: {exc}") from exc


def write_report(path: Path, approvals: Iterable[PendingApproval]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [approval.to_dict() for approval in approvals]
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def merge_reports(
    existing: Iterable[PendingApproval], new: Iterable[PendingApproval]
) -> list[PendingApproval]:
    """Combine reports; a newer proposal for the same book replaces the older one."""
    merged = {approval.entity_id: approval for approval in existing}
    for approval in new:
        merged[approval.entity_id] = approval
    return list(merged.values())


def apply_approvals(
    catalog: LibraryCatalog,
    approvals: Iterable[PendingApproval],
    validator: CoverValidator,
    *,
    selected: set[int] | None = None,
) -> ApplyResult:
    """Write approved covers to the catalog.

    The proposed cover is validated again first, since the report may be
    old. Approvals not in selected (when given) are returned as remaining.
    A book that now has both a cover and a description counts as ENRICHED.
    """
    result = ApplyResult()
    for approval in approvals:
        if selected is not None and approval.entity_id not in selected:
            result.remaining.append(approval)
            continue

        book = catalog.get_by_id(approval.entity_id)
        if book is None:
            logger.warning("Book %d from approval report no longer exists", approval.entity_id)
            result.missing += 1
            continue

        check = validator.validate(approval.proposed_cover_ref)
        if not check.valid:
            logger.info(
                "Proposed cover for %r no longer valid (%s)", book.title, check.reason
            )
            result.rejected += 1
            continue

        status = (
            EnrichmentStatus.ENRICHED if book.description else EnrichmentStatus.PARTIAL
        )
        catalog.update_book(
            book.id,
            cover_url=approval.proposed_cover_ref,
            cover_source=approval.source_provider,
            enrichment_status=status,
        )
        result.applied += 1
    return result
