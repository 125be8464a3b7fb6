# ABOUTME: Resumable batch cursor for enrichment passes, persisted as a small JSON file.
# ABOUTME: The cursor is saved after every batch and reset when a full pass completes.

import json
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass(frozen=True)
class BatchCursor:
    """Position and running totals of an enrichment pass."""

    last_offset: int = 0
    total_processed: int = 0
    total_updated: int = 0
    last_run: str | None = None

    def advance(self, *, offset: int, processed: int, updated: int) -> "BatchCursor":
        """Cursor after a batch that ended at offset."""
        return replace(
            self,
            last_offset=offset,
            total_processed=self.total_processed + processed,
            total_updated=self.total_updated + updated,
            last_run=utc_now(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "lastOffset": self.last_offset,
            "totalProcessed": self.total_processed,
            "totalUpdated": self.total_updated,
            "lastRun": self.last_run,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BatchCursor":
        return cls(
            last_offset=int(data.get("lastOffset", 0)),
            total_processed=int(data.get("totalProcessed", 0)),
            total_updated=int(data.get("totalUpdated", 0)),
            last_run=data.get("lastRun"),
        )


class ProgressStore:
    """Reads and writes a BatchCursor at a fixed path."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> BatchCursor:
        """Return the saved cursor, or a fresh one if none is usable.

        A corrupt file is logged and treated as a fresh start.
        """
        if not self.path.exists():
            return BatchCursor()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return BatchCursor.from_dict(data)
        except (OSError, ValueError, TypeError, AttributeError) as exc:
            logger.warning("Ignoring unreadable progress file %s: %s", self.path, exc)
            return BatchCursor()

    def resume(self) -> BatchCursor:
        """The exact cursor the previous run saved."""
        return self.load()

    def save(self, cursor: BatchCursor) -> None:
        """Write the cursor atomically (temp file, then rename)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(cursor.to_dict(), indent=2), encoding="utf-8")
        tmp.replace(self.path)

    def reset(self) -> BatchCursor:
        """Start the next pass from the beginning."""
        cursor = BatchCursor()
        self.save(cursor)
        return cursor
