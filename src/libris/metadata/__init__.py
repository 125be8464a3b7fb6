# ABOUTME: Metadata package: export records, provider candidates, and the providers behind them.
# ABOUTME: Exports the types shared by the importer, resolver, and enrichment pipeline.

from libris.metadata.candidate import CandidateRecord
from libris.metadata.covers import CoverCheck, CoverValidator
from libris.metadata.http import MetadataFetchError, NotFoundError
from libris.metadata.provider import MetadataProvider
from libris.metadata.types import RETRYABLE_STATUSES, EnrichmentStatus, ImportRecord

__all__ = [
    "RETRYABLE_STATUSES",
    "CandidateRecord",
    "CoverCheck",
    "CoverValidator",
    "EnrichmentStatus",
    "ImportRecord",
    "MetadataFetchError",
    "MetadataProvider",
    "NotFoundError",
]
