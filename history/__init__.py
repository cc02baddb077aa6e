"""
Plex watch history retrieval and normalization for Letterboxd export.
"""

from .metadata import MetadataFetcher, MetadataNotFound
from .models import (
    ExportRecord,
    ExportSummary,
    ExternalId,
    HistoryEntry,
    HistoryPage,
    ItemOutcome,
    ItemResult,
    PageCursor,
    Provider,
)
from .output import CSV_COLUMNS, format_summary, write_csv
from .paginator import HistoryPaginator
from .pipeline import ExportPipeline, PipelineHooks, PipelineResult
from .resolver import UnresolvedIdentifier, classify_identifiers, parse_identifier, resolve

__all__ = [
    'CSV_COLUMNS',
    'ExportPipeline',
    'ExportRecord',
    'ExportSummary',
    'ExternalId',
    'HistoryEntry',
    'HistoryPage',
    'HistoryPaginator',
    'ItemOutcome',
    'ItemResult',
    'MetadataFetcher',
    'MetadataNotFound',
    'PageCursor',
    'PipelineHooks',
    'PipelineResult',
    'Provider',
    'UnresolvedIdentifier',
    'classify_identifiers',
    'format_summary',
    'parse_identifier',
    'resolve',
    'write_csv',
]
