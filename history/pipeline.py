"""
Watch history export pipeline.

Orchestrates the paginator, metadata fetcher and identifier resolver into
an ordered, deduplicated list of export records. Failures are split in two
tiers:

* per-item (no metadata, no IMDb ID, metadata transport failure after
  retries) become skip outcomes and are counted in the summary;
* run-level (history page transport failure after retries, token rejected
  anywhere) stop the run. Records gathered so far are kept in the result
  so the caller can still write a partial export.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Set, Tuple

from utils.api_client import PlexAPIError, PlexAuthError, PlexTransportError
from utils.config import DEFAULT_TAGS, DEFAULT_WORKERS

from .metadata import MetadataFetcher, MetadataNotFound
from .models import (
    ExportRecord,
    ExportSummary,
    HistoryEntry,
    HistoryPage,
    ItemOutcome,
    ItemResult,
)
from .paginator import HistoryPaginator
from .resolver import UnresolvedIdentifier, classify_identifiers, resolve

logger = logging.getLogger('plex_to_letterboxd')


def _log_page(page_number: int, item_count: int, offset: int) -> None:
    logger.info(f"Fetched history page {page_number} ({item_count} items, offset {offset})")


def _log_skip(entry: HistoryEntry, outcome: ItemOutcome, reason: str) -> None:
    logger.info(f"Skipping {entry.title or entry.rating_key}: {outcome.value} ({reason})")


def _log_summary(summary: ExportSummary) -> None:
    logger.info(f"Export summary: {summary.as_dict()}")


@dataclass
class PipelineHooks:
    """Observers for progress reporting. They never affect control flow."""

    page_fetched: Callable[[int, int, int], None] = _log_page
    item_skipped: Callable[[HistoryEntry, ItemOutcome, str], None] = _log_skip
    summary: Callable[[ExportSummary], None] = _log_summary


@dataclass
class PipelineResult:
    """Ordered records, outcome counts, and the terminal error if the run stopped early."""

    records: List[ExportRecord] = field(default_factory=list)
    summary: ExportSummary = field(default_factory=ExportSummary)
    error: Optional[PlexAPIError] = None

    @property
    def aborted(self) -> bool:
        return self.error is not None


class ExportPipeline:
    """
    One full export run.

    Pages are fetched strictly one after another. Metadata lookups for the
    entries of one page run on a bounded thread pool and their results are
    put back into page order before anything is appended to the output.

    Pass the client's `cancel_event` as `cancel_event` so that an abort also
    stops retries of lookups already running.
    """

    def __init__(self, paginator: HistoryPaginator, fetcher: MetadataFetcher,
                 tags: str = DEFAULT_TAGS,
                 media_types: Optional[Iterable[str]] = None,
                 workers: int = DEFAULT_WORKERS,
                 hooks: Optional[PipelineHooks] = None,
                 cancel_event: Optional[threading.Event] = None):
        self.paginator = paginator
        self.fetcher = fetcher
        self.tags = tags
        self.media_types = set(media_types) if media_types else None
        self.workers = max(1, workers)
        self.hooks = hooks or PipelineHooks()
        self._cancelled = cancel_event or threading.Event()

    def run(self) -> PipelineResult:
        result = PipelineResult()
        summary = result.summary
        seen_keys: Set[str] = set()
        seen_pairs: Set[Tuple[str, datetime]] = set()

        self._cancelled.clear()
        executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix='metadata')
        try:
            for page in self.paginator.iter_pages():
                summary.pages_fetched += 1
                if page.offset == 0 and page.total_size is not None:
                    summary.total_available = (summary.total_available or 0) + page.total_size
                self.hooks.page_fetched(summary.pages_fetched, len(page.items), page.offset)

                entries = self._select_entries(page, summary, seen_keys)
                for item in self._process_entries(executor, entries):
                    self._collect(item, result, seen_pairs)
        except (PlexAuthError, PlexTransportError) as e:
            self._cancelled.set()
            summary.aborted = True
            result.error = e
            logger.error(f"Export aborted after {summary.pages_fetched} page(s): {e}")
        finally:
            # On abort, queued lookups are dropped and running ones are not waited for
            executor.shutdown(wait=not self._cancelled.is_set(), cancel_futures=True)

        self.hooks.summary(summary)
        return result

    def _select_entries(self, page: HistoryPage, summary: ExportSummary,
                        seen_keys: Set[str]) -> List[HistoryEntry]:
        """Apply the media type filter and drop rating keys seen earlier in the run."""
        selected = []
        for entry in page.items:
            if self.media_types is not None and entry.media_type not in self.media_types:
                summary.filtered += 1
                continue
            if entry.rating_key is not None:
                if entry.rating_key in seen_keys:
                    summary.duplicates += 1
                    logger.debug(f"Duplicate history entry for item {entry.rating_key} ignored")
                    continue
                seen_keys.add(entry.rating_key)
            selected.append(entry)
        return selected

    def _process_entries(self, executor: ThreadPoolExecutor,
                         entries: List[HistoryEntry]) -> List[ItemResult]:
        """
        Resolve entries concurrently and return results in input order.

        Raises:
            PlexAuthError: From any lookup; pending lookups are cancelled first
        """
        results: List[Optional[ItemResult]] = [None] * len(entries)
        futures = {}
        for index, entry in enumerate(entries):
            if entry.rating_key is None:
                results[index] = ItemResult(entry, ItemOutcome.SKIPPED_NO_METADATA,
                                            reason="history entry has no rating key")
            elif entry.watched_at is None:
                results[index] = ItemResult(entry, ItemOutcome.SKIPPED_NO_METADATA,
                                            reason="history entry has no watch date")
            else:
                futures[executor.submit(self._resolve_entry, entry)] = index

        try:
            for future in as_completed(futures):
                results[futures[future]] = future.result()
        except PlexAuthError:
            self._cancelled.set()
            for future in futures:
                future.cancel()
            raise

        return results

    def _resolve_entry(self, entry: HistoryEntry) -> Optional[ItemResult]:
        """Look up and resolve one entry. Only PlexAuthError escapes."""
        if self._cancelled.is_set():
            return None

        try:
            identifiers = self.fetcher.fetch_metadata(entry.rating_key)
            external_id = resolve(identifiers)
            if external_id is None:
                raise UnresolvedIdentifier(entry.rating_key, identifiers)
        except MetadataNotFound as e:
            return ItemResult(entry, ItemOutcome.SKIPPED_NO_METADATA, reason=str(e))
        except UnresolvedIdentifier as e:
            providers = sorted({ext.provider.value for ext in classify_identifiers(e.identifiers)})
            reason = f"only {', '.join(providers)} identifiers" if providers else "no external identifiers"
            return ItemResult(entry, ItemOutcome.SKIPPED_NO_IMDB_ID, reason=reason)
        except PlexTransportError as e:
            return ItemResult(entry, ItemOutcome.SKIPPED_TRANSPORT_FAILURE, reason=str(e))

        record = ExportRecord(
            title=entry.title,
            imdb_id=external_id.value,
            watched_at=entry.watched_at,
            tags=self.tags,
        )
        return ItemResult(entry, ItemOutcome.EXPORTED, record=record)

    def _collect(self, item: ItemResult, result: PipelineResult,
                 seen_pairs: Set[Tuple[str, datetime]]) -> None:
        summary = result.summary
        if item.outcome is not ItemOutcome.EXPORTED:
            summary.count(item.outcome)
            self.hooks.item_skipped(item.entry, item.outcome, item.reason)
            return

        pair = (item.record.imdb_id, item.record.watched_at)
        if pair in seen_pairs:
            summary.duplicates += 1
            logger.debug(f"Duplicate watch of {item.record.imdb_id} at {item.record.watched_at} ignored")
            return
        seen_pairs.add(pair)
        summary.count(ItemOutcome.EXPORTED)
        result.records.append(item.record)
