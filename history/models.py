"""
Value objects passed between the history pipeline stages.

Everything here is created and discarded within one run; nothing is
persisted between runs.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from utils.config import DEFAULT_TAGS, HISTORY_PAGE_SIZE

# Unordered identifier strings for one item, in whatever encoding the server used
RawIdentifierSet = Tuple[str, ...]


class Provider(str, Enum):
    IMDB = 'imdb'
    TMDB = 'tmdb'
    TVDB = 'tvdb'
    UNKNOWN = 'unknown'


@dataclass(frozen=True)
class ExternalId:
    """A provider-tagged external identifier, e.g. (imdb, 'tt0111161')."""

    provider: Provider
    value: str

    @property
    def is_imdb(self) -> bool:
        return self.provider is Provider.IMDB


@dataclass(frozen=True)
class HistoryEntry:
    """One watch event from the server's history list."""

    rating_key: Optional[str]
    title: str
    watched_at: Optional[datetime]
    media_type: str
    grandparent_title: Optional[str] = None
    library_section_id: Optional[str] = None
    account_id: Optional[str] = None

    @classmethod
    def from_plex(cls, row: Dict[str, Any]) -> 'HistoryEntry':
        """
        Build an entry from one `Metadata` row of the history container.

        `viewedAt` is Unix seconds; an absent or unparseable value leaves
        `watched_at` as None and the pipeline skips the entry.
        """
        watched_at = None
        viewed_at = row.get('viewedAt')
        if viewed_at not in (None, ''):
            try:
                watched_at = datetime.fromtimestamp(int(viewed_at), tz=timezone.utc)
            except (TypeError, ValueError, OverflowError, OSError):
                watched_at = None

        rating_key = row.get('ratingKey')
        section = row.get('librarySectionID')
        account = row.get('accountID')
        return cls(
            rating_key=str(rating_key) if rating_key not in (None, '') else None,
            title=row.get('title') or '',
            watched_at=watched_at,
            media_type=row.get('type') or 'unknown',
            grandparent_title=row.get('grandparentTitle'),
            library_section_id=str(section) if section is not None else None,
            account_id=str(account) if account is not None else None,
        )


@dataclass(frozen=True)
class PageCursor:
    """Offset-based position in the history list."""

    offset: int = 0
    page_size: int = HISTORY_PAGE_SIZE

    def advance(self, received: int) -> 'PageCursor':
        return PageCursor(offset=self.offset + received, page_size=self.page_size)


@dataclass(frozen=True)
class HistoryPage:
    """One fetched slice of history plus where to continue."""

    items: Tuple[HistoryEntry, ...]
    next_cursor: PageCursor
    is_last: bool
    offset: int = 0
    total_size: Optional[int] = None


@dataclass(frozen=True)
class ExportRecord:
    """A row of the output CSV. `imdb_id` is always a validated tt-id."""

    title: str
    imdb_id: str
    watched_at: datetime
    tags: str = DEFAULT_TAGS

    def __post_init__(self):
        if not self.imdb_id:
            raise ValueError("ExportRecord requires an imdb_id")

    def watched_date(self, date_only: bool = False) -> str:
        """ISO-8601 rendering in UTC, with a trailing Z."""
        utc = self.watched_at.astimezone(timezone.utc)
        if date_only:
            return utc.strftime('%Y-%m-%d')
        return utc.strftime('%Y-%m-%dT%H:%M:%SZ')

    def as_row(self, date_only: bool = False) -> Dict[str, str]:
        return {
            'Title': self.title,
            'imdbID': self.imdb_id,
            'WatchedDate': self.watched_date(date_only),
            'Tags': self.tags,
        }


class ItemOutcome(str, Enum):
    EXPORTED = 'exported'
    SKIPPED_NO_METADATA = 'skipped_no_metadata'
    SKIPPED_NO_IMDB_ID = 'skipped_no_imdb_id'
    SKIPPED_TRANSPORT_FAILURE = 'skipped_transport_failure'

    @property
    def is_skip(self) -> bool:
        return self is not ItemOutcome.EXPORTED


@dataclass(frozen=True)
class ItemResult:
    """Per-item outcome; `record` is set only for EXPORTED."""

    entry: HistoryEntry
    outcome: ItemOutcome
    record: Optional[ExportRecord] = None
    reason: str = ''


@dataclass
class ExportSummary:
    """Counts per outcome plus traversal progress."""

    exported: int = 0
    skipped_no_metadata: int = 0
    skipped_no_imdb_id: int = 0
    skipped_transport_failure: int = 0
    duplicates: int = 0
    filtered: int = 0
    pages_fetched: int = 0
    total_available: Optional[int] = None
    aborted: bool = False

    def count(self, outcome: ItemOutcome) -> None:
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)

    @property
    def skipped(self) -> int:
        return self.skipped_no_metadata + self.skipped_no_imdb_id + self.skipped_transport_failure

    def as_dict(self) -> Dict[str, Any]:
        return {
            ItemOutcome.EXPORTED.value: self.exported,
            ItemOutcome.SKIPPED_NO_METADATA.value: self.skipped_no_metadata,
            ItemOutcome.SKIPPED_NO_IMDB_ID.value: self.skipped_no_imdb_id,
            ItemOutcome.SKIPPED_TRANSPORT_FAILURE.value: self.skipped_transport_failure,
            'duplicates': self.duplicates,
            'filtered': self.filtered,
            'pages_fetched': self.pages_fetched,
            'total_available': self.total_available,
            'aborted': self.aborted,
        }
