"""
Sequential traversal of the server's watch history.
"""

import logging
from typing import Iterator, List, Optional

from utils.config import HISTORY_PAGE_SIZE
from utils.plex import PlexClient

from .models import HistoryEntry, HistoryPage, PageCursor

logger = logging.getLogger('plex_to_letterboxd')


def _as_int(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class HistoryPaginator:
    """
    Drives paged retrieval of the watch history, newest first.

    Every traversal starts from offset zero; nothing is resumed across runs.
    A page is the last one when it is empty, shorter than the requested
    size, or when the offset reaches the server's `totalSize`.

    With several library sections configured each section is traversed in
    turn, since the history endpoint accepts a single section filter.
    """

    def __init__(self, client: PlexClient,
                 library_section_ids: Optional[List[str]] = None,
                 account_id: Optional[str] = None,
                 page_size: int = HISTORY_PAGE_SIZE):
        self.client = client
        self.library_section_ids = list(library_section_ids or [])
        self.account_id = account_id
        self.page_size = page_size

    def fetch_page(self, cursor: PageCursor,
                   library_section_id: Optional[str] = None) -> HistoryPage:
        """
        Fetch the page at `cursor`.

        Raises:
            PlexTransportError: Retries exhausted
            PlexAuthError: Token rejected
        """
        container = self.client.get_history_page(
            cursor.offset,
            cursor.page_size,
            library_section_id=library_section_id,
            account_id=self.account_id,
        )
        rows = container.get('Metadata') or []
        items = tuple(HistoryEntry.from_plex(row) for row in rows if isinstance(row, dict))
        total_size = _as_int(container.get('totalSize'))

        # Advance by rows received, not by page size, so a short page never skips rows
        next_cursor = cursor.advance(len(rows))
        is_last = (
            not rows
            or len(rows) < cursor.page_size
            or (total_size is not None and next_cursor.offset >= total_size)
        )

        logger.debug(
            f"History page offset={cursor.offset} received={len(rows)} "
            f"total={total_size} last={is_last}"
        )
        return HistoryPage(
            items=items,
            next_cursor=next_cursor,
            is_last=is_last,
            offset=cursor.offset,
            total_size=total_size,
        )

    def _iter_section(self, library_section_id: Optional[str]) -> Iterator[HistoryPage]:
        cursor = PageCursor(offset=0, page_size=self.page_size)
        while True:
            page = self.fetch_page(cursor, library_section_id=library_section_id)
            if page.items:
                yield page
            if page.is_last:
                return
            cursor = page.next_cursor

    def iter_pages(self) -> Iterator[HistoryPage]:
        """
        Lazily yield non-empty pages in server order.

        The next page is only requested once the caller asks for it, so a
        caller that stops iterating issues no further requests.
        """
        for library_section_id in self.library_section_ids or [None]:
            yield from self._iter_section(library_section_id)
