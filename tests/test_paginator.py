"""
Tests for history/paginator.py - Paged traversal of the watch history.
"""

import pytest
from unittest.mock import Mock, call

from utils.api_client import PlexAuthError, PlexTransportError
from history.models import PageCursor
from history.paginator import HistoryPaginator


def make_rows(start, count, media_type='movie'):
    return [
        {
            'ratingKey': str(1000 + i),
            'title': f'Movie {i}',
            'type': media_type,
            'viewedAt': 1704103200 - i * 60,
        }
        for i in range(start, start + count)
    ]


def client_with_pages(*pages, total_size=None):
    """Mock client serving the given row lists one call at a time."""
    client = Mock()
    containers = []
    for rows in pages:
        container = {'size': len(rows), 'Metadata': rows}
        if total_size is not None:
            container['totalSize'] = total_size
        containers.append(container)
    client.get_history_page.side_effect = containers
    return client


class TestFetchPage:
    """Tests for HistoryPaginator.fetch_page()."""

    def test_full_page_is_not_last(self):
        client = client_with_pages(make_rows(0, 100))

        page = HistoryPaginator(client).fetch_page(PageCursor())

        assert len(page.items) == 100
        assert page.is_last is False
        assert page.next_cursor == PageCursor(offset=100, page_size=100)

    def test_short_page_is_last(self):
        client = client_with_pages(make_rows(0, 37))

        page = HistoryPaginator(client).fetch_page(PageCursor(offset=100))

        assert page.is_last is True
        assert page.offset == 100
        assert page.next_cursor.offset == 137

    def test_empty_page_is_last(self):
        client = Mock()
        client.get_history_page.return_value = {'size': 0}

        page = HistoryPaginator(client).fetch_page(PageCursor())

        assert page.items == ()
        assert page.is_last is True

    def test_total_size_ends_traversal_on_full_page(self):
        """Test that reaching totalSize marks the page last even when it is full."""
        client = client_with_pages(make_rows(0, 100), total_size=200)

        page = HistoryPaginator(client).fetch_page(PageCursor(offset=100))

        assert page.is_last is True
        assert page.total_size == 200

    def test_passes_filters_to_client(self):
        client = client_with_pages(make_rows(0, 5))
        paginator = HistoryPaginator(client, account_id='1', page_size=50)

        paginator.fetch_page(PageCursor(offset=0, page_size=50), library_section_id='2')

        client.get_history_page.assert_called_once_with(
            0, 50, library_section_id='2', account_id='1'
        )

    def test_builds_entries_from_rows(self):
        client = client_with_pages([{
            'ratingKey': 101,
            'title': 'Pilot',
            'type': 'episode',
            'grandparentTitle': 'Show B',
            'viewedAt': 1704103200,
            'librarySectionID': 2,
            'accountID': 1,
        }])

        entry = HistoryPaginator(client).fetch_page(PageCursor()).items[0]

        assert entry.rating_key == '101'
        assert entry.media_type == 'episode'
        assert entry.grandparent_title == 'Show B'
        assert entry.library_section_id == '2'
        assert entry.account_id == '1'
        assert entry.watched_at.isoformat() == '2024-01-01T10:00:00+00:00'


class TestIterPages:
    """Tests for HistoryPaginator.iter_pages()."""

    def test_short_page_stops_traversal(self):
        """Test that a 37-row page after a full one ends traversal with no third request."""
        client = client_with_pages(make_rows(0, 100), make_rows(100, 37))

        pages = list(HistoryPaginator(client).iter_pages())

        assert [len(p.items) for p in pages] == [100, 37]
        assert client.get_history_page.call_count == 2
        assert client.get_history_page.call_args_list[1] == call(
            100, 100, library_section_id=None, account_id=None
        )

    def test_empty_history_yields_nothing(self):
        client = client_with_pages([])

        assert list(HistoryPaginator(client).iter_pages()) == []
        assert client.get_history_page.call_count == 1

    def test_empty_trailing_page_not_yielded(self):
        """Test that an exact multiple of the page size ends on an empty page."""
        client = client_with_pages(make_rows(0, 100), [])

        pages = list(HistoryPaginator(client).iter_pages())

        assert len(pages) == 1
        assert client.get_history_page.call_count == 2

    def test_traverses_each_section_in_turn(self):
        client = client_with_pages(make_rows(0, 3), make_rows(3, 2))
        paginator = HistoryPaginator(client, library_section_ids=['1', '2'])

        pages = list(paginator.iter_pages())

        assert len(pages) == 2
        assert client.get_history_page.call_args_list == [
            call(0, 100, library_section_id='1', account_id=None),
            call(0, 100, library_section_id='2', account_id=None),
        ]

    def test_is_lazy(self):
        """Test that the next page is only requested when the caller asks for it."""
        client = client_with_pages(make_rows(0, 100), make_rows(100, 100))

        pages = HistoryPaginator(client).iter_pages()
        next(pages)

        assert client.get_history_page.call_count == 1

    def test_transport_error_propagates(self):
        client = Mock()
        client.get_history_page.side_effect = [
            {'Metadata': make_rows(0, 100)},
            PlexTransportError("Plex error 502", status_code=502),
        ]

        pages = HistoryPaginator(client).iter_pages()
        next(pages)

        with pytest.raises(PlexTransportError):
            next(pages)

    def test_auth_error_propagates(self):
        client = Mock()
        client.get_history_page.side_effect = PlexAuthError("rejected")

        with pytest.raises(PlexAuthError):
            list(HistoryPaginator(client).iter_pages())
