"""
Tests for history/models.py - Value objects passed between pipeline stages.
"""

import pytest
from datetime import datetime, timezone, timedelta

from history.models import (
    ExportRecord,
    ExportSummary,
    HistoryEntry,
    ItemOutcome,
    PageCursor,
)


class TestHistoryEntryFromPlex:
    """Tests for HistoryEntry.from_plex()."""

    def test_converts_viewed_at_to_utc(self):
        entry = HistoryEntry.from_plex({'ratingKey': '1', 'title': 'Film A', 'type': 'movie',
                                        'viewedAt': 1704103200})

        assert entry.watched_at == datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)

    def test_string_viewed_at(self):
        entry = HistoryEntry.from_plex({'ratingKey': '1', 'viewedAt': '1704103200'})

        assert entry.watched_at.year == 2024

    @pytest.mark.parametrize('viewed_at', [None, '', 'yesterday'])
    def test_missing_or_invalid_viewed_at(self, viewed_at):
        entry = HistoryEntry.from_plex({'ratingKey': '1', 'viewedAt': viewed_at})

        assert entry.watched_at is None

    def test_missing_fields(self):
        entry = HistoryEntry.from_plex({})

        assert entry.rating_key is None
        assert entry.title == ''
        assert entry.media_type == 'unknown'


class TestPageCursor:
    """Tests for PageCursor."""

    def test_advance_by_received(self):
        cursor = PageCursor(offset=100, page_size=100).advance(37)

        assert cursor == PageCursor(offset=137, page_size=100)


class TestExportRecord:
    """Tests for ExportRecord."""

    def test_requires_imdb_id(self):
        with pytest.raises(ValueError):
            ExportRecord(title='Film A', imdb_id='', watched_at=datetime.now(timezone.utc))

    def test_as_row(self):
        record = ExportRecord('Film A', 'tt0111161', datetime(2024, 1, 1, 10, tzinfo=timezone.utc))

        assert record.as_row() == {
            'Title': 'Film A',
            'imdbID': 'tt0111161',
            'WatchedDate': '2024-01-01T10:00:00Z',
            'Tags': 'Imported from Plex',
        }

    def test_watched_date_converted_to_utc(self):
        local = datetime(2024, 1, 1, 12, tzinfo=timezone(timedelta(hours=2)))
        record = ExportRecord('Film A', 'tt0111161', local)

        assert record.watched_date() == '2024-01-01T10:00:00Z'

    def test_date_only(self):
        record = ExportRecord('Film A', 'tt0111161', datetime(2024, 1, 1, 23, 30, tzinfo=timezone.utc))

        assert record.watched_date(date_only=True) == '2024-01-01'


class TestExportSummary:
    """Tests for ExportSummary."""

    def test_count_outcomes(self):
        summary = ExportSummary()

        summary.count(ItemOutcome.EXPORTED)
        summary.count(ItemOutcome.SKIPPED_NO_IMDB_ID)
        summary.count(ItemOutcome.SKIPPED_NO_IMDB_ID)
        summary.count(ItemOutcome.SKIPPED_TRANSPORT_FAILURE)

        assert summary.exported == 1
        assert summary.skipped_no_imdb_id == 2
        assert summary.skipped == 3

    def test_is_skip(self):
        assert not ItemOutcome.EXPORTED.is_skip
        assert ItemOutcome.SKIPPED_NO_METADATA.is_skip

    def test_as_dict_keys(self):
        result = ExportSummary(exported=2, aborted=True).as_dict()

        assert result['exported'] == 2
        assert result['skipped_no_metadata'] == 0
        assert result['aborted'] is True
