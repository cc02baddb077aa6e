"""
Tests for utils/plex.py - Plex Media Server client and account/library lookup.
"""

import pytest
import requests
import plexapi.exceptions
from unittest.mock import MagicMock, Mock, patch

from utils.api_client import PlexAuthError, PlexTransportError
from utils.config import ConfigError
from utils.plex import (
    OWNER_ACCOUNT_ID,
    PlexClient,
    resolve_account_id,
    resolve_library_ids,
)


def make_plex_client(payload=None, status_code=200, **kwargs):
    session = Mock()
    session.headers = {}
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    session.get.return_value = response
    client = PlexClient('http://plex.local:32400', 'secret-token', session=session, **kwargs)
    return client, session


class TestPlexClientInit:
    """Tests for PlexClient construction."""

    def test_sets_plex_headers(self):
        client, session = make_plex_client()

        assert session.headers['X-Plex-Token'] == 'secret-token'
        assert session.headers['Accept'] == 'application/json'
        assert 'X-Plex-Client-Identifier' in session.headers

    @patch('utils.plex.urllib3.disable_warnings')
    def test_disables_insecure_warning_without_verify(self, mock_disable):
        make_plex_client(verify_ssl=False)

        mock_disable.assert_called_once()

    @patch('utils.plex.urllib3.disable_warnings')
    def test_keeps_warnings_with_verify(self, mock_disable):
        make_plex_client()

        mock_disable.assert_not_called()


class TestGetHistoryPage:
    """Tests for PlexClient.get_history_page()."""

    def test_sends_paging_headers_and_filters(self):
        client, session = make_plex_client({'MediaContainer': {'size': 0}})

        client.get_history_page(200, 100, library_section_id='1', account_id='1')

        args, kwargs = session.get.call_args
        assert args[0] == 'http://plex.local:32400/status/sessions/history/all'
        assert kwargs['params'] == {'sort': 'viewedAt:desc', 'librarySectionID': '1', 'accountID': '1'}
        assert kwargs['headers'] == {'X-Plex-Container-Start': '200', 'X-Plex-Container-Size': '100'}

    def test_omits_unset_filters(self):
        client, session = make_plex_client({'MediaContainer': {'size': 0}})

        client.get_history_page(0, 100)

        assert session.get.call_args[1]['params'] == {'sort': 'viewedAt:desc'}

    def test_unwraps_media_container(self):
        container = {'size': 1, 'totalSize': 1, 'Metadata': [{'ratingKey': '5'}]}
        client, _ = make_plex_client({'MediaContainer': container})

        assert client.get_history_page(0, 100) == container

    def test_missing_container_is_empty(self):
        client, _ = make_plex_client({'unexpected': True})

        assert client.get_history_page(0, 100) == {}

    def test_404_is_transport_error(self):
        """Test that a missing history endpoint is a failure, not an empty history."""
        client, session = make_plex_client(status_code=404)

        with pytest.raises(PlexTransportError) as exc_info:
            client.get_history_page(0, 100)

        assert exc_info.value.status_code == 404


class TestGetItemMetadata:
    """Tests for PlexClient.get_item_metadata()."""

    def test_requests_guids(self):
        client, session = make_plex_client({'MediaContainer': {'Metadata': [{'guid': 'imdb://tt1'}]}})

        result = client.get_item_metadata('42')

        assert session.get.call_args[0][0] == 'http://plex.local:32400/library/metadata/42'
        assert session.get.call_args[1]['params'] == {'includeGuids': 1}
        assert result == {'Metadata': [{'guid': 'imdb://tt1'}]}

    def test_404_returns_none(self):
        client, _ = make_plex_client(status_code=404)

        assert client.get_item_metadata('42') is None


class TestGetLibrarySections:
    """Tests for PlexClient.get_library_sections()."""

    def test_lists_sections(self):
        client, _ = make_plex_client({'MediaContainer': {'Directory': [
            {'key': 1, 'title': 'Movies', 'type': 'movie'},
            {'key': '2', 'title': 'TV Shows', 'type': 'show'},
            {'title': 'No Key'},
        ]}})

        assert client.get_library_sections() == [
            {'key': '1', 'title': 'Movies', 'type': 'movie'},
            {'key': '2', 'title': 'TV Shows', 'type': 'show'},
        ]


class TestResolveLibraryIds:
    """Tests for resolve_library_ids() function."""

    def setup_method(self):
        self.client = Mock()
        self.client.get_library_sections.return_value = [
            {'key': '1', 'title': 'Movies', 'type': 'movie'},
            {'key': '2', 'title': 'TV Shows', 'type': 'show'},
        ]

    def test_empty_list_skips_lookup(self):
        assert resolve_library_ids(self.client, []) == []
        self.client.get_library_sections.assert_not_called()

    def test_matches_title_case_insensitive_and_key(self):
        assert resolve_library_ids(self.client, ['tv shows', '1']) == ['2', '1']

    def test_drops_repeats(self):
        assert resolve_library_ids(self.client, ['Movies', '1']) == ['1']

    def test_unknown_library_raises(self):
        with pytest.raises(ConfigError, match='Anime'):
            resolve_library_ids(self.client, ['Anime'])


class TestResolveAccountId:
    """Tests for resolve_account_id() function."""

    def make_account(self):
        account = MagicMock()
        account.username = 'OwnerName'
        alice = Mock(title='Alice', username='alice99', id=12345)
        bob = Mock(title='Bob', username=None, id=678)
        account.users.return_value = [alice, bob]
        return account

    @patch('utils.plex.MyPlexAccount')
    def test_admin_aliases_map_to_owner(self, mock_account_cls):
        mock_account_cls.return_value = self.make_account()

        assert resolve_account_id('token', 'Admin') == OWNER_ACCOUNT_ID
        assert resolve_account_id('token', 'ownername') == OWNER_ACCOUNT_ID
        mock_account_cls.assert_called_with(token='token')

    @patch('utils.plex.MyPlexAccount')
    def test_matches_title_or_username(self, mock_account_cls):
        mock_account_cls.return_value = self.make_account()

        assert resolve_account_id('token', 'ALICE') == '12345'
        assert resolve_account_id('token', 'alice99') == '12345'
        assert resolve_account_id('token', 'bob') == '678'

    @patch('utils.plex.MyPlexAccount')
    def test_unknown_user_raises(self, mock_account_cls):
        mock_account_cls.return_value = self.make_account()

        with pytest.raises(ConfigError, match='carol'):
            resolve_account_id('token', 'carol')

    @patch('utils.plex.MyPlexAccount')
    def test_unauthorized_is_auth_error(self, mock_account_cls):
        mock_account_cls.side_effect = plexapi.exceptions.Unauthorized('401')

        with pytest.raises(PlexAuthError):
            resolve_account_id('token', 'alice')

    @patch('utils.plex.MyPlexAccount')
    def test_unreachable_is_config_error(self, mock_account_cls):
        mock_account_cls.side_effect = requests.exceptions.ConnectionError('offline')

        with pytest.raises(ConfigError):
            resolve_account_id('token', 'alice')
