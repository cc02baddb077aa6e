"""
Plex-specific utilities for plex-to-letterboxd.
Handles the Plex Media Server HTTP API, library sections, and account lookup.
"""

import logging
import urllib3
import plexapi.exceptions
import requests

from typing import Any, Dict, List, Optional

from plexapi.myplex import MyPlexAccount

from .api_client import BaseAPIClient, PlexAuthError, PlexTransportError
from .config import OWNER_ACCOUNT_ID, ConfigError, __version__

# Module-level logger
logger = logging.getLogger('plex_to_letterboxd')

HISTORY_ENDPOINT = '/status/sessions/history/all'
METADATA_ENDPOINT = '/library/metadata/{rating_key}'
SECTIONS_ENDPOINT = '/library/sections'


def _media_container(payload: Any) -> Optional[Dict]:
    """Unwrap the MediaContainer object every Plex JSON response is wrapped in."""
    if payload is None:
        return None
    if not isinstance(payload, dict):
        return {}
    container = payload.get('MediaContainer')
    return container if isinstance(container, dict) else {}


class PlexClient(BaseAPIClient):
    """
    Read-only client for the Plex Media Server endpoints used by the export.
    """

    api_name = "Plex"

    def __init__(self, base_url: str, token: str, **kwargs):
        self.token = token
        super().__init__(base_url, **kwargs)
        if not self.session.verify:
            # Suppress InsecureRequestWarning when users explicitly set verify_ssl=False for local servers
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "X-Plex-Token": self.token,
            "X-Plex-Product": "plex-to-letterboxd",
            "X-Plex-Version": __version__,
            "X-Plex-Client-Identifier": "plex-to-letterboxd",
        }

    def get_history_page(self, start: int, size: int,
                         library_section_id: Optional[str] = None,
                         account_id: Optional[str] = None) -> Dict:
        """
        Fetch one slice of the server's watch history.

        Plex pages this endpoint through the X-Plex-Container-* headers rather
        than query parameters.

        Args:
            start: Offset of the first row
            size: Number of rows requested
            library_section_id: Optional section filter
            account_id: Optional account filter

        Returns:
            The MediaContainer dict (empty dict when the server sent no container)

        Raises:
            PlexTransportError: Including 404, which means the endpoint is wrong
        """
        params = {'sort': 'viewedAt:desc'}
        if library_section_id:
            params['librarySectionID'] = library_section_id
        if account_id:
            params['accountID'] = account_id
        headers = {
            'X-Plex-Container-Start': str(start),
            'X-Plex-Container-Size': str(size),
        }
        payload = self.get(HISTORY_ENDPOINT, params=params, headers=headers)
        if payload is None:
            raise PlexTransportError(
                f"{self.api_name} history endpoint not found (HTTP 404): {self._build_url(HISTORY_ENDPOINT)}",
                status_code=404,
            )
        return _media_container(payload) or {}

    def get_item_metadata(self, rating_key: str) -> Optional[Dict]:
        """
        Fetch the metadata container for one library item.

        Returns:
            The MediaContainer dict, or None when the server has no such item
        """
        endpoint = METADATA_ENDPOINT.format(rating_key=rating_key)
        return _media_container(self.get(endpoint, params={'includeGuids': 1}))

    def get_library_sections(self) -> List[Dict[str, str]]:
        """
        List library sections.

        Returns:
            List of dicts with 'key', 'title' and 'type'
        """
        container = _media_container(self.get(SECTIONS_ENDPOINT)) or {}
        sections = []
        for directory in container.get('Directory') or []:
            key = directory.get('key')
            if key is None:
                continue
            sections.append({
                'key': str(key),
                'title': directory.get('title', ''),
                'type': directory.get('type', ''),
            })
        return sections


def resolve_library_ids(client: PlexClient, libraries: List[str]) -> List[str]:
    """
    Map configured library names or keys to section keys.

    Args:
        client: Connected PlexClient
        libraries: Section keys or titles (case-insensitive)

    Returns:
        List of section key strings in configured order

    Raises:
        ConfigError: If a library does not exist on the server
    """
    if not libraries:
        return []

    sections = client.get_library_sections()
    by_key = {s['key']: s['key'] for s in sections}
    by_title = {s['title'].lower(): s['key'] for s in sections}

    resolved = []
    for library in libraries:
        key = by_key.get(str(library)) or by_title.get(str(library).lower())
        if key is None:
            available = ', '.join(s['title'] for s in sections) or 'none'
            raise ConfigError(f"Library '{library}' not found on server (available: {available})")
        if key not in resolved:
            resolved.append(key)
    return resolved


def resolve_account_id(token: str, username: str) -> str:
    """
    Resolve a Plex username to the account ID used by the history endpoint.

    Handles admin user aliases and case-insensitive matching of managed
    and shared users.

    Args:
        token: Plex authentication token of the server owner
        username: Username to resolve

    Returns:
        Account ID string

    Raises:
        PlexAuthError: If plex.tv rejects the token
        ConfigError: If the user is unknown or plex.tv is unreachable
    """
    try:
        account = MyPlexAccount(token=token)
    except plexapi.exceptions.Unauthorized as e:
        raise PlexAuthError(f"plex.tv rejected the token: {e}") from e
    except (requests.RequestException, plexapi.exceptions.PlexApiException) as e:
        raise ConfigError(f"Could not reach plex.tv to resolve user '{username}': {e}") from e

    username_lower = username.lower()
    if username_lower in ('admin', 'administrator', (account.username or '').lower()):
        return OWNER_ACCOUNT_ID

    for user in account.users():
        if (user.title or '').lower() == username_lower or (user.username or '').lower() == username_lower:
            return str(user.id)

    raise ConfigError(f"User '{username}' not found in Plex accounts")
