"""
Per-item metadata lookup.
"""

import logging
from typing import Any, Dict, List

from utils.api_client import PlexAPIError
from utils.plex import PlexClient

from .models import RawIdentifierSet

logger = logging.getLogger('plex_to_letterboxd')


class MetadataNotFound(PlexAPIError):
    """Raised when the server has no metadata for an item (deleted or unmatched)."""

    def __init__(self, rating_key: str):
        self.rating_key = rating_key
        super().__init__(f"No metadata for item {rating_key}")


def extract_identifiers(item: Dict[str, Any]) -> RawIdentifierSet:
    """
    Collect every identifier string attached to one metadata item.

    Covers the item's own `guid` attribute (legacy agent GUID or a
    plex:// GUID on newer servers) and the `Guid` list newer servers
    return with includeGuids=1. Order is preserved and duplicates dropped.
    """
    identifiers: List[str] = []

    def add(value: Any) -> None:
        if isinstance(value, str):
            value = value.strip()
            if value and value not in identifiers:
                identifiers.append(value)

    add(item.get('guid'))
    for guid in item.get('Guid') or []:
        if isinstance(guid, dict):
            add(guid.get('id'))
        else:
            add(guid)
    return tuple(identifiers)


class MetadataFetcher:
    """
    Fetches the raw identifier set for a history entry.

    Read-only and stateless apart from the shared client, so one instance
    may be called from several worker threads at once. Retries happen in
    the client: a PlexTransportError reaching the caller means the retry
    budget is spent.
    """

    def __init__(self, client: PlexClient):
        self.client = client

    def fetch_metadata(self, rating_key: str) -> RawIdentifierSet:
        """
        Raises:
            MetadataNotFound: Server returned 404 or no usable item
            PlexTransportError: Retries exhausted
            PlexAuthError: Token rejected
        """
        container = self.client.get_item_metadata(rating_key)
        items = (container or {}).get('Metadata') or []
        if not items or not isinstance(items[0], dict):
            raise MetadataNotFound(rating_key)

        identifiers = extract_identifiers(items[0])
        logger.debug(f"Item {rating_key} identifiers: {identifiers}")
        return identifiers
