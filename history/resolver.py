"""
External identifier parsing.

Plex reports external IDs in two shapes depending on server version and
metadata agent:

* legacy agent GUIDs, e.g. ``com.plexapp.agents.imdb://tt0111161?lang=en``
  or a bare ``imdb://tt0111161`` entry;
* labelled forms where a segment names the provider and the value follows
  it, e.g. ``imdb:tt0111161`` or ``.../imdb/tt0111161``.

Legacy matches win over labelled ones because older libraries can carry
both and the legacy GUID is the agent's own IMDb reference.
"""

import re
from typing import Iterable, List, Optional

from .models import ExternalId, Provider

IMDB_ID_PATTERN = re.compile(r'^tt\d+$')

# scheme://value, with an optional agent prefix (com.plexapp.agents.<scheme>://)
_SCHEME_PATTERN = re.compile(
    r'(?:^|[./])(?P<scheme>[a-z][a-z0-9_-]*)://(?P<value>[^?#\s]*)',
    re.IGNORECASE,
)

_LEGACY_IMDB_PATTERN = re.compile(r'(?:^|[./])imdb://(?P<value>[^?#/\s]+)', re.IGNORECASE)

# provider label followed by ':' '/' or '=' and the value, never '://'
_LABELLED_PATTERN = re.compile(
    r'(?<![a-z0-9])(?P<label>imdb|tmdb|themoviedb|tvdb|thetvdb)[:/=](?!/)\s*(?P<value>[^?#&/\s]+)',
    re.IGNORECASE,
)

_SCHEME_PROVIDERS = {
    'imdb': Provider.IMDB,
    'tmdb': Provider.TMDB,
    'themoviedb': Provider.TMDB,
    'tvdb': Provider.TVDB,
    'thetvdb': Provider.TVDB,
}


def normalize_imdb_id(value: Optional[str]) -> Optional[str]:
    """Return a canonical ``tt<digits>`` ID, or None when malformed."""
    if not value:
        return None
    candidate = value.strip().lower()
    return candidate if IMDB_ID_PATTERN.match(candidate) else None


def _legacy_imdb(raw: str) -> Optional[str]:
    match = _LEGACY_IMDB_PATTERN.search(raw)
    return normalize_imdb_id(match.group('value')) if match else None


def _labelled_imdb(raw: str) -> Optional[str]:
    for match in _LABELLED_PATTERN.finditer(raw):
        if match.group('label').lower() == 'imdb':
            imdb_id = normalize_imdb_id(match.group('value'))
            if imdb_id:
                return imdb_id
    return None


def parse_identifier(raw: str) -> Optional[ExternalId]:
    """
    Classify a single raw identifier string.

    Returns:
        ExternalId tagged with its provider; unknown schemes (``plex://``,
        ``local://``) are tagged UNKNOWN with the raw string as value.
        None for empty input or an IMDb-tagged value that is malformed.
    """
    if not raw or not str(raw).strip():
        return None
    raw = str(raw).strip()

    imdb_id = _legacy_imdb(raw)
    if imdb_id:
        return ExternalId(Provider.IMDB, imdb_id)

    scheme_match = _SCHEME_PATTERN.search(raw)
    if scheme_match:
        provider = _SCHEME_PROVIDERS.get(scheme_match.group('scheme').lower(), Provider.UNKNOWN)
        if provider is Provider.IMDB:
            return None
        if provider is not Provider.UNKNOWN:
            # thetvdb episode GUIDs carry /season/episode after the series ID
            value = scheme_match.group('value').split('/', 1)[0]
            return ExternalId(provider, value) if value else None

    imdb_id = _labelled_imdb(raw)
    if imdb_id:
        return ExternalId(Provider.IMDB, imdb_id)

    label_match = _LABELLED_PATTERN.search(raw)
    if label_match:
        provider = _SCHEME_PROVIDERS[label_match.group('label').lower()]
        if provider is Provider.IMDB:
            return None
        return ExternalId(provider, label_match.group('value'))

    return ExternalId(Provider.UNKNOWN, raw)


def classify_identifiers(raw_identifiers: Iterable[str]) -> List[ExternalId]:
    """Parse every raw identifier, dropping empty and malformed ones."""
    parsed = []
    for raw in raw_identifiers or ():
        external_id = parse_identifier(raw)
        if external_id is not None:
            parsed.append(external_id)
    return parsed


def resolve(raw_identifiers: Iterable[str]) -> Optional[ExternalId]:
    """
    Pick the IMDb ID for an item from its raw identifier set.

    All legacy forms are checked before any labelled form. Returns None
    (not an error) when no valid IMDb-tagged entry is present, which is the
    normal case for items matched only by TMDB/TVDB or not matched at all.
    """
    candidates = [str(raw) for raw in raw_identifiers or () if raw]

    for raw in candidates:
        imdb_id = _legacy_imdb(raw)
        if imdb_id:
            return ExternalId(Provider.IMDB, imdb_id)

    for raw in candidates:
        imdb_id = _labelled_imdb(raw)
        if imdb_id:
            return ExternalId(Provider.IMDB, imdb_id)

    return None


class UnresolvedIdentifier(Exception):
    """Raised when an item has metadata but no usable IMDb ID."""

    def __init__(self, rating_key: str, identifiers: Iterable[str] = ()):
        self.rating_key = rating_key
        self.identifiers = tuple(identifiers)
        shown = ', '.join(self.identifiers) or 'none'
        super().__init__(f"No IMDb ID for item {rating_key} (identifiers: {shown})")
