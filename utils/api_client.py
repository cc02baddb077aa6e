"""
Base API client for plex-to-letterboxd.
Provides common functionality for sessions, retries, and error classification.
"""

import logging
import threading
import time
import requests
from typing import Any, Dict, Optional

from .config import MAX_RETRIES, REQUEST_TIMEOUT, RETRY_BACKOFF

logger = logging.getLogger('plex_to_letterboxd')


class PlexAPIError(Exception):
    """Base class for Plex client failures."""
    pass


class PlexTransportError(PlexAPIError):
    """Raised on network failures, timeouts, and non-success HTTP status codes."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PlexAuthError(PlexAPIError):
    """Raised when the server rejects the token (401/403). Never retried."""
    pass


class BaseAPIClient:
    """
    Base class for API clients with shared session and retry handling.

    Subclasses should:
    - Set `api_name` class attribute for error messages
    - Override `_get_headers()` to return auth headers

    One `requests.Session` is shared by every call, including calls made
    concurrently from worker threads; it is only read after construction.
    `cancel_event` may be shared with the caller to stop retries early.
    """

    api_name: str = "API"

    def __init__(self, base_url: str,
                 request_timeout: float = REQUEST_TIMEOUT,
                 max_retries: int = MAX_RETRIES,
                 retry_backoff: float = RETRY_BACKOFF,
                 verify_ssl: bool = True,
                 session: Optional[requests.Session] = None,
                 cancel_event: Optional[threading.Event] = None):
        self.base_url = base_url.rstrip('/')
        self.request_timeout = request_timeout
        self.max_retries = max(1, int(max_retries))
        self.retry_backoff = retry_backoff
        self.session = session or requests.Session()
        self.cancel_event = cancel_event or threading.Event()
        self.session.verify = verify_ssl
        self.session.headers.update(self._get_headers())

    def _get_headers(self) -> Dict[str, str]:
        """Get headers for API requests. Override in subclass."""
        return {"Accept": "application/json"}

    def _build_url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def _handle_response(self, response: requests.Response) -> Any:
        """
        Classify an HTTP response.

        Returns:
            Parsed JSON body, or None for 404

        Raises:
            PlexAuthError: 401/403
            PlexTransportError: any other status >= 400, or an undecodable body
        """
        if response.status_code in (401, 403):
            raise PlexAuthError(
                f"{self.api_name} rejected the token (HTTP {response.status_code})"
            )
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise PlexTransportError(
                f"{self.api_name} error {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise PlexTransportError(f"{self.api_name} returned invalid JSON: {e}") from e

    def _get_once(self, endpoint: str, params: Optional[Dict] = None,
                  headers: Optional[Dict] = None) -> Any:
        """Single GET attempt with the request timeout applied."""
        url = self._build_url(endpoint)
        try:
            response = self.session.get(
                url,
                params=params,
                headers=headers,
                timeout=self.request_timeout,
            )
        except requests.exceptions.Timeout as e:
            raise PlexTransportError(f"Request timeout after {self.request_timeout}s: {endpoint}") from e
        except requests.exceptions.ConnectionError as e:
            raise PlexTransportError(f"Could not connect to {self.api_name}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise PlexTransportError(f"Request failed: {e}") from e
        return self._handle_response(response)

    def get(self, endpoint: str, params: Optional[Dict] = None,
            headers: Optional[Dict] = None) -> Any:
        """
        GET with bounded retries.

        Transport failures are retried up to `max_retries` attempts with a
        linear backoff; auth failures propagate immediately. Once
        `cancel_event` is set no further attempt is made and the last
        failure is raised.

        Raises:
            PlexAuthError: On 401/403
            PlexTransportError: When every attempt failed, or the client was cancelled
        """
        last_error = None
        for attempt in range(1, self.max_retries + 1):
            if self.cancel_event.is_set():
                break
            try:
                return self._get_once(endpoint, params=params, headers=headers)
            except PlexTransportError as e:
                last_error = e
                if attempt == self.max_retries or self.cancel_event.is_set():
                    break
                delay = self.retry_backoff * attempt
                logger.warning(
                    f"{self.api_name} request failed ({e}), retrying in {delay:g}s "
                    f"({attempt}/{self.max_retries})"
                )
                time.sleep(delay)

        if last_error is None:
            raise PlexTransportError(f"{self.api_name} request cancelled: {endpoint}")
        logger.debug(f"{self.api_name} request to {endpoint} gave up: {last_error}")
        raise last_error

    def cancel(self) -> None:
        """Stop issuing requests; calls already on the wire are left to finish."""
        self.cancel_event.set()

    def close(self) -> None:
        self.session.close()
