"""
plex-to-letterboxd Utilities Package.

This package contains modular utility functions organized by responsibility.
The CLI module is imported directly (utils.cli) since it depends on the
history package, which in turn depends on this one.
"""

# Config utilities
from .config import (
    __version__,
    HISTORY_PAGE_SIZE,
    REQUEST_TIMEOUT,
    MAX_RETRIES,
    RETRY_BACKOFF,
    DEFAULT_WORKERS,
    MAX_WORKERS,
    DEFAULT_TAGS,
    DEFAULT_OUTPUT_PATH,
    DEFAULT_MEDIA_TYPES,
    OWNER_ACCOUNT_ID,
    ALL_ACCOUNTS,
    ConfigError,
    get_config_section,
    load_config,
    get_plex_config,
    get_export_config,
    get_general_config,
)

# Display utilities
from .display import (
    RED,
    GREEN,
    YELLOW,
    CYAN,
    RESET,
    ANSI_PATTERN,
    ColoredFormatter,
    TeeLogger,
    setup_logging,
    print_status,
    log_info,
    log_warning,
    log_error,
)

# Helper utilities
from .helpers import (
    get_project_root,
    resolve_project_path,
    cleanup_old_logs,
)

# API client utilities
from .api_client import (
    PlexAPIError,
    PlexAuthError,
    PlexTransportError,
    BaseAPIClient,
)

# Plex utilities
from .plex import (
    PlexClient,
    resolve_account_id,
    resolve_library_ids,
)

# Define __all__ for explicit public API
__all__ = [
    # Config
    '__version__',
    'HISTORY_PAGE_SIZE',
    'REQUEST_TIMEOUT',
    'MAX_RETRIES',
    'RETRY_BACKOFF',
    'DEFAULT_WORKERS',
    'MAX_WORKERS',
    'DEFAULT_TAGS',
    'DEFAULT_OUTPUT_PATH',
    'DEFAULT_MEDIA_TYPES',
    'OWNER_ACCOUNT_ID',
    'ALL_ACCOUNTS',
    'ConfigError',
    'get_config_section',
    'load_config',
    'get_plex_config',
    'get_export_config',
    'get_general_config',
    # Display
    'RED',
    'GREEN',
    'YELLOW',
    'CYAN',
    'RESET',
    'ANSI_PATTERN',
    'ColoredFormatter',
    'TeeLogger',
    'setup_logging',
    'print_status',
    'log_info',
    'log_warning',
    'log_error',
    # Helpers
    'get_project_root',
    'resolve_project_path',
    'cleanup_old_logs',
    # API client
    'PlexAPIError',
    'PlexAuthError',
    'PlexTransportError',
    'BaseAPIClient',
    # Plex
    'PlexClient',
    'resolve_account_id',
    'resolve_library_ids',
]
