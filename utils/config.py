"""
Configuration utilities for plex-to-letterboxd.
Handles config loading, environment overrides, and section defaults.
"""

import os
import yaml
from typing import Dict, List, Optional

# Project version - single source of truth
__version__ = "1.0.0"

# Plex history paging (matches the server's default/maximum container size)
HISTORY_PAGE_SIZE = 100

# HTTP behaviour shared by every Plex call
REQUEST_TIMEOUT = 30                # Seconds before a request is treated as failed
MAX_RETRIES = 3                     # Attempts per request before giving up
RETRY_BACKOFF = 1.0                 # Seconds, multiplied by the attempt number

# Concurrent metadata lookups within one history page
DEFAULT_WORKERS = 8
MAX_WORKERS = 32

# Export defaults
DEFAULT_TAGS = "Imported from Plex"
DEFAULT_OUTPUT_PATH = "plex_watch_history.csv"
DEFAULT_MEDIA_TYPES = ['movie']
SUPPORTED_MEDIA_TYPES = ('movie', 'episode')

# The server owner is always account 1 on a Plex Media Server
OWNER_ACCOUNT_ID = '1'
# plex.account_id value that disables the account filter
ALL_ACCOUNTS = 'all'

# Environment variables that override config values
ENV_OVERRIDES = [
    ('PLEX_URL', 'plex', 'url'),
    ('PLEX_TOKEN', 'plex', 'token'),
    ('OUTPUT_CSV', 'export', 'output_path'),
]


class ConfigError(Exception):
    """Raised when configuration is missing or invalid."""
    pass


def get_config_section(config: Dict, key: str, default: Dict = None) -> Dict:
    """
    Get a config section case-insensitively.

    Args:
        config: The configuration dictionary
        key: The key to look for (will check lowercase and uppercase)
        default: Default value if key not found

    Returns:
        The config section or default value
    """
    if default is None:
        default = {}
    section = config.get(key.lower(), config.get(key.upper(), default))
    # An empty YAML section parses as None
    return section if section is not None else default


def load_config(config_path: Optional[str]) -> dict:
    """
    Load YAML configuration and apply environment overrides.

    Environment variables take precedence over all config values:
        PLEX_URL      -> plex.url
        PLEX_TOKEN    -> plex.token
        OUTPUT_CSV    -> export.output_path

    A missing config file is not an error: the environment may supply
    everything that is required. Validation happens in get_plex_config().

    Args:
        config_path: Path to config.yml file (may be None)

    Returns:
        Parsed config dictionary
    """
    config = {}
    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, 'r', encoding='utf-8') as file:
                config = yaml.safe_load(file) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Error loading config from {config_path}: {e}") from e
        if not isinstance(config, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping")
        print(f"Successfully loaded configuration from {config_path}")

    for env_var, section, key in ENV_OVERRIDES:
        value = os.environ.get(env_var)
        if value:
            if not isinstance(config.get(section), dict):
                config[section] = {}
            config[section][key] = value
            print(f"  Using {env_var} from environment")

    return config


def _as_list(value) -> List[str]:
    """Accept a list or a comma-separated string."""
    if not value:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(',') if v.strip()]
    return [str(v).strip() for v in value if str(v).strip()]


def get_plex_config(config: Dict) -> Dict:
    """
    Get the Plex connection section with defaults applied.

    Args:
        config: The root configuration dictionary

    Returns:
        Dict with url, token, verify_ssl, account_id, user and libraries

    Raises:
        ConfigError: If url or token is missing
    """
    plex = get_config_section(config, 'plex')
    url = (plex.get('url') or '').strip().rstrip('/')
    token = (plex.get('token') or '').strip()

    if not url:
        raise ConfigError("Plex URL is not configured (plex.url or PLEX_URL)")
    if not token:
        raise ConfigError("Plex token is not configured (plex.token or PLEX_TOKEN)")

    # Without an account_id or user only the owner's history is exported
    account_id = plex.get('account_id')
    user = plex.get('user') or None
    if account_id in (None, ''):
        account_id = None if user else OWNER_ACCOUNT_ID
    elif str(account_id).strip().lower() == ALL_ACCOUNTS:
        account_id = None
    else:
        account_id = str(account_id).strip()

    return {
        'url': url,
        'token': token,
        'verify_ssl': bool(plex.get('verify_ssl', True)),
        'account_id': account_id,
        'user': user,
        'libraries': _as_list(plex.get('libraries')),
    }


def _clamp(value, minimum: int, maximum: int, default: int) -> int:
    try:
        value = int(value)
    except (TypeError, ValueError):
        return default
    return max(minimum, min(maximum, value))


def get_export_config(config: Dict) -> Dict:
    """
    Get the export section with defaults applied.

    Args:
        config: The root configuration dictionary

    Returns:
        Dict with output_path, tags, media_types, date_only, workers,
        max_retries, request_timeout and retry_backoff

    Raises:
        ConfigError: If media_types names an unsupported kind
    """
    export = get_config_section(config, 'export')

    media_types = _as_list(export.get('media_types')) or list(DEFAULT_MEDIA_TYPES)
    unknown = [m for m in media_types if m not in SUPPORTED_MEDIA_TYPES]
    if unknown:
        raise ConfigError(
            f"Unsupported media_types {unknown}; expected any of {list(SUPPORTED_MEDIA_TYPES)}"
        )

    tags = export.get('tags')
    return {
        'output_path': export.get('output_path') or DEFAULT_OUTPUT_PATH,
        'tags': DEFAULT_TAGS if tags is None else str(tags),
        'media_types': media_types,
        'date_only': bool(export.get('date_only', False)),
        'workers': _clamp(export.get('workers', DEFAULT_WORKERS), 1, MAX_WORKERS, DEFAULT_WORKERS),
        'max_retries': _clamp(export.get('max_retries', MAX_RETRIES), 1, 10, MAX_RETRIES),
        'request_timeout': float(export.get('request_timeout', REQUEST_TIMEOUT)),
        'retry_backoff': float(export.get('retry_backoff', RETRY_BACKOFF)),
    }


def get_general_config(config: Dict) -> Dict:
    """Get log retention settings."""
    general = get_config_section(config, 'general')
    return {
        'log_retention_days': int(general.get('log_retention_days', 0) or 0),
        'log_dir': general.get('log_dir', 'logs'),
    }
