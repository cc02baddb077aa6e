"""
Display and logging utilities for plex-to-letterboxd.
Handles colored console output and log setup.
"""

import sys
import re
import logging

LOGGER_NAME = 'plex_to_letterboxd'

# ANSI color codes
RED = '\033[91m'
GREEN = '\033[92m'
YELLOW = '\033[93m'
CYAN = '\033[96m'
RESET = '\033[0m'

# ANSI pattern for stripping color codes from log files
ANSI_PATTERN = re.compile(r'\x1b\[[0-9;]*m')


class ColoredFormatter(logging.Formatter):
    """Custom formatter that adds colors to log levels"""

    LEVEL_COLORS = {
        logging.DEBUG: CYAN,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: RED,
    }

    def format(self, record):
        color = self.LEVEL_COLORS.get(record.levelno, '')
        record.levelname = f"{color}{record.levelname}{RESET}"
        return super().format(record)


class TeeLogger:
    """Mirrors console writes into a run log file, minus the colour codes."""

    def __init__(self, logfile, stream=None):
        self.logfile = logfile
        self.stream = stream or sys.stdout

    def write(self, text):
        written = self.stream.write(text)
        self.logfile.write(ANSI_PATTERN.sub('', text))
        return written

    def flush(self):
        self.stream.flush()
        self.logfile.flush()

    def isatty(self):
        return False


def setup_logging(debug: bool = False, config: dict = None) -> logging.Logger:
    """
    Configure logging for the export run.

    Args:
        debug: If True, set level to DEBUG. Otherwise use config or default to INFO.
        config: Optional config dict that may contain logging.level setting.

    Returns:
        Configured logger instance.
    """
    if debug:
        level = logging.DEBUG
    elif config and (config.get('logging') or {}).get('level'):
        level_str = str(config['logging']['level']).upper()
        level = getattr(logging, level_str, logging.INFO)
    else:
        level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter(
        fmt='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    # Remove existing handlers to avoid duplicates
    root_logger.handlers = []
    root_logger.addHandler(handler)

    # Suppress noisy third-party loggers
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('requests').setLevel(logging.WARNING)
    logging.getLogger('plexapi').setLevel(logging.WARNING)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    return logger


def print_status(message: str, level: str = "info"):
    """Print a status message with appropriate color"""
    if level == "success":
        _echo(f"✓ {message}", GREEN)
    elif level == "warning":
        log_warning(message)
    elif level == "error":
        log_error(message)
    else:
        log_info(message)


def _echo(message: str, color: str = '') -> None:
    logging.getLogger(LOGGER_NAME).debug(message)
    print(f"{color}{message}{RESET}" if color else message)


def log_info(message: str):
    _echo(message)


def log_warning(message: str):
    """Print in yellow."""
    _echo(message, YELLOW)


def log_error(message: str):
    """Print in red."""
    _echo(message, RED)
