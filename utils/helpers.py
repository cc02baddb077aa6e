"""
Miscellaneous helper utilities for plex-to-letterboxd.
"""

import glob
import os
import time
from functools import lru_cache

from .display import log_info, log_warning

# Run logs are named export_<timestamp>.log
RUN_LOG_PREFIX = 'export_'


@lru_cache(maxsize=1)
def get_project_root() -> str:
    """
    Get the project root directory path.

    Returns:
        Absolute path to the project root (parent of utils/).
    """
    return os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def resolve_project_path(path: str) -> str:
    """Anchor a relative path at the project root; absolute paths pass through."""
    if os.path.isabs(path):
        return path
    return os.path.join(get_project_root(), path)


def cleanup_old_logs(log_dir: str, retention_days: int) -> int:
    """
    Delete this tool's run logs (export_*.log) last modified more than
    `retention_days` ago. Other files in `log_dir` are left alone.

    Returns:
        Number of log files removed
    """
    if retention_days <= 0:
        return 0

    cutoff = time.time() - retention_days * 86400
    removed = 0
    for path in glob.glob(os.path.join(log_dir, f"{RUN_LOG_PREFIX}*.log")):
        try:
            if os.path.getmtime(path) >= cutoff:
                continue
            os.remove(path)
        except OSError as e:
            log_warning(f"Could not prune run log {os.path.basename(path)}: {e}")
            continue
        removed += 1

    if removed:
        log_info(f"Pruned {removed} run log(s) older than {retention_days} days")
    return removed
