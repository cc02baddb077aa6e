"""
CLI entry point logic for plex-to-letterboxd.
Parses arguments, builds the Plex client and pipeline, and writes the CSV.
"""

import argparse
import os
import sys
import threading
from datetime import datetime
from typing import Dict, List, Optional

from history import (
    ExportPipeline,
    HistoryPaginator,
    MetadataFetcher,
    PipelineHooks,
    format_summary,
    write_csv,
)

from .api_client import PlexAPIError
from .config import (
    __version__,
    ConfigError,
    get_export_config,
    get_general_config,
    get_plex_config,
    load_config,
)
from .display import (
    CYAN, GREEN, RESET,
    TeeLogger,
    log_error, log_warning,
    print_status,
    setup_logging,
)
from .helpers import RUN_LOG_PREFIX, cleanup_old_logs, resolve_project_path
from .plex import PlexClient, resolve_account_id, resolve_library_ids

DEFAULT_CONFIG_PATH = os.path.join('config', 'config.yml')

EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Export Plex watch history to a Letterboxd-compatible CSV."
    )
    parser.add_argument('--config', default=None,
                        help=f"Path to config file (default: {DEFAULT_CONFIG_PATH})")
    parser.add_argument('--output', '-o', default=None, help='Output CSV path')
    parser.add_argument('--library', action='append', default=None,
                        help='Library section title or key to export (repeatable)')
    parser.add_argument('--user', default=None, help='Only export history for this Plex user')
    parser.add_argument('--workers', type=int, default=None,
                        help='Concurrent metadata lookups per page')
    parser.add_argument('--include-episodes', action='store_true',
                        help='Export TV episodes as well as movies')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    return parser


def apply_cli_overrides(config: Dict, args: argparse.Namespace) -> Dict:
    """
    Fold command line flags into the loaded config. Flags win over the file.

    Args:
        config: Config dict from load_config()
        args: Parsed arguments

    Returns:
        The same config dict, updated in place
    """
    for section in ('plex', 'export'):
        if not isinstance(config.get(section), dict):
            config[section] = {}
    plex = config['plex']
    export = config['export']

    if args.output:
        export['output_path'] = args.output
    if args.workers is not None:
        export['workers'] = args.workers
    if args.include_episodes:
        export['media_types'] = ['movie', 'episode']
    if args.library:
        plex['libraries'] = args.library
    if args.user:
        plex['user'] = args.user
        plex['account_id'] = None
    return config


def build_cli_hooks() -> PipelineHooks:
    """Console reporting for page progress and skipped items."""

    def page_fetched(page_number: int, item_count: int, offset: int) -> None:
        print_status(f"  Page {page_number}: {item_count} history entries (offset {offset})")

    def item_skipped(entry, outcome, reason: str) -> None:
        log_warning(f"  Skipping {entry.title or entry.rating_key}: {reason}")

    def summary(_summary) -> None:
        pass

    return PipelineHooks(page_fetched=page_fetched, item_skipped=item_skipped, summary=summary)


def setup_log_file(log_dir: str, log_retention_days: int) -> bool:
    """
    Tee stdout into a timestamped log file.

    Args:
        log_dir: Directory for log files
        log_retention_days: Days to retain logs (0 = don't log to file)

    Returns:
        True if logging was set up, False otherwise
    """
    if log_retention_days <= 0:
        return False

    try:
        os.makedirs(log_dir, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file_path = os.path.join(log_dir, f"{RUN_LOG_PREFIX}{timestamp}.log")
        lf = open(log_file_path, "w", encoding="utf-8")
    except OSError as e:
        log_error(f"Could not set up logging: {e}")
        return False

    sys.stdout = TeeLogger(lf, sys.stdout)
    cleanup_old_logs(log_dir, log_retention_days)
    return True


def teardown_log_file(original_stdout) -> None:
    """Close the log file and restore stdout."""
    if sys.stdout is not original_stdout and isinstance(sys.stdout, TeeLogger):
        try:
            sys.stdout.logfile.close()
        finally:
            sys.stdout = original_stdout


def print_runtime(start_time: datetime):
    """Print formatted runtime duration."""
    runtime = datetime.now() - start_time
    hours = runtime.seconds // 3600
    minutes = (runtime.seconds % 3600) // 60
    seconds = runtime.seconds % 60
    print(f"Total runtime: {hours:02d}:{minutes:02d}:{seconds:02d}")


def run_export(config: Dict) -> int:
    """
    Run one export with a fully loaded config.

    Returns:
        Process exit code
    """
    try:
        plex_config = get_plex_config(config)
        export_config = get_export_config(config)
    except ConfigError as e:
        log_error(str(e))
        return EXIT_CONFIG_ERROR

    cancel_event = threading.Event()
    client = PlexClient(
        plex_config['url'],
        plex_config['token'],
        request_timeout=export_config['request_timeout'],
        max_retries=export_config['max_retries'],
        retry_backoff=export_config['retry_backoff'],
        verify_ssl=plex_config['verify_ssl'],
        cancel_event=cancel_event,
    )

    try:
        account_id = plex_config['account_id']
        if plex_config['user'] and not account_id:
            account_id = resolve_account_id(plex_config['token'], plex_config['user'])
            print_status(f"Resolved user {plex_config['user']} to account ID {account_id}")
        library_ids: List[str] = resolve_library_ids(client, plex_config['libraries'])
    except ConfigError as e:
        log_error(str(e))
        client.close()
        return EXIT_CONFIG_ERROR
    except PlexAPIError as e:
        log_error(f"Could not prepare export: {e}")
        client.close()
        return EXIT_ABORTED

    print(f"{GREEN}Fetching Plex watch history from {plex_config['url']}...{RESET}")
    pipeline = ExportPipeline(
        HistoryPaginator(client, library_section_ids=library_ids, account_id=account_id),
        MetadataFetcher(client),
        tags=export_config['tags'],
        media_types=export_config['media_types'],
        workers=export_config['workers'],
        hooks=build_cli_hooks(),
        cancel_event=cancel_event,
    )
    try:
        result = pipeline.run()
    finally:
        client.close()

    # Records gathered before an abort are still written
    output_path = export_config['output_path']
    written = write_csv(result.records, output_path, date_only=export_config['date_only'])

    print()
    print(format_summary(result.summary, result.error))
    if result.aborted:
        log_error(f"Wrote partial export of {written} rows to {output_path}")
        return EXIT_ABORTED

    print_status(f"Wrote {written} rows to {output_path}", "success")
    return EXIT_OK


def run_export_main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the export script.

    Args:
        argv: Argument list (defaults to sys.argv[1:])

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)

    start_time = datetime.now()
    print(f"{CYAN}Plex to Letterboxd v{__version__}{RESET}")
    print("-" * 50)

    config_path = args.config or resolve_project_path(DEFAULT_CONFIG_PATH)
    if args.config and not os.path.exists(args.config):
        log_error(f"Config file not found: {args.config}")
        return EXIT_CONFIG_ERROR

    try:
        config = load_config(config_path)
    except ConfigError as e:
        log_error(str(e))
        return EXIT_CONFIG_ERROR
    config = apply_cli_overrides(config, args)

    logger = setup_logging(debug=args.debug, config=config)
    logger.debug("Debug logging enabled")

    general = get_general_config(config)
    original_stdout = sys.stdout
    setup_log_file(resolve_project_path(general['log_dir']), general['log_retention_days'])
    try:
        exit_code = run_export(config)
        print_runtime(start_time)
    finally:
        teardown_log_file(original_stdout)
    return exit_code


def main():
    """Console script entry point."""
    sys.exit(run_export_main())
