"""
CSV export and run summary rendering.

The CSV uses the Letterboxd import columns: Title, imdbID, WatchedDate, Tags.
"""

import csv
import os
from typing import Iterable, List, Optional

from .models import ExportRecord, ExportSummary

CSV_COLUMNS = ['Title', 'imdbID', 'WatchedDate', 'Tags']


def write_csv(records: Iterable[ExportRecord], output_path: str, date_only: bool = False) -> int:
    """
    Write records to `output_path` in the given order.

    Args:
        records: Export records, already ordered and deduplicated
        output_path: Destination file; parent directories are created
        date_only: Render WatchedDate as YYYY-MM-DD instead of a full timestamp

    Returns:
        Number of rows written (header excluded)
    """
    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    count = 0
    with open(output_path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        for record in records:
            writer.writerow(record.as_row(date_only=date_only))
            count += 1
    return count


def format_summary(summary: ExportSummary, error: Optional[Exception] = None) -> str:
    """
    Render a multi-line run summary.

    The headline distinguishes a clean export, an export with skipped
    items, and an aborted run.
    """
    if summary.aborted:
        pages = summary.pages_fetched
        headline = f"Aborted after {pages} page{'s' if pages != 1 else ''}"
        if summary.total_available is not None:
            headline += f" (server reported {summary.total_available} history entries)"
        if error is not None:
            headline += f": {error}"
    elif summary.skipped:
        headline = f"Exported {summary.exported} items with {summary.skipped} skipped"
    else:
        headline = f"Fully exported {summary.exported} items"

    lines: List[str] = [
        headline,
        f"  Exported:                    {summary.exported}",
        f"  Skipped (no metadata):       {summary.skipped_no_metadata}",
        f"  Skipped (no IMDb ID):        {summary.skipped_no_imdb_id}",
        f"  Skipped (transport failure): {summary.skipped_transport_failure}",
        f"  Duplicates ignored:          {summary.duplicates}",
    ]
    if summary.filtered:
        lines.append(f"  Filtered by media type:      {summary.filtered}")
    lines.append(f"  History pages fetched:       {summary.pages_fetched}")
    return '\n'.join(lines)
