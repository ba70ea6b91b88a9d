"""
Report output: console tables and CSV export.
"""

import csv
import logging
import os
from typing import List, Optional, Sequence

from .models import OutputRecord

logger = logging.getLogger(__name__)


def report_columns(records: Sequence[OutputRecord]) -> List[str]:
    """Union of field names across records, in first-seen order."""
    columns: List[str] = []
    seen = set()
    for record in records:
        for name in record.fields:
            if name not in seen:
                seen.add(name)
                columns.append(name)
    return columns


def _cell(value) -> str:
    if value is None:
        return ""
    return str(value)


def export_csv(
    records: Sequence[OutputRecord],
    path: str,
    columns: Optional[List[str]] = None,
) -> str:
    """Write records to a UTF-8 CSV file with a header row. Returns the path."""
    columns = columns or report_columns(records)
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)

    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=columns, extrasaction="ignore")
        writer.writeheader()
        for record in records:
            writer.writerow({name: _cell(record.fields.get(name)) for name in columns})

    logger.info(f"Wrote {len(records)} rows to {path}")
    return path


def print_report(
    records: Sequence[OutputRecord],
    columns: Optional[List[str]] = None,
    title: str = "Report",
) -> None:
    """Print records as a fixed-width table."""
    columns = columns or report_columns(records)
    print(f"\n📋 {title} ({len(records)} rows)")
    if not records:
        return

    widths = {
        name: max([len(name)] + [len(_cell(r.fields.get(name))) for r in records])
        for name in columns
    }
    print("  ".join(name.ljust(widths[name]) for name in columns))
    print("  ".join("-" * widths[name] for name in columns))
    for record in records:
        print(
            "  ".join(_cell(record.fields.get(name)).ljust(widths[name]) for name in columns)
        )
