"""CSV export of the display set."""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Iterable

from pincode_map.common.constants import EXPORT_HEADERS
from pincode_map.common.deterministic import plain_number
from pincode_map.common.fs import write_text
from pincode_map.common.models import ResolvedRecord


def _serialize_row(record: ResolvedRecord) -> list[object]:
    return [record.postal_code, plain_number(record.sales), record.lat, record.lon]


def render_export_csv(display_set: Iterable[ResolvedRecord]) -> str:
    """Header plus one comma-separated row per record, joined with newlines."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)
    for record in display_set:
        writer.writerow(_serialize_row(record))
    return buffer.getvalue().rstrip("\n")


def write_export_csv(path: Path, display_set: Iterable[ResolvedRecord]) -> Path:
    write_text(path, render_export_csv(display_set))
    return path
