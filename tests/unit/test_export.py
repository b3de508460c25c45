import csv
import io
from pathlib import Path

from pincode_map.common.geometry import Coordinates
from pincode_map.common.models import ResolvedRecord
from pincode_map.pipeline.export import render_export_csv, write_export_csv


def _display_set():
    return [
        ResolvedRecord("110001", 125000, Coordinates(28.6139, 77.209)),
        ResolvedRecord("400001", 98000.5, Coordinates(18.9388, 72.8354)),
    ]


def test_export_csv_reparses_to_header_and_rows():
    records = _display_set()

    text = render_export_csv(records)
    rows = list(csv.reader(io.StringIO(text)))

    assert rows[0] == ["pincode", "sales", "lat", "lng"]
    assert len(rows) == 3
    for row, record in zip(rows[1:], records):
        assert row[0] == record.postal_code
        assert float(row[1]) == record.sales
        assert float(row[2]) == record.lat
        assert float(row[3]) == record.lon


def test_export_csv_is_newline_delimited_without_trailing_newline():
    text = render_export_csv(_display_set())

    assert text.split("\n")[1] == "110001,125000,28.6139,77.209"
    assert "\r" not in text
    assert not text.endswith("\n")


def test_export_of_empty_display_set_is_header_only(tmp_path: Path):
    path = write_export_csv(tmp_path / "out" / "export.csv", [])

    assert path.read_text(encoding="utf-8") == "pincode,sales,lat,lng"
