from __future__ import annotations

from pathlib import Path

import pytest

from pincode_map.cli import parse_args, run_command
from pincode_map.common.fs import write_json

RESOLVED = {
    "batch_id": "batch-0001",
    "records": [
        {"pincode": "110001", "sales": 125000, "lat": 28.6139, "lng": 77.209},
        {"pincode": "400001", "sales": 98000, "lat": 18.9388, "lng": 72.8354},
        {"pincode": "560001", "sales": 98000, "lat": 12.9716, "lng": 77.5946},
        {"pincode": "700001", "sales": 560, "lat": 22.5448, "lng": 88.3426},
    ],
}


def _run_once(data_dir: Path, run_id: str) -> None:
    write_json(data_dir / "out" / "resolved.json", RESOLVED)
    for command in ("view", "export"):
        args = parse_args(
            [
                command,
                "--config-dir",
                "config",
                "--data-dir",
                str(data_dir),
                "--run-id",
                run_id,
            ]
        )
        assert run_command(args) == 0


@pytest.mark.regression
def test_view_and_export_are_byte_stable_for_same_inputs(tmp_path: Path):
    first = tmp_path / "first"
    second = tmp_path / "second"

    _run_once(first, "run-a")
    _run_once(second, "run-b")

    for name in ("view.json", "pincode_sales_export.csv"):
        assert (first / "out" / name).read_bytes() == (second / "out" / name).read_bytes()


@pytest.mark.regression
def test_export_snapshot(tmp_path: Path):
    _run_once(tmp_path, "run-snapshot")

    assert (tmp_path / "out" / "pincode_sales_export.csv").read_text(encoding="utf-8") == (
        "pincode,sales,lat,lng\n"
        "110001,125000,28.6139,77.209\n"
        "400001,98000,18.9388,72.8354\n"
        "560001,98000,12.9716,77.5946\n"
        "700001,560,22.5448,88.3426"
    )
