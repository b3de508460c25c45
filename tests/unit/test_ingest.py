from pathlib import Path

import pytest

from pincode_map.common.errors import ContractError
from pincode_map.common.fs import write_json
from pincode_map.common.geometry import Coordinates
from pincode_map.common.models import SalesRecord
from pincode_map.pipeline.ingest import ingest_rows, load_resolved_records, load_sales_dataset, parse_sales_row


def test_duplicate_postal_codes_are_summed_in_first_seen_order():
    result = ingest_rows(
        [
            {"pincode": "110001", "sales": 100},
            {"pincode": "400001", "sales": 50},
            {"pincode": "110001", "sales": 25.5},
        ]
    )

    assert result.records == [SalesRecord("110001", 125.5), SalesRecord("400001", 50)]
    assert result.merged_duplicates == 1


def test_malformed_rows_are_rejected():
    result = ingest_rows(
        [
            {"pincode": "", "sales": 1},
            {"sales": 1},
            {"pincode": "560001", "sales": "lots"},
            {"pincode": "560002", "sales": -4},
            "560003,5",
            {"pincode": 700001, "sales": "12"},
        ]
    )

    assert result.rejected_rows == 5
    assert result.records == [SalesRecord("700001", 12)]
    assert result.to_report_dict()["raw_rows"] == 6


def test_supplied_coordinates_are_kept():
    assert parse_sales_row({"pincode": "1", "sales": 1, "lat": "9.5", "lng": "76.3"}).coordinates == Coordinates(9.5, 76.3)
    assert parse_sales_row({"postalCode": "1", "sales": 1, "coordinates": [9.5, 76.3]}).coordinates == Coordinates(9.5, 76.3)
    assert parse_sales_row({"pincode": "1", "sales": 1, "lat": 9.5}).coordinates is None


def test_dataset_must_be_a_list(tmp_path: Path):
    path = tmp_path / "sales.json"
    write_json(path, {"pincode": "110001"})

    with pytest.raises(ContractError):
        load_sales_dataset(path)


def test_missing_dataset_raises_contract_error(tmp_path: Path):
    with pytest.raises(ContractError):
        load_sales_dataset(tmp_path / "missing.json")


def test_bundled_dataset_loads():
    result = load_sales_dataset(Path("datasets/pincode_sales.json"))

    assert result.rejected_rows == 0
    assert len(result.records) == result.raw_rows - result.merged_duplicates


def test_load_resolved_records_skips_rows_without_coordinates(tmp_path: Path):
    path = tmp_path / "resolved.json"
    write_json(
        path,
        {
            "records": [
                {"pincode": "110001", "sales": 10, "lat": 28.6, "lng": 77.2},
                {"pincode": "400001", "sales": 5},
            ]
        },
    )

    records = load_resolved_records(path)

    assert [r.postal_code for r in records] == ["110001"]
    assert records[0].coordinates == Coordinates(28.6, 77.2)
