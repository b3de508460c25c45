import logging

from pincode_map.common.deterministic import plain_number, stable_sorted
from pincode_map.common.geometry import Coordinates, parse_coordinates, safe_float
from pincode_map.common.ids import format_batch_id, generate_run_id
from pincode_map.common.logging import JsonLineFormatter
from pincode_map.common.models import SalesRecord, merge_duplicate_records


def test_stable_sorted_descending_keeps_ties_in_input_order():
    items = [("a", 1), ("b", 2), ("c", 1)]
    assert stable_sorted(items, key=lambda item: item[1], descending=True) == [("b", 2), ("a", 1), ("c", 1)]


def test_parse_coordinates_accepts_pairs_only():
    assert parse_coordinates([1, "2.5"]) == Coordinates(1.0, 2.5)
    assert parse_coordinates((1, 2, 3)) is None
    assert parse_coordinates("1,2") is None
    assert parse_coordinates(None) is None
    assert parse_coordinates([float("inf"), 1]) is None


def test_safe_float_rejects_bools_and_text():
    assert safe_float(True) is None
    assert safe_float("abc") is None
    assert safe_float("3") == 3.0


def test_plain_number_collapses_integral_floats():
    assert plain_number(125000.0) == 125000
    assert isinstance(plain_number(125000.0), int)
    assert plain_number(1.5) == 1.5


def test_ids():
    assert generate_run_id().startswith("run-")
    assert format_batch_id(3) == "batch-0003"


def test_merge_duplicates_takes_first_supplied_coordinates():
    merged = merge_duplicate_records(
        [SalesRecord("1", 1), SalesRecord("1", 2, Coordinates(5, 5)), SalesRecord("1", 3, Coordinates(6, 6))]
    )
    assert merged == [SalesRecord("1", 6, Coordinates(5, 5))]


def test_json_line_formatter_emits_stable_fields():
    record = logging.LogRecord("pincode_map.test", logging.INFO, __file__, 1, "hello", None, None)
    record.batch_id = "batch-0001"

    line = JsonLineFormatter().format(record)

    assert '"batch_id": "batch-0001"' in line
    assert '"message": "hello"' in line
    assert '"postal_code": null' in line
