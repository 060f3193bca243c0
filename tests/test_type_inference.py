import pytest

from datalens.config import Settings
from datalens.models.analysis import ColumnType
from datalens.services.type_inference import (
    infer_column_type,
    infer_column_types,
    is_identifier_name,
    looks_like_identifier,
)


@pytest.mark.parametrize("name, values, expected", [
    ("amount", ["$1,200", "$300", "$45.50", "(12)"], ColumnType.NUMERIC),
    ("ratio", ["10%", "12.5%", "7%"], ColumnType.NUMERIC),
    ("ordered", ["2024-01-01", "2024-02-01", "2024/03/01", "03/15/2024"], ColumnType.DATETIME),
    ("color", ["red", "blue", "red", "green", "blue", "red"], ColumnType.CATEGORICAL),
    ("empty", ["", None, "NA", "  "], ColumnType.TEXT),
    ("customer_id", [1, 2, 3, 4], ColumnType.ID),
    ("id", ["10", "11", "12"], ColumnType.ID),
    ("store_id", [1, 1, 2], ColumnType.NUMERIC),
    ("order", [f"ORD-{i:03d}" for i in range(1, 21)], ColumnType.ID),
])
def test_infer_column_type(name, values, expected, settings):
    assert infer_column_type(name, values, settings) == expected


def test_uuid_column_is_id(settings):
    values = [f"{i:08x}-1234-5678-9abc-def012345678" for i in range(12)]
    assert infer_column_type("ref", values, settings) == ColumnType.ID


def test_long_unique_strings_are_text(settings):
    values = [f"This is a fairly long free text comment number {i} about the product" for i in range(30)]
    assert infer_column_type("comment", values, settings) == ColumnType.TEXT


def test_few_distinct_short_values_are_categorical(settings):
    # unique ratio 0.75 but only three short values
    assert infer_column_type("size", ["S", "M", "L", "M"], settings) == ColumnType.CATEGORICAL


def test_numeric_threshold_tolerates_some_junk(settings):
    values = [str(i) for i in range(1, 10)] + ["n/a?"]
    assert infer_column_type("score", values, settings) == ColumnType.NUMERIC


def test_below_threshold_is_not_numeric(settings):
    values = ["1", "2", "3", "x", "y"]
    assert infer_column_type("mixed", values, settings) != ColumnType.NUMERIC


def test_datetime_checked_before_numeric(settings):
    assert infer_column_type("day", ["2024-01-01", "2024-01-02"], settings) == ColumnType.DATETIME


def test_infer_column_types_preserves_order(duplicate_rows, settings):
    types = infer_column_types(duplicate_rows, ["b", "a"], settings)
    assert list(types) == ["b", "a"]
    assert types == {"a": ColumnType.NUMERIC, "b": ColumnType.CATEGORICAL}


def test_only_the_sample_is_examined():
    rows = [{"v": str(i)} for i in range(3)] + [{"v": f"word{i}"} for i in range(100)]
    settings = Settings(INFERENCE_SAMPLE_SIZE=3)
    assert infer_column_types(rows, ["v"], settings)["v"] == ColumnType.NUMERIC


def test_inference_is_deterministic(duplicate_rows, settings):
    first = infer_column_types(duplicate_rows, ["a", "b"], settings)
    second = infer_column_types(duplicate_rows, ["a", "b"], settings)
    assert first == second


def test_identifier_helpers():
    assert is_identifier_name("user_id")
    assert is_identifier_name("orderId")
    assert is_identifier_name("USER_ID")
    assert is_identifier_name("orderID")
    assert not is_identifier_name("paid")
    for name in ("COVID", "GRID", "PAID", "valid"):
        assert not is_identifier_name(name)
    assert looks_like_identifier("INV-2024")
    assert looks_like_identifier("9f86d081884c7d659a2feaa0c55ad015")
    assert not looks_like_identifier("hello world")


@pytest.mark.parametrize("values", [
    ["1", "2", "3", "4", "5"],
    [0, 1, 2, 3, 4, 5, 6],
])
def test_row_counter_is_id(values, settings):
    assert infer_column_type("row", values, settings) == ColumnType.ID


@pytest.mark.parametrize("values", [
    ["2019", "2020", "2021", "2022", "2023"],
    ["1", "2", "3"],
    ["3", "1", "2", "5", "4"],
])
def test_other_integer_runs_stay_numeric(values, settings):
    assert infer_column_type("value", values, settings) == ColumnType.NUMERIC


def test_uppercase_name_ending_in_id_letters_is_numeric(settings):
    values = ["12", "7", "40", "3", "25"]
    assert infer_column_type("COVID", values, settings) == ColumnType.NUMERIC
    assert infer_column_type("PATIENT_ID", values, settings) == ColumnType.ID
