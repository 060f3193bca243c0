import polars as pl
import pytest
from pydantic import ValidationError

from datalens.models.analysis import ColumnType
from datalens.services.cleaning_operations import (
    CleaningExecutor,
    DropDuplicatesOperation,
    FillMissingOperation,
    FillStrategy,
    OperationType,
    clean_dataset,
)


def test_exact_duplicate_rows_removed(duplicate_rows, settings):
    types = {"a": ColumnType.NUMERIC, "b": ColumnType.CATEGORICAL}
    result = clean_dataset(duplicate_rows, ["a", "b"], types, settings)
    assert result.raw_row_count == 3
    assert result.duplicates_removed == 1
    assert result.cleaned_rows == [{"a": 1.0, "b": "x"}, {"a": 2.0, "b": "y"}]


def test_numeric_coercion_and_median_fill(settings):
    rows = [
        {"k": "1", "v": "10"},
        {"k": "2", "v": " 20 "},
        {"k": "3", "v": "abc"},
        {"k": "4", "v": ""},
    ]
    types = {"k": ColumnType.ID, "v": ColumnType.NUMERIC}
    result = clean_dataset(rows, ["k", "v"], types, settings)

    assert result.deduplicated.get_column("v").to_list() == [10.0, 20.0, None, None]
    assert result.coercion_failures == {"k": 0, "v": 1}
    assert result.cleaned.get_column("v").to_list() == [10.0, 20.0, 15.0, 15.0]
    assert result.missing_filled == 2


def test_mode_fill_breaks_ties_by_first_seen(settings):
    rows = [{"k": str(i), "c": c} for i, c in enumerate(["b", "a", None, "a", "b"])]
    types = {"k": ColumnType.ID, "c": ColumnType.CATEGORICAL}
    result = clean_dataset(rows, ["k", "c"], types, settings)
    assert result.cleaned.get_column("c").to_list() == ["b", "a", "b", "a", "b"]


def test_datetime_canonicalised_and_gaps_kept(settings):
    rows = [{"d": "2024-01-05"}, {"d": "01/06/2024"}, {"d": ""}]
    result = clean_dataset(rows, ["d"], {"d": ColumnType.DATETIME}, settings)
    assert result.cleaned.get_column("d").to_list() == ["2024-01-05", "2024-01-06", None]
    assert result.format_counts["d"] == {"iso8601": 1, "%m/%d/%Y": 1}
    assert result.missing_filled == 0


def test_text_and_id_gaps_stay_missing(settings):
    rows = [{"t": "  hello ", "i": "A1"}, {"t": None, "i": None}]
    types = {"t": ColumnType.TEXT, "i": ColumnType.ID}
    result = clean_dataset(rows, ["t", "i"], types, settings)
    assert result.cleaned_rows == [{"t": "hello", "i": "A1"}, {"t": None, "i": None}]


def test_duplicates_judged_after_coercion(settings):
    rows = [{"v": "1,000"}, {"v": "1000"}, {"v": "$1000"}]
    result = clean_dataset(rows, ["v"], {"v": ColumnType.NUMERIC}, settings)
    assert result.duplicates_removed == 2
    assert result.format_counts["v"] == {"plain": 2, "currency:$": 1}


def test_original_rows_are_not_mutated(duplicate_rows, settings):
    before = [dict(row) for row in duplicate_rows]
    clean_dataset(duplicate_rows, ["a", "b"], {"a": ColumnType.NUMERIC, "b": ColumnType.TEXT}, settings)
    assert duplicate_rows == before


def test_operations_log(settings):
    rows = [{"v": "1"}, {"v": ""}, {"v": "3"}, {"v": "1"}]
    result = clean_dataset(rows, ["v"], {"v": ColumnType.NUMERIC}, settings)
    kinds = [op.operation for op in result.operations]
    assert kinds == [OperationType.DROP_DUPLICATES, OperationType.FILL_MISSING]
    assert result.operations[0].affected == 1
    assert result.operations[1].strategy == FillStrategy.MEDIAN


def test_all_garbage_never_raises(settings):
    rows = [{"n": "??"}, {"n": "--"}, {"n": object()}]
    result = clean_dataset(rows, ["n"], {"n": ColumnType.NUMERIC}, settings)
    assert result.coercion_failures["n"] == 3
    assert result.cleaned.height == 1


def test_executor_drop_duplicates_keeps_order():
    df = pl.DataFrame({"a": [3, 1, 3, 2, 1]})
    op = DropDuplicatesOperation(description="dedupe")
    assert CleaningExecutor.execute(df, op).get_column("a").to_list() == [3, 1, 2]


def test_executor_unknown_column():
    df = pl.DataFrame({"a": [1.0, None]})
    op = FillMissingOperation(column="b", strategy=FillStrategy.MEDIAN, description="fill")
    with pytest.raises(ValueError):
        CleaningExecutor.execute(df, op)


def test_drop_duplicates_keep_is_validated():
    with pytest.raises(ValidationError):
        DropDuplicatesOperation(description="dedupe", keep="any")
