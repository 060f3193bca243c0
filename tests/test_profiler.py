import polars as pl
import pytest

from datalens.config import Settings
from datalens.models.analysis import (
    Cardinality,
    CategoricalColumnInfo,
    ColumnType,
    DatetimeColumnInfo,
    IdColumnInfo,
    NullPattern,
    NumericColumnInfo,
    TextColumnInfo,
)
from datalens.services.cleaning_operations import clean_dataset
from datalens.services.profiler import profile_columns
from datalens.services.statistics import (
    classify_cardinality,
    classify_null_pattern,
    count_inconsistent_formats,
    count_spelling_variants,
    describe_numeric,
    value_frequencies,
)


def test_describe_numeric_quartiles_and_outliers(settings):
    stats = describe_numeric(pl.Series([1.0, 2.0, 3.0, 4.0, 100.0]), settings)
    assert (stats.q1, stats.median, stats.q3, stats.iqr) == (2.0, 3.0, 4.0, 2.0)
    assert stats.min == 1.0 and stats.max == 100.0
    assert stats.mean == pytest.approx(22.0)
    assert stats.outlier_count == 1


def test_describe_numeric_interpolates_quartiles(settings):
    stats = describe_numeric(pl.Series([1.0, 2.0, 3.0, 4.0]), settings)
    assert stats.q1 == pytest.approx(1.75)
    assert stats.median == pytest.approx(2.5)
    assert stats.q3 == pytest.approx(3.25)


def test_describe_numeric_ignores_nulls_and_empty(settings):
    assert describe_numeric(pl.Series([None, None], dtype=pl.Float64), settings) is None
    stats = describe_numeric(pl.Series([None, 5.0]), settings)
    assert stats.min == stats.max == 5.0
    assert stats.iqr == 0.0


def test_describe_numeric_mean_stays_within_range(settings):
    for value, count in ((0.1, 11), (0.1, 7), (0.3, 11), (1.1, 9)):
        stats = describe_numeric(pl.Series([value] * count), settings)
        assert stats.min <= stats.mean <= stats.max
        assert stats.mean == stats.min == stats.max


def test_value_frequencies_ties_keep_first_seen():
    series = pl.Series(["b", "a", "a", None, "b", "c"])
    assert value_frequencies(series) == [("b", 2), ("a", 2), ("c", 1)]
    assert value_frequencies(series, limit=1) == [("b", 2)]


@pytest.mark.parametrize("unique, rows, expected", [
    (0, 10, Cardinality.CONSTANT),
    (1, 10, Cardinality.CONSTANT),
    (10, 10, Cardinality.UNIQUE),
    (6, 10, Cardinality.HIGH),
    (3, 10, Cardinality.MEDIUM),
    (2, 100, Cardinality.LOW),
])
def test_classify_cardinality(unique, rows, expected, settings):
    assert classify_cardinality(unique, rows, settings) == expected


@pytest.mark.parametrize("mask, expected", [
    ([False] * 10, NullPattern.NONE),
    ([True, True] + [False] * 8, NullPattern.LEADING),
    ([False] * 8 + [True, True], NullPattern.TRAILING),
    ([True, False, False] * 4, NullPattern.PERIODIC),
    ([True] * 5, NullPattern.RANDOM),
    ([i in (1, 4, 5, 9) for i in range(10)], NullPattern.RANDOM),
])
def test_classify_null_pattern(mask, expected, settings):
    assert classify_null_pattern(mask, settings) == expected


def test_null_pattern_significantly_early(settings):
    mask = [i in (0, 2, 4, 6, 9) for i in range(100)]
    assert classify_null_pattern(mask, settings) == NullPattern.LEADING


def test_null_pattern_significantly_late(settings):
    mask = [i in (90, 93, 95, 97, 99) for i in range(100)]
    assert classify_null_pattern(mask, settings) == NullPattern.TRAILING


def test_count_spelling_variants():
    series = pl.Series(["New York", "new york", "New York", "Boston", " boston"])
    assert count_spelling_variants(series) == 2


def test_count_inconsistent_formats_numeric():
    series = pl.Series([1.0])
    formats = {"plain": 8, "currency:$": 2}
    assert count_inconsistent_formats(ColumnType.NUMERIC, series, formats, 1) == 3
    assert count_inconsistent_formats(ColumnType.ID, series, formats, 1) == 0


def _profile(rows, columns, types, settings):
    return profile_columns(clean_dataset(rows, columns, types, settings), settings)


def test_profile_columns_variants_in_order(settings):
    rows = [
        {"id": "A1", "n": "1", "c": "x", "d": "2024-01-02", "t": "free"},
        {"id": "A2", "n": "3", "c": "y", "d": "2023-12-31", "t": "text"},
        {"id": "A3", "n": "", "c": "x", "d": "", "t": None},
    ]
    types = {
        "id": ColumnType.ID,
        "n": ColumnType.NUMERIC,
        "c": ColumnType.CATEGORICAL,
        "d": ColumnType.DATETIME,
        "t": ColumnType.TEXT,
    }
    profiles = _profile(rows, list(types), types, settings)

    assert [p.name for p in profiles] == ["id", "n", "c", "d", "t"]
    assert [type(p) for p in profiles] == [
        IdColumnInfo, NumericColumnInfo, CategoricalColumnInfo, DatetimeColumnInfo, TextColumnInfo,
    ]

    numeric = profiles[1]
    # profiled before imputation
    assert numeric.missing_count == 1
    assert numeric.missing_percent == pytest.approx(33.33)
    assert numeric.stats.median == 2.0

    categorical = profiles[2]
    assert [(tv.value, tv.count) for tv in categorical.top_values] == [("x", 2), ("y", 1)]

    dates = profiles[3]
    assert dates.date_range.min == "2023-12-31"
    assert dates.date_range.max == "2024-01-02"
    assert dates.null_pattern == NullPattern.RANDOM.value

    assert profiles[0].cardinality == Cardinality.UNIQUE.value


def test_profile_counts_format_inconsistencies(settings):
    rows = [{"d": "2024-01-05"}, {"d": "2024-01-06"}, {"d": "01/07/2024"}, {"d": "not a date"}]
    profiles = _profile(rows, ["d"], {"d": ColumnType.DATETIME}, settings)
    # one non-dominant format plus one coercion failure
    assert profiles[0].inconsistent_formats == 2


def test_profile_top_k_is_capped():
    settings = Settings(TOP_K_VALUES=2)
    rows = [{"c": c} for c in "aabbbcd"]
    profiles = _profile(rows, ["c"], {"c": ColumnType.CATEGORICAL}, settings)
    assert [tv.value for tv in profiles[0].top_values] == ["b", "a"]


def test_parallel_profiling_matches_serial():
    rows = [{"a": str(i), "b": str(i % 3), "c": f"w{i % 4}"} for i in range(30)]
    types = {"a": ColumnType.NUMERIC, "b": ColumnType.CATEGORICAL, "c": ColumnType.CATEGORICAL}
    serial = _profile(rows, list(types), types, Settings(PROFILER_MAX_WORKERS=1))
    parallel = _profile(rows, list(types), types, Settings(PROFILER_MAX_WORKERS=4))
    assert serial == parallel
