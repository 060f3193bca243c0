import pytest
from pydantic import ValidationError

from datalens.config import Settings
from datalens.models.analysis import Cardinality, NullPattern, TextColumnInfo
from datalens.services.quality import QualitySignals, score_quality


def test_clean_dataset_scores_100(settings):
    breakdown = score_quality(QualitySignals(raw_row_count=50), settings)
    assert breakdown.score == 100
    assert all(value == 0 for value in breakdown.penalties.values())


def test_missingness_alone_cannot_go_below_40(settings):
    assert score_quality(QualitySignals(missing_percent=100.0), settings).score == 40


def test_duplicate_penalty(settings):
    signals = QualitySignals(raw_row_count=100, duplicates_removed=10)
    breakdown = score_quality(signals, settings)
    assert breakdown.penalties["duplicates"] == 5.0
    assert breakdown.score == 95


def test_parsing_error_penalty_uses_attempted_rows(settings):
    signals = QualitySignals(raw_row_count=90, parsing_errors=10)
    assert score_quality(signals, settings).score == 90


def test_column_penalties_are_capped(settings):
    signals = QualitySignals(
        raw_row_count=10,
        high_missing_columns=10,
        inconsistent_columns=10,
        constant_columns=10,
    )
    breakdown = score_quality(signals, settings)
    assert breakdown.penalties["high_missing_columns"] == 15.0
    assert breakdown.penalties["inconsistent_formats"] == 15.0
    assert breakdown.penalties["constant_columns"] == 10.0
    assert breakdown.score == 60


def test_worst_case_is_clamped_to_zero(settings):
    signals = QualitySignals(
        missing_percent=100.0,
        raw_row_count=10,
        duplicates_removed=9,
        high_missing_columns=5,
        inconsistent_columns=5,
        constant_columns=5,
        parsing_errors=100,
    )
    breakdown = score_quality(signals, settings)
    assert breakdown.score == 0
    assert isinstance(breakdown.score, int)


def test_score_floor_setting():
    settings = Settings(QUALITY_SCORE_FLOOR=10)
    signals = QualitySignals(missing_percent=100.0, raw_row_count=10, duplicates_removed=9, parsing_errors=100)
    assert score_quality(signals, settings).score == 10


def test_score_is_rounded(settings):
    # 0.6 * 2.5 = 1.5 penalty
    assert score_quality(QualitySignals(missing_percent=2.5), settings).score == 98


def test_caps_above_60_are_rejected():
    with pytest.raises(ValidationError):
        Settings(QUALITY_MISSING_CAP=70)


def test_collect_signals_from_columns(settings):
    def column(name, missing_percent, cardinality, inconsistent=0):
        return TextColumnInfo(
            name=name,
            unique_count=1,
            missing_count=0,
            missing_percent=missing_percent,
            cardinality=cardinality,
            null_pattern=NullPattern.NONE,
            inconsistent_formats=inconsistent,
        )

    columns = [
        column("a", 50.0, Cardinality.CONSTANT),
        column("b", 10.0, Cardinality.LOW, inconsistent=3),
        column("c", 25.0, Cardinality.HIGH),
    ]
    signals = QualitySignals.collect(
        columns, missing_percent=28.33, raw_row_count=6, duplicates_removed=0, parsing_errors=0, settings=settings,
    )
    assert signals.high_missing_columns == 2
    assert signals.inconsistent_columns == 1
    assert signals.constant_columns == 1
