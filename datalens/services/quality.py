"""
Dataset quality scoring.

The score starts at 100 and loses one capped penalty per signal. Weights
and caps come from Settings so the policy can be tuned without touching
this module.
"""
from typing import Dict, Optional, Sequence

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from datalens.config import Settings, get_settings
from datalens.models.analysis import Cardinality, ColumnInfo


class QualitySignals(BaseModel):
    """Dataset-level inputs to the quality score"""
    model_config = ConfigDict(frozen=True)

    missing_percent: float = Field(ge=0, le=100, default=0.0)
    raw_row_count: int = Field(ge=0, default=0)
    duplicates_removed: int = Field(ge=0, default=0)
    high_missing_columns: int = Field(ge=0, default=0)
    inconsistent_columns: int = Field(ge=0, default=0)
    constant_columns: int = Field(ge=0, default=0)
    parsing_errors: int = Field(ge=0, default=0)

    @property
    def duplicate_percent(self) -> float:
        if not self.raw_row_count:
            return 0.0
        return self.duplicates_removed / self.raw_row_count * 100

    @property
    def parsing_error_percent(self) -> float:
        attempted = self.raw_row_count + self.parsing_errors
        if not attempted:
            return 0.0
        return self.parsing_errors / attempted * 100

    @classmethod
    def collect(
        cls,
        column_info: Sequence[ColumnInfo],
        *,
        missing_percent: float,
        raw_row_count: int,
        duplicates_removed: int,
        parsing_errors: int,
        settings: Optional[Settings] = None,
    ) -> "QualitySignals":
        """Derive the column-count signals from profiled columns"""
        settings = settings or get_settings()
        return cls(
            missing_percent=missing_percent,
            raw_row_count=raw_row_count,
            duplicates_removed=duplicates_removed,
            high_missing_columns=sum(
                1 for info in column_info if info.missing_percent > settings.HIGH_MISSING_PERCENT
            ),
            inconsistent_columns=sum(1 for info in column_info if info.inconsistent_formats > 0),
            constant_columns=sum(
                1 for info in column_info if info.cardinality == Cardinality.CONSTANT.value
            ),
            parsing_errors=parsing_errors,
        )


class QualityBreakdown(BaseModel):
    """Final score plus the penalty taken for each signal"""
    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=100)
    penalties: Dict[str, float]


def _capped(value: float, cap: float) -> float:
    return min(max(value, 0.0), cap)


def score_quality(signals: QualitySignals, settings: Optional[Settings] = None) -> QualityBreakdown:
    """Combine quality signals into an integer score in [0, 100]"""
    settings = settings or get_settings()

    penalties = {
        "missing": _capped(
            settings.QUALITY_MISSING_WEIGHT * signals.missing_percent,
            settings.QUALITY_MISSING_CAP,
        ),
        "duplicates": _capped(
            settings.QUALITY_DUPLICATE_WEIGHT * signals.duplicate_percent,
            settings.QUALITY_DUPLICATE_CAP,
        ),
        "high_missing_columns": _capped(
            settings.QUALITY_HIGH_MISSING_COLUMN_PENALTY * signals.high_missing_columns,
            settings.QUALITY_HIGH_MISSING_COLUMN_CAP,
        ),
        "inconsistent_formats": _capped(
            settings.QUALITY_INCONSISTENT_COLUMN_PENALTY * signals.inconsistent_columns,
            settings.QUALITY_INCONSISTENT_COLUMN_CAP,
        ),
        "constant_columns": _capped(
            settings.QUALITY_CONSTANT_COLUMN_PENALTY * signals.constant_columns,
            settings.QUALITY_CONSTANT_COLUMN_CAP,
        ),
        "parsing_errors": _capped(
            settings.QUALITY_PARSING_ERROR_WEIGHT * signals.parsing_error_percent,
            settings.QUALITY_PARSING_ERROR_CAP,
        ),
    }

    raw_score = 100.0 - sum(penalties.values())
    score = int(round(min(max(raw_score, float(settings.QUALITY_SCORE_FLOOR), 0.0), 100.0)))
    logger.debug(f"Quality score {score} (penalties: {penalties})")
    return QualityBreakdown(score=score, penalties={k: round(v, 2) for k, v in penalties.items()})
