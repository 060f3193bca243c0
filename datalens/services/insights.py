"""
Plain-language summary sentences for a finished analysis.
"""
from typing import List, Optional

from datalens.config import Settings, get_settings
from datalens.models.analysis import ColumnType, DatasetAnalysis


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


def quality_band(score: int) -> str:
    if score >= 90:
        return "excellent"
    if score >= 70:
        return "good"
    return "poor"


def generate_insights(analysis: DatasetAnalysis, settings: Optional[Settings] = None) -> List[str]:
    """Short human-readable findings, most general first"""
    settings = settings or get_settings()
    insights = [f"Dataset contains {analysis.rows:,} rows across {analysis.columns} columns."]

    if analysis.duplicates_removed > 0:
        insights.append(f"{analysis.duplicates_removed:,} duplicate rows were detected and removed.")

    band = quality_band(analysis.quality_score)
    if band == "poor":
        insights.append(
            f"Data quality score is {analysis.quality_score}/100; consider reviewing data issues."
        )
    else:
        insights.append(f"{band.capitalize()} data quality score of {analysis.quality_score}/100.")

    categorical = [
        info for info in analysis.column_info
        if info.type == ColumnType.CATEGORICAL.value and info.top_values
    ]
    if categorical:
        info = categorical[0]
        top = info.top_values[0]
        insights.append(
            f'Top value in "{info.name}" is "{top.value}" with {top.count:,} occurrences.'
        )

    high_missing = [
        info.name for info in analysis.column_info
        if info.missing_percent > settings.HIGH_MISSING_PERCENT
    ]
    if high_missing:
        insights.append(
            f"{len(high_missing)} column(s) have >{settings.HIGH_MISSING_PERCENT:g}% missing values: "
            f"{', '.join(high_missing)}."
        )

    numeric = [info for info in analysis.column_info if info.type == ColumnType.NUMERIC.value]
    if numeric:
        stats = numeric[0].stats
        insights.append(
            f'"{numeric[0].name}" ranges from {_format_number(stats.min)} to '
            f"{_format_number(stats.max)} (avg: {stats.mean:.2f})."
        )

    with_outliers = [info for info in numeric if info.stats.outlier_count > 0]
    if with_outliers:
        total = sum(info.stats.outlier_count for info in with_outliers)
        insights.append(
            f"{total} potential outliers detected across {len(with_outliers)} numeric column(s)."
        )

    if analysis.date_range is not None:
        insights.append(
            f"Date range spans from {analysis.date_range.min} to {analysis.date_range.max}."
        )

    return insights
