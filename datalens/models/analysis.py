"""
Analysis models - the single artifact shared by every consumer

All models are frozen and serialise to plain JSON with camelCase keys
(``DatasetAnalysis.to_dict()``), which is the representation stored and
sent to collaborating services.
"""
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


Row = dict[str, Any]


class ColumnType(str, Enum):
    """Semantic column types, decided once by the type inferencer."""
    NUMERIC = "numeric"
    CATEGORICAL = "categorical"
    DATETIME = "datetime"
    TEXT = "text"
    ID = "id"


class Cardinality(str, Enum):
    """Distinct-value buckets relative to row count."""
    CONSTANT = "constant"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNIQUE = "unique"


class NullPattern(str, Enum):
    """Where missing values sit within a column."""
    NONE = "none"
    RANDOM = "random"
    LEADING = "leading"
    TRAILING = "trailing"
    PERIODIC = "periodic"


class AnalysisModel(BaseModel):
    """Base for wire models: immutable, camelCase on the wire."""
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe dict with camelCase keys"""
        return self.model_dump(mode="json", by_alias=True)


class ColumnStats(AnalysisModel):
    """Descriptive statistics for a numeric column"""
    min: float
    max: float
    mean: float
    median: float
    q1: float
    q3: float
    iqr: float
    outlier_count: int = Field(ge=0)

    @model_validator(mode="after")
    def check_order(self):
        if not (self.min <= self.q1 <= self.median <= self.q3 <= self.max):
            raise ValueError("expected min <= q1 <= median <= q3 <= max")
        return self


class TopValue(AnalysisModel):
    """Frequency entry for a categorical value"""
    value: str
    count: int = Field(ge=1)


class DateRange(AnalysisModel):
    """Earliest and latest timestamp (ISO 8601)"""
    min: str
    max: str


class ColumnInfoBase(AnalysisModel):
    """Fields shared by every column profile"""
    name: str
    unique_count: int = Field(ge=0)
    missing_count: int = Field(ge=0)
    missing_percent: float = Field(ge=0, le=100)
    cardinality: Cardinality
    null_pattern: NullPattern
    inconsistent_formats: int = Field(ge=0, default=0)


class NumericColumnInfo(ColumnInfoBase):
    type: Literal["numeric"] = "numeric"
    stats: ColumnStats


class CategoricalColumnInfo(ColumnInfoBase):
    type: Literal["categorical"] = "categorical"
    top_values: list[TopValue] = Field(default_factory=list)


class DatetimeColumnInfo(ColumnInfoBase):
    type: Literal["datetime"] = "datetime"
    date_range: Optional[DateRange] = None


class TextColumnInfo(ColumnInfoBase):
    type: Literal["text"] = "text"


class IdColumnInfo(ColumnInfoBase):
    type: Literal["id"] = "id"


ColumnInfo = Annotated[
    Union[NumericColumnInfo, CategoricalColumnInfo, DatetimeColumnInfo, TextColumnInfo, IdColumnInfo],
    Field(discriminator="type"),
]


class DatasetAnalysis(AnalysisModel):
    """
    Result of one ``analyze`` call.

    ``rows``/``columns`` describe the cleaned shape, ``raw_row_count`` the
    shape before cleaning. ``column_names`` carries the original column order.
    """
    rows: int = Field(ge=0)
    columns: int = Field(ge=0)
    column_names: list[str]
    raw_row_count: int = Field(ge=0)
    duplicates_removed: int = Field(ge=0)
    missing_filled: int = Field(ge=0, default=0)
    missing_percent: float = Field(ge=0, le=100)
    quality_score: int = Field(ge=0, le=100)
    parsing_errors: int = Field(ge=0)
    date_range: Optional[DateRange] = None
    cleaned_data: list[Row]
    column_info: list[ColumnInfo]

    @model_validator(mode="after")
    def check_shape(self):
        if self.rows > self.raw_row_count:
            raise ValueError("cleaned row count cannot exceed raw row count")
        if len(self.column_names) != self.columns:
            raise ValueError("column_names must list every column")
        return self

    def column(self, name: str):
        """Look up a column profile by name"""
        for info in self.column_info:
            if info.name == name:
                return info
        raise KeyError(name)

    def columns_of_type(self, column_type: ColumnType) -> list[str]:
        """Column names of one type, in column order"""
        wanted = ColumnType(column_type).value
        return [info.name for info in self.column_info if info.type == wanted]


class CorrelationResult(AnalysisModel):
    """Symmetric Pearson matrix over an ordered list of columns"""
    columns: list[str]
    matrix: list[list[float]]

    @model_validator(mode="after")
    def check_square(self):
        size = len(self.columns)
        if len(self.matrix) != size or any(len(row) != size for row in self.matrix):
            raise ValueError("matrix must be square and match the column list")
        return self

    def value(self, left: str, right: str) -> float:
        """Coefficient for a pair of columns"""
        return self.matrix[self.columns.index(left)][self.columns.index(right)]
