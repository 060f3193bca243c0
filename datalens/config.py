"""
DataLens Configuration - analysis policy and server settings

Every threshold used by the analysis pipeline lives here as a named,
overridable setting:
- Ingestion: null tokens, upload limits, delimiter sniffing
- Type inference: sample size and match thresholds
- Profiling: top-K, outlier fence, cardinality and null-pattern thresholds
- Quality scoring: one weight and one cap per penalty signal

Set via environment variables or .env file.
"""
from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic import field_validator, model_validator
from functools import lru_cache
from typing import Literal


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # App
    APP_NAME: str = "DataLens"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOGS_DIR: Path = Path("./logs")

    # ===================
    # Ingestion
    # ===================
    NULL_VALUES: list[str] = ["", "NA", "N/A", "null", "NULL", "None", "nan", "NaN", "."]
    CSV_ENCODING: str = "utf-8-sig"
    DELIMITER_SAMPLE_BYTES: int = 8192

    # Upload limits
    MAX_UPLOAD_SIZE_MB: int = 50
    ALLOWED_EXTENSIONS: set[str] = {".csv", ".tsv", ".txt", ".xlsx", ".xlsm", ".json", ".jsonl", ".ndjson"}

    # API connector
    CONNECTOR_TIMEOUT_SECONDS: float = 30.0
    CONNECTOR_MAX_PAGES: int = 10

    # ===================
    # Type inference
    # ===================
    INFERENCE_SAMPLE_SIZE: int = 1000  # rows examined per column
    TYPE_MATCH_THRESHOLD: float = 0.9  # share of values that must parse as date/number
    ID_UNIQUE_RATIO: float = 0.9
    CATEGORICAL_MAX_UNIQUE_RATIO: float = 0.5
    CATEGORICAL_MAX_DISTINCT: int = 20
    TEXT_MIN_AVG_LENGTH: int = 50

    # ===================
    # Profiling
    # ===================
    TOP_K_VALUES: int = 20
    OUTLIER_IQR_MULTIPLIER: float = 1.5
    CARDINALITY_LOW_RATIO: float = 0.05
    CARDINALITY_MEDIUM_RATIO: float = 0.5
    NULL_PATTERN_Z_THRESHOLD: float = 3.0
    NULL_PATTERN_MIN_PERIODIC: int = 3
    PROFILER_MAX_WORKERS: int = 1  # >1 profiles columns in a thread pool

    # ===================
    # Quality scoring
    # ===================
    HIGH_MISSING_PERCENT: float = 20.0
    QUALITY_SCORE_FLOOR: int = 0

    # Penalty per percent of missing cells
    QUALITY_MISSING_WEIGHT: float = 0.6
    QUALITY_MISSING_CAP: float = 60.0
    # Penalty per percent of duplicate rows
    QUALITY_DUPLICATE_WEIGHT: float = 0.5
    QUALITY_DUPLICATE_CAP: float = 25.0
    # Penalty per column
    QUALITY_HIGH_MISSING_COLUMN_PENALTY: float = 5.0
    QUALITY_HIGH_MISSING_COLUMN_CAP: float = 15.0
    QUALITY_INCONSISTENT_COLUMN_PENALTY: float = 3.0
    QUALITY_INCONSISTENT_COLUMN_CAP: float = 15.0
    QUALITY_CONSTANT_COLUMN_PENALTY: float = 2.0
    QUALITY_CONSTANT_COLUMN_CAP: float = 10.0
    # Penalty per percent of rows that failed to parse
    QUALITY_PARSING_ERROR_WEIGHT: float = 1.0
    QUALITY_PARSING_ERROR_CAP: float = 20.0

    # ===================
    # CORS
    # ===================
    # Comma-separated in .env, parsed as list
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def max_upload_bytes(self) -> int:
        """Max upload size in bytes"""
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    @property
    def null_tokens(self) -> frozenset[str]:
        """Null tokens as a set for membership tests"""
        return frozenset(self.NULL_VALUES)

    @field_validator("LOGS_DIR", mode="before")
    @classmethod
    def ensure_path(cls, v):
        """Convert string to Path"""
        return Path(v) if isinstance(v, str) else v

    @field_validator("TYPE_MATCH_THRESHOLD", "ID_UNIQUE_RATIO", "CATEGORICAL_MAX_UNIQUE_RATIO",
                     "CARDINALITY_LOW_RATIO", "CARDINALITY_MEDIUM_RATIO")
    @classmethod
    def ensure_ratio(cls, v: float) -> float:
        """Ratios must lie in [0, 1]"""
        if not 0.0 <= v <= 1.0:
            raise ValueError("ratio settings must be between 0 and 1")
        return v

    @model_validator(mode="after")
    def ensure_penalty_caps(self):
        """No single penalty may push the score under 40 on its own"""
        caps = [
            self.QUALITY_MISSING_CAP,
            self.QUALITY_DUPLICATE_CAP,
            self.QUALITY_HIGH_MISSING_COLUMN_CAP,
            self.QUALITY_INCONSISTENT_COLUMN_CAP,
            self.QUALITY_CONSTANT_COLUMN_CAP,
            self.QUALITY_PARSING_ERROR_CAP,
        ]
        if any(cap < 0 or cap > 60 for cap in caps):
            raise ValueError("quality penalty caps must be between 0 and 60")
        if self.INFERENCE_SAMPLE_SIZE < 1:
            raise ValueError("INFERENCE_SAMPLE_SIZE must be positive")
        return self

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance"""
    return Settings()


settings = get_settings()
