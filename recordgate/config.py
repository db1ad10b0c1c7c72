"""
Configuration and environment handling for recordgate.
"""
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables
load_dotenv()


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


class ThresholdConfig(BaseModel):
    """Verification and matching thresholds."""
    page_pass_ratio: float = Field(
        default_factory=lambda: _env_float("RECORDGATE_PAGE_PASS_RATIO", 0.80),
        description="Share of fields found on the source page needed to pass",
    )
    page_uncertain_ratio: float = Field(
        default_factory=lambda: _env_float("RECORDGATE_PAGE_UNCERTAIN_RATIO", 0.60),
        description="Below this share the source page check fails outright",
    )
    cross_source_pass_ratio: float = Field(
        default_factory=lambda: _env_float("RECORDGATE_CROSS_SOURCE_PASS_RATIO", 0.70)
    )
    cross_source_uncertain_ratio: float = Field(
        default_factory=lambda: _env_float("RECORDGATE_CROSS_SOURCE_UNCERTAIN_RATIO", 0.50)
    )
    profile_match_ratio: float = Field(
        default=0.85, description="Similarity needed for a profile field to count as matching"
    )
    duration_tolerance_years: float = Field(
        default=1.0, description="Allowed gap between claimed and computed experience"
    )
    fuzzy_threshold: float = Field(
        default_factory=lambda: _env_float("RECORDGATE_FUZZY_THRESHOLD", 0.85),
        description="Per-field similarity needed for a fuzzy duplicate",
    )
    iqr_multiplier: float = Field(default=1.5)
    min_outlier_samples: int = Field(default=4)
    min_description_length: int = Field(default=10)
    uniformity_min_batch: int = Field(
        default_factory=lambda: _env_int("RECORDGATE_UNIFORMITY_MIN_BATCH", 5)
    )
    uniformity_shape_share: float = Field(
        default=0.9, description="Share of records sharing one value shape that counts as uniform"
    )


class NormalizationConfig(BaseModel):
    """Defaults for value normalization."""
    default_phone_region: str = Field(
        default_factory=lambda: os.getenv("RECORDGATE_PHONE_REGION", "US")
    )
    home_region: str = Field(
        default_factory=lambda: os.getenv("RECORDGATE_HOME_REGION", "United States")
    )
    dayfirst: bool = Field(
        default_factory=lambda: os.getenv("RECORDGATE_DAYFIRST", "false").lower() == "true",
        description="Read ambiguous dates like 03/04/2020 as day-first",
    )


class FetchConfig(BaseModel):
    """Evidence fetching configuration (adapter layer)."""
    timeout_seconds: float = Field(
        default_factory=lambda: _env_float("RECORDGATE_FETCH_TIMEOUT", 15.0)
    )
    max_attempts: int = Field(
        default_factory=lambda: _env_int("RECORDGATE_FETCH_ATTEMPTS", 3)
    )
    user_agent: str = Field(
        default_factory=lambda: os.getenv(
            "RECORDGATE_USER_AGENT", "recordgate/1.0 (+evidence-fetcher)"
        )
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default_factory=lambda: os.getenv("RECORDGATE_LOG_LEVEL", "INFO"))
    format: str = Field(default="%(asctime)s %(levelname)s %(name)s: %(message)s")


class Config(BaseModel):
    """Main configuration."""
    thresholds: ThresholdConfig = Field(default_factory=ThresholdConfig)
    normalization: NormalizationConfig = Field(default_factory=NormalizationConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# Singleton config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the singleton config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def configure_logging(config: Optional[Config] = None) -> None:
    """Apply the configured log level and format to the root logger."""
    config = config or get_config()
    logging.basicConfig(
        level=getattr(logging, config.logging.level.upper(), logging.INFO),
        format=config.logging.format,
    )
