"""Aggregation engine configuration.

All settings can be overridden via ``ANALYTICS_*`` environment variables
(e.g., ``ANALYTICS_ROLLUP_CUTOFF=05:00``). List values are read as JSON
(``ANALYTICS_PRIMARY_PLATFORMS='["openai","claude"]'``).
"""

from datetime import time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.analytics.periods import RollupCutoff

MAX_CITATION_SOURCES_LIMIT = 100


class AnalyticsConfig(BaseSettings):
    """Configuration for the mention/citation aggregation engine."""

    model_config = SettingsConfigDict(
        env_prefix="ANALYTICS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    rollup_cutoff: time = time(4, 30)
    """Time of day after which the nightly rollup has run."""

    reference_timezone: str = "UTC"
    """Timezone in which calendar days and the cutoff are evaluated."""

    default_range_days: int = Field(default=30, ge=1, le=366)
    """Length of the default window, which ends yesterday."""

    store_timeout_seconds: float = Field(default=10.0, gt=0.0)
    """Per-read timeout at the store boundary."""

    supported_platforms: list[str] = Field(
        default_factory=lambda: ["openai", "gemini", "claude", "perplexity"]
    )
    """Platform codes the stores may be queried for."""

    primary_platforms: list[str] = Field(
        default_factory=lambda: ["openai", "gemini"]
    )
    """Platforms shown in breakdowns, overview and evolution."""

    share_precision: int = Field(default=1, ge=0, le=6)
    """Decimal places for shares and trends in serialized reports."""

    citation_sources_limit: int = Field(default=10, ge=1, le=MAX_CITATION_SOURCES_LIMIT)
    """Default number of domains returned per platform."""

    brand_fallback_name: str = "Your Brand"
    """Display name for the brand when the project has none."""

    @field_validator("supported_platforms", "primary_platforms")
    @classmethod
    def _normalize_platforms(cls, value: list[str]) -> list[str]:
        normalized = [p.strip().lower() for p in value if p.strip()]
        if not normalized:
            raise ValueError("platform list must not be empty")
        return normalized

    @field_validator("reference_timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone {value!r}") from e
        return value

    @model_validator(mode="after")
    def _primary_within_supported(self) -> "AnalyticsConfig":
        unknown = set(self.primary_platforms) - set(self.supported_platforms)
        if unknown:
            raise ValueError(
                f"primary_platforms {sorted(unknown)} are not in supported_platforms"
            )
        return self

    @property
    def tz(self) -> ZoneInfo:
        """Reference timezone as a tzinfo."""
        return ZoneInfo(self.reference_timezone)

    @property
    def cutoff(self) -> RollupCutoff:
        """The rollup cutoff as a value object."""
        return RollupCutoff(at=self.rollup_cutoff, tz=self.tz)
