from __future__ import annotations

"""Analytics configuration (recent window, trend rule, recommendation bands) using Pydantic."""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AnalyticsConfig(BaseModel):
    """Knobs for topic performance and recommendations.

    - recent_tests: how many latest tests count as "recent" (>=1)
    - trend_min_answers: recent answers needed before a trend is reported
    - trend_delta: score gap between recent and average that counts as a trend
    - weak_threshold: average score below which a topic is weak (0..10)
    - high_below / medium_below / low_below: recommendation priority bands
    """

    model_config = ConfigDict(frozen=True)

    recent_tests: int = Field(3, ge=1)
    trend_min_answers: int = Field(3, ge=1)
    trend_delta: float = Field(1.0, ge=0)
    weak_threshold: float = Field(5.0, ge=0, le=10)
    high_below: float = Field(3.0, ge=0, le=10)
    medium_below: float = Field(5.0, ge=0, le=10)
    low_below: float = Field(7.0, ge=0, le=10)

    @model_validator(mode="after")
    def _ordered_bands(self) -> "AnalyticsConfig":
        if not (self.high_below <= self.medium_below <= self.low_below):
            raise ValueError("priority bands must satisfy high_below <= medium_below <= low_below")
        return self
