"""
Schema definitions for baseline estimation and anomaly detection.

All anomaly outputs are deterministic and explainable. Each anomaly references
its observed value and the expected range derived from the user's baseline.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple
from uuid import NAMESPACE_URL, uuid5

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from healthwatch.metrics.schema import MetricType

MIN_BASELINE_DAYS = 7
THRESHOLD_STD_DEV = 2.0


class Severity(str, Enum):
    """Ordinal severity levels (INFO < WARNING < ALERT)."""

    INFO = "INFO"
    WARNING = "WARNING"
    ALERT = "ALERT"


class Direction(str, Enum):
    """Side of the baseline a value deviates to."""

    LOW = "low"
    HIGH = "high"


class AnomalyCategory(str, Enum):
    """Human-facing classification of a deviation."""

    LOW_ACTIVITY = "LOW_ACTIVITY"
    HIGH_ACTIVITY = "HIGH_ACTIVITY"
    LOW_ENERGY_EXPENDITURE = "LOW_ENERGY_EXPENDITURE"
    HIGH_ENERGY_EXPENDITURE = "HIGH_ENERGY_EXPENDITURE"
    EXCESSIVE_SCREEN_TIME = "EXCESSIVE_SCREEN_TIME"
    REDUCED_SCREEN_TIME = "REDUCED_SCREEN_TIME"
    IRREGULAR_SLEEP = "IRREGULAR_SLEEP"
    ELEVATED_HEART_RATE = "ELEVATED_HEART_RATE"
    LOW_HEART_RATE = "LOW_HEART_RATE"
    HIGH_STRESS = "HIGH_STRESS"
    ELEVATED_HRV = "ELEVATED_HRV"
    LOW_MOOD = "LOW_MOOD"
    ELEVATED_MOOD = "ELEVATED_MOOD"


class AnomalyState(str, Enum):
    """Acknowledgement lifecycle state."""

    NEW = "NEW"
    ACKNOWLEDGED = "ACKNOWLEDGED"


class FallbackReason(str, Enum):
    """Why the rule-based path produced (or skipped) a detection run."""

    NO_BASELINE = "no_baseline"
    ML_UNAVAILABLE = "ml_unavailable"
    ML_ERROR = "ml_error"
    ML_LOW_CONFIDENCE = "ml_low_confidence"


class UserBaseline(BaseModel):
    """
    Per-user reference statistics.

    Fields:
    - per_metric_mean / per_metric_std_dev: population statistics per metric
    - per_metric_count: recorded values behind each metric's statistics
    - sample_count: number of daily samples in the window
    - calculated_at: when the baseline was computed

    Replaced wholesale on recomputation, never partially updated.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    per_metric_mean: Dict[MetricType, float]
    per_metric_std_dev: Dict[MetricType, float]
    per_metric_count: Dict[MetricType, int] = Field(default_factory=dict)
    sample_count: int = Field(..., ge=0)
    calculated_at: datetime

    @field_validator("calculated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # naive timestamps are read as UTC so staleness checks never mix kinds
        return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value

    @field_validator("per_metric_std_dev")
    @classmethod
    def _non_negative_std(cls, value: Dict[MetricType, float]) -> Dict[MetricType, float]:
        negative = [m.value for m, s in value.items() if s < 0]
        if negative:
            raise ValueError(f"Standard deviation must be >= 0 for {negative}")
        return value

    @property
    def is_valid(self) -> bool:
        """True when enough days back the baseline for detection."""
        return self.sample_count >= MIN_BASELINE_DAYS

    def metrics(self) -> List[MetricType]:
        return [m for m in MetricType if m in self.per_metric_mean and m in self.per_metric_std_dev]

    def expected_range(
        self, metric: MetricType, threshold_std_dev: float = THRESHOLD_STD_DEV
    ) -> Optional[Tuple[float, float]]:
        """
        Range of values considered normal for a metric.

        The lower bound is clamped at 0 since every tracked metric is
        non-negative. Returns None if the metric is not in the baseline.
        """
        if metric not in self.per_metric_mean or metric not in self.per_metric_std_dev:
            return None
        mean = self.per_metric_mean[metric]
        margin = self.per_metric_std_dev[metric] * threshold_std_dev
        return max(mean - margin, 0.0), mean + margin


class InsufficientData(BaseModel):
    """
    Outcome of baseline computation when the window is too short.

    Not an error: it means "keep collecting".
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    sample_count: int = Field(..., ge=0)
    required: int = MIN_BASELINE_DAYS

    @property
    def missing_days(self) -> int:
        return max(self.required - self.sample_count, 0)


def anomaly_id_for(user_id: str, sample_date: date, metric: MetricType) -> str:
    """Stable id for the anomaly of one metric on one user-day."""
    return str(uuid5(NAMESPACE_URL, f"healthwatch:{user_id}:{sample_date.isoformat()}:{metric.value}"))


class Anomaly(BaseModel):
    """
    A single metric on a single day outside the user's expected range.

    Fields:
    - id: unique identifier
    - metric_type / category: what deviated and how it reads to a person
    - actual_value: observed value
    - expected_min / expected_max: normal range at detection time
    - z_score: deviation count (None for zero-variance detections)
    - severity: categorical severity
    - acknowledged: lifecycle flag, flipped only by the acknowledgement tracker
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    metric_type: MetricType
    category: AnomalyCategory
    sample_date: Optional[date] = None
    detected_at: datetime
    actual_value: float
    expected_min: float
    expected_max: float
    z_score: Optional[float] = None
    severity: Severity
    message: str = Field(..., min_length=1)
    acknowledged: bool = False

    @model_validator(mode="after")
    def _check_range(self) -> "Anomaly":
        if self.expected_min > self.expected_max:
            raise ValueError("expected_min must be <= expected_max")
        if self.expected_min <= self.actual_value <= self.expected_max:
            raise ValueError("actual_value must lie outside the expected range")
        return self

    @property
    def state(self) -> AnomalyState:
        return AnomalyState.ACKNOWLEDGED if self.acknowledged else AnomalyState.NEW

    @property
    def direction(self) -> Direction:
        return Direction.HIGH if self.actual_value > self.expected_max else Direction.LOW


class DetectionOutcome(BaseModel):
    """
    Transient result of one detection run.

    severity is the highest severity among the anomalies, INFO when none.
    """

    anomalies: List[Anomaly] = Field(default_factory=list)
    used_fallback: bool
    fallback_reason: Optional[str] = None
    severity: Severity = Severity.INFO

    @model_validator(mode="after")
    def _reason_with_fallback(self) -> "DetectionOutcome":
        if self.used_fallback and not self.fallback_reason:
            raise ValueError("fallback_reason is required when used_fallback is set")
        return self
