"""
Canonical daily metric schema for the anomaly engine.

This module defines the standardized representation of one user's
measurements for one calendar day. All collection sources are converted to
this schema upstream before baseline estimation or anomaly detection.

Design rationale:
- One sample per (user_id, date); corrections replace, never mutate
- Heart rate and HRV use 0 for "not recorded"
- Mood is optional and self-reported
"""

from datetime import date
from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class MetricType(str, Enum):
    """
    Metric kinds tracked per day.

    Values are stable identifiers used as config keys and in persisted records.
    """
    STEPS = "STEPS"
    DISTANCE = "DISTANCE"
    CALORIES = "CALORIES"
    SCREEN_TIME = "SCREEN_TIME"
    SLEEP = "SLEEP"
    HEART_RATE = "HEART_RATE"
    HRV = "HRV"
    MOOD = "MOOD"


# Metrics whose 0 value is a real measurement are not listed here.
DEFAULT_MISSING_WHEN_ZERO = frozenset({MetricType.HEART_RATE, MetricType.HRV})

_FIELD_BY_METRIC: Dict[MetricType, str] = {
    MetricType.STEPS: "steps",
    MetricType.DISTANCE: "distance_meters",
    MetricType.CALORIES: "calories_burned",
    MetricType.SCREEN_TIME: "screen_time_minutes",
    MetricType.SLEEP: "sleep_duration_minutes",
    MetricType.HEART_RATE: "average_heart_rate",
    MetricType.HRV: "average_hrv",
    MetricType.MOOD: "mood_score",
}


class MetricSample(BaseModel):
    """
    One day of measurements for one user.
    
    Attributes:
        user_id: Owner of the sample
        date: Calendar date the sample covers (unique per user)
        steps: Step count
        distance_meters: Distance travelled
        calories_burned: Active energy
        screen_time_minutes: Device screen time
        sleep_duration_minutes: Sleep duration (at most one day)
        average_heart_rate: Mean heart rate in bpm, 0 if unavailable
        average_hrv: Mean HRV (SDNN) in ms, 0 if unavailable
        mood_score: Self-reported mood 1-10, None if not logged
    
    Notes:
        - Instances are frozen; a correction is a new sample with the same key
        - value_for() hides "not recorded" zeros from statistics
    """
    
    model_config = ConfigDict(frozen=True)
    
    user_id: str = Field(..., min_length=1, max_length=128)
    date: date
    
    steps: int = Field(0, ge=0)
    distance_meters: float = Field(0.0, ge=0.0)
    calories_burned: float = Field(0.0, ge=0.0)
    screen_time_minutes: int = Field(0, ge=0)
    sleep_duration_minutes: int = Field(0, ge=0, le=1440)
    average_heart_rate: float = Field(0.0, ge=0.0, description="bpm, 0 if unavailable")
    average_hrv: float = Field(0.0, ge=0.0, description="ms, 0 if unavailable")
    mood_score: Optional[int] = Field(None, ge=1, le=10)
    
    @property
    def key(self) -> Tuple[str, date]:
        """Unique identity of the sample."""
        return (self.user_id, self.date)
    
    def value_for(
        self,
        metric: MetricType,
        missing_when_zero: frozenset = DEFAULT_MISSING_WHEN_ZERO,
    ) -> Optional[float]:
        """
        Return the recorded value for a metric, or None if it was not recorded.
        
        Args:
            metric: Metric to read
            missing_when_zero: Metrics whose 0 means "not recorded"
        """
        raw = getattr(self, _FIELD_BY_METRIC[metric])
        if raw is None:
            return None
        if raw == 0 and metric in missing_when_zero:
            return None
        return float(raw)
    
    def metric_values(
        self,
        missing_when_zero: frozenset = DEFAULT_MISSING_WHEN_ZERO,
    ) -> Dict[MetricType, float]:
        """All recorded metric values, in MetricType order."""
        values: Dict[MetricType, float] = {}
        for metric in MetricType:
            value = self.value_for(metric, missing_when_zero)
            if value is not None:
                values[metric] = value
        return values


def field_name_for(metric: MetricType) -> str:
    """Name of the MetricSample attribute carrying a metric."""
    return _FIELD_BY_METRIC[metric]
