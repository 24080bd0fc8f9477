"""
Threshold-based deviation detector.

Compares one day's sample against the user's baseline and emits at most one
anomaly per metric. Deterministic: the same sample, baseline and detection
time always yield the same anomalies, ids included.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, NamedTuple, Optional, Tuple

from healthwatch.core.config import AnomalyThresholds, config
from healthwatch.core.exceptions import PreconditionViolation
from healthwatch.metrics.schema import MetricSample, MetricType

from .schema import Anomaly, AnomalyCategory, Direction, Severity, UserBaseline, anomaly_id_for
from .scoring import SeverityClassifier

logger = logging.getLogger(__name__)


class CategoryRule(NamedTuple):
    category: AnomalyCategory
    concerning: bool


# (metric, direction) -> how the deviation reads; independent of the numeric test.
CATEGORY_TABLE: Dict[Tuple[MetricType, Direction], CategoryRule] = {
    (MetricType.STEPS, Direction.LOW): CategoryRule(AnomalyCategory.LOW_ACTIVITY, True),
    (MetricType.STEPS, Direction.HIGH): CategoryRule(AnomalyCategory.HIGH_ACTIVITY, False),
    (MetricType.DISTANCE, Direction.LOW): CategoryRule(AnomalyCategory.LOW_ACTIVITY, True),
    (MetricType.DISTANCE, Direction.HIGH): CategoryRule(AnomalyCategory.HIGH_ACTIVITY, False),
    (MetricType.CALORIES, Direction.LOW): CategoryRule(AnomalyCategory.LOW_ENERGY_EXPENDITURE, True),
    (MetricType.CALORIES, Direction.HIGH): CategoryRule(AnomalyCategory.HIGH_ENERGY_EXPENDITURE, False),
    (MetricType.SCREEN_TIME, Direction.LOW): CategoryRule(AnomalyCategory.REDUCED_SCREEN_TIME, False),
    (MetricType.SCREEN_TIME, Direction.HIGH): CategoryRule(AnomalyCategory.EXCESSIVE_SCREEN_TIME, True),
    (MetricType.SLEEP, Direction.LOW): CategoryRule(AnomalyCategory.IRREGULAR_SLEEP, True),
    (MetricType.SLEEP, Direction.HIGH): CategoryRule(AnomalyCategory.IRREGULAR_SLEEP, True),
    (MetricType.HEART_RATE, Direction.LOW): CategoryRule(AnomalyCategory.LOW_HEART_RATE, True),
    (MetricType.HEART_RATE, Direction.HIGH): CategoryRule(AnomalyCategory.ELEVATED_HEART_RATE, True),
    (MetricType.HRV, Direction.LOW): CategoryRule(AnomalyCategory.HIGH_STRESS, True),
    (MetricType.HRV, Direction.HIGH): CategoryRule(AnomalyCategory.ELEVATED_HRV, False),
    (MetricType.MOOD, Direction.LOW): CategoryRule(AnomalyCategory.LOW_MOOD, True),
    (MetricType.MOOD, Direction.HIGH): CategoryRule(AnomalyCategory.ELEVATED_MOOD, False),
}

_MINUTE_METRICS = {MetricType.SCREEN_TIME, MetricType.SLEEP}


def format_value(metric: MetricType, value: float) -> str:
    """Render a metric value the way it is shown to a person."""
    if metric in _MINUTE_METRICS:
        minutes = int(round(value))
        return f"{minutes // 60}h {minutes % 60}m"
    if metric == MetricType.STEPS:
        return f"{int(round(value))} steps"
    if metric == MetricType.DISTANCE:
        return f"{value / 1000:.1f} km"
    if metric == MetricType.CALORIES:
        return f"{int(round(value))} kcal"
    if metric == MetricType.HEART_RATE:
        return f"{int(round(value))} bpm"
    if metric == MetricType.HRV:
        return f"{value:.0f} ms"
    return f"{value:.0f}/10"


def build_message(
    metric: MetricType,
    category: AnomalyCategory,
    direction: Direction,
    actual: float,
    expected_min: float,
    expected_max: float,
) -> str:
    shown = format_value(metric, actual)
    if expected_min == expected_max:
        usual = f"usually {format_value(metric, expected_min)}"
    else:
        usual = f"usual range {format_value(metric, expected_min)} - {format_value(metric, expected_max)}"

    if category == AnomalyCategory.LOW_ACTIVITY:
        return f"Your activity ({shown}) is significantly below your {usual}."
    if category == AnomalyCategory.HIGH_ACTIVITY:
        return f"Your activity ({shown}) is well above your {usual}."
    if category == AnomalyCategory.EXCESSIVE_SCREEN_TIME:
        return f"Your screen time ({shown}) is higher than usual ({usual})."
    if category == AnomalyCategory.IRREGULAR_SLEEP:
        side = "shorter" if direction == Direction.LOW else "longer"
        return f"Your sleep duration ({shown}) is {side} than your normal pattern ({usual})."
    if category == AnomalyCategory.ELEVATED_HEART_RATE:
        return f"Your average heart rate ({shown}) is elevated compared to your baseline ({usual})."
    if category == AnomalyCategory.HIGH_STRESS:
        return f"Your HRV ({shown}) indicates elevated stress levels. Consider taking a break."
    if category == AnomalyCategory.LOW_MOOD:
        return f"Your mood ({shown}) is lower than usual ({usual})."
    side = "lower" if direction == Direction.LOW else "higher"
    return f"Your {metric.value.lower().replace('_', ' ')} ({shown}) is {side} than usual ({usual})."


@dataclass
class ThresholdAnomalyDetector:
    """
    Deviation-count detector with a zero-variance special case.

    - std > floor: flag when |z| > threshold_std_dev (strict)
    - std <= floor: flag when |value - mean| exceeds a per-metric tolerance
    """

    thresholds: AnomalyThresholds = field(default_factory=lambda: config.anomaly.thresholds)

    def __post_init__(self) -> None:
        self._classifier = SeverityClassifier(self.thresholds)

    def detect(
        self,
        sample: MetricSample,
        baseline: UserBaseline,
        detected_at: Optional[datetime] = None,
    ) -> List[Anomaly]:
        if not baseline.is_valid:
            raise PreconditionViolation(
                f"Baseline for user={baseline.user_id} has {baseline.sample_count} samples; "
                "detection requires a valid baseline"
            )
        if baseline.user_id != sample.user_id:
            raise PreconditionViolation(
                f"Baseline user={baseline.user_id} does not match sample user={sample.user_id}"
            )

        detected_at = detected_at or datetime.now(timezone.utc)
        anomalies: List[Anomaly] = []

        for metric in baseline.metrics():
            actual = sample.value_for(metric)
            if actual is None:
                continue
            anomaly = self._check_metric(sample, baseline, metric, actual, detected_at)
            if anomaly is not None:
                anomalies.append(anomaly)

        return anomalies

    def _check_metric(
        self,
        sample: MetricSample,
        baseline: UserBaseline,
        metric: MetricType,
        actual: float,
        detected_at: datetime,
    ) -> Optional[Anomaly]:
        mean = baseline.per_metric_mean[metric]
        std = baseline.per_metric_std_dev[metric]
        tolerance = self._tolerance(metric, mean)

        # float noise in an otherwise flat history counts as no variance
        if std <= max(self.thresholds.std_floor, tolerance / self.thresholds.threshold_std_dev):
            return self._check_zero_variance(sample, metric, actual, mean, tolerance, detected_at)

        z = (actual - mean) / std
        if abs(z) <= self.thresholds.threshold_std_dev:
            return None

        expected_min, expected_max = baseline.expected_range(metric, self.thresholds.threshold_std_dev)
        if expected_min <= actual <= expected_max:
            # z rounding put the value on the boundary
            return None

        direction = Direction.HIGH if z > 0 else Direction.LOW
        rule = CATEGORY_TABLE[(metric, direction)]
        severity = self._classifier.classify(z) if rule.concerning else Severity.INFO

        logger.debug("%s flagged for user=%s: z=%.2f severity=%s", metric.value, sample.user_id, z, severity.value)
        return self._make_anomaly(sample, metric, rule.category, direction, actual, expected_min, expected_max, z, severity, detected_at)

    def _tolerance(self, metric: MetricType, mean: float) -> float:
        return max(
            abs(mean) * self.thresholds.zero_variance_relative_tolerance,
            self.thresholds.zero_variance_floors.get(metric.value, 0.0),
        )

    def _check_zero_variance(
        self,
        sample: MetricSample,
        metric: MetricType,
        actual: float,
        mean: float,
        tolerance: float,
        detected_at: datetime,
    ) -> Optional[Anomaly]:
        if abs(actual - mean) <= tolerance:
            return None

        direction = Direction.HIGH if actual > mean else Direction.LOW
        rule = CATEGORY_TABLE[(metric, direction)]
        logger.debug("%s flagged for user=%s with no historical variance", metric.value, sample.user_id)
        return self._make_anomaly(sample, metric, rule.category, direction, actual, mean, mean, None, Severity.WARNING, detected_at)

    def _make_anomaly(
        self,
        sample: MetricSample,
        metric: MetricType,
        category: AnomalyCategory,
        direction: Direction,
        actual: float,
        expected_min: float,
        expected_max: float,
        z_score: Optional[float],
        severity: Severity,
        detected_at: datetime,
    ) -> Anomaly:
        return Anomaly(
            id=anomaly_id_for(sample.user_id, sample.date, metric),
            user_id=sample.user_id,
            metric_type=metric,
            category=category,
            sample_date=sample.date,
            detected_at=detected_at,
            actual_value=actual,
            expected_min=expected_min,
            expected_max=expected_max,
            z_score=z_score,
            severity=severity,
            message=build_message(metric, category, direction, actual, expected_min, expected_max),
        )
