"""
Baseline estimation from a window of daily samples.

Computes per-metric arithmetic mean and population standard deviation. The
computation is a pure function over its input; persisting the result is the
caller's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from math import fsum, sqrt
from typing import Dict, List, Optional, Sequence, Union

from healthwatch.core.config import BaselineConfig, config
from healthwatch.core.exceptions import DataValidationError
from healthwatch.metrics.schema import MetricSample, MetricType

from .schema import InsufficientData, UserBaseline

logger = logging.getLogger(__name__)


def population_stats(values: Sequence[float]) -> tuple[float, float]:
    """
    Mean and population standard deviation.

    Identical values yield exactly (value, 0.0) so that zero variance is
    detectable without a float tolerance.
    """
    if not values:
        raise ValueError("population_stats requires at least one value")
    first = values[0]
    if all(v == first for v in values):
        return float(first), 0.0
    mean = fsum(values) / len(values)
    variance = fsum((v - mean) ** 2 for v in values) / len(values)
    return mean, sqrt(variance)


@dataclass
class BaselineCalculator:
    """
    Derives a UserBaseline from historical samples.

    Warm-up: returns InsufficientData until min_days samples are supplied.
    """

    settings: BaselineConfig = field(default_factory=lambda: config.anomaly.baselines)

    def __post_init__(self) -> None:
        self._missing_when_zero = frozenset(MetricType(m) for m in self.settings.missing_when_zero)

    def compute(
        self,
        samples: Sequence[MetricSample],
        calculated_at: Optional[datetime] = None,
    ) -> Union[UserBaseline, InsufficientData]:
        if not samples:
            raise DataValidationError("Baseline window must contain at least one sample")

        user_ids = {s.user_id for s in samples}
        if len(user_ids) != 1:
            raise DataValidationError(f"Baseline window mixes users: {sorted(user_ids)}")
        user_id = samples[0].user_id

        if len(samples) < self.settings.min_days:
            logger.debug(
                "Insufficient history for user=%s (%d/%d days)",
                user_id,
                len(samples),
                self.settings.min_days,
            )
            return InsufficientData(
                user_id=user_id, sample_count=len(samples), required=self.settings.min_days
            )

        dates = [s.date for s in samples]
        if len(set(dates)) != len(dates):
            logger.warning("Baseline window for user=%s contains duplicate dates", user_id)

        means: Dict[MetricType, float] = {}
        stds: Dict[MetricType, float] = {}
        counts: Dict[MetricType, int] = {}

        for metric, values in self._collect(samples).items():
            if len(values) < self.settings.min_metric_points:
                logger.debug(
                    "Skipping %s for user=%s: %d recorded values",
                    metric.value,
                    user_id,
                    len(values),
                )
                continue
            mean, std = population_stats(values)
            means[metric] = mean
            stds[metric] = std
            counts[metric] = len(values)

        return UserBaseline(
            user_id=user_id,
            per_metric_mean=means,
            per_metric_std_dev=stds,
            per_metric_count=counts,
            sample_count=len(samples),
            calculated_at=calculated_at or datetime.now(timezone.utc),
        )

    def _collect(self, samples: Sequence[MetricSample]) -> Dict[MetricType, List[float]]:
        collected: Dict[MetricType, List[float]] = {m: [] for m in MetricType}
        for sample in samples:
            for metric, value in sample.metric_values(self._missing_when_zero).items():
                collected[metric].append(value)
        return collected


def is_stale(baseline: UserBaseline, now: Optional[datetime] = None, max_age_hours: Optional[float] = None) -> bool:
    """True when a baseline is older than the configured maximum age."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    limit = max_age_hours if max_age_hours is not None else config.anomaly.baselines.max_age_hours
    age = now - baseline.calculated_at
    return age.total_seconds() > limit * 3600
