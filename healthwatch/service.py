"""
Service layer for daily anomaly detection.

Wires a historical sample feed, the baseline calculator, the detection
coordinator and the acknowledgement tracker into the operations the
surrounding application calls: recompute a baseline, analyze a new day,
list and acknowledge anomalies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional, Union

from healthwatch.anomaly import (
    AnomalyDetectionCoordinator,
    AnomalyModel,
    BaselineCalculator,
    DetectionOutcome,
    InsufficientData,
    UserBaseline,
    is_stale,
)
from healthwatch.anomaly.coordinator import MLInput
from healthwatch.anomaly.ml import invoke_model
from healthwatch.anomaly.schema import Anomaly
from healthwatch.core.config import config
from healthwatch.core.logging_config import setup_logging
from healthwatch.metrics import MetricSample, SampleFeed
from healthwatch.tracking import (
    AcknowledgementResult,
    AcknowledgementTracker,
    AnomalyStore,
    BaselineStore,
    InMemoryAnomalyStore,
    InMemoryBaselineStore,
)

logger = logging.getLogger("healthwatch.service")


@dataclass
class HealthAnomalyService:
    """
    Per-user anomaly detection use cases.

    - Holds no per-user state itself; baselines and anomalies live in the stores.
    - A configured model is invoked through the timed, confidence-gated wrapper.
    """

    feed: SampleFeed
    baselines: BaselineStore
    anomalies: AnomalyStore
    model: Optional[AnomalyModel] = None
    calculator: BaselineCalculator = field(default_factory=BaselineCalculator)
    coordinator: AnomalyDetectionCoordinator = field(default_factory=AnomalyDetectionCoordinator)

    def __post_init__(self) -> None:
        self.tracker = AcknowledgementTracker(store=self.anomalies)

    def recompute_baseline(
        self, user_id: str, window_days: Optional[int] = None
    ) -> Union[UserBaseline, InsufficientData]:
        window = window_days or config.anomaly.baselines.window_days
        samples = self.feed.recent_samples(user_id, window)
        if not samples:
            return InsufficientData(user_id=user_id, sample_count=0, required=self.calculator.settings.min_days)

        result = self.calculator.compute(samples)
        if isinstance(result, InsufficientData):
            logger.info(
                "Baseline for user=%s needs %d more days of data", user_id, result.missing_days
            )
            return result

        self.baselines.save(result)
        logger.info(
            "Baseline recomputed for user=%s from %d samples (%d metrics)",
            user_id,
            result.sample_count,
            len(result.per_metric_mean),
        )
        return result

    def ensure_baseline(
        self, user_id: str, now: Optional[datetime] = None
    ) -> Union[UserBaseline, InsufficientData]:
        """Return the stored baseline, recomputing it if missing or stale."""
        current = self.baselines.get(user_id)
        if current is not None and current.is_valid and not is_stale(current, now):
            return current
        return self.recompute_baseline(user_id)

    def has_valid_baseline(self, user_id: str) -> bool:
        baseline = self.baselines.get(user_id)
        return baseline is not None and baseline.is_valid

    def analyze(
        self,
        sample: MetricSample,
        ml_signal: MLInput = None,
        detected_at: Optional[datetime] = None,
    ) -> DetectionOutcome:
        """
        Detect anomalies for one new day and register them as NEW.

        An explicit ml_signal takes precedence over the configured model.
        """
        baseline = self.baselines.get(sample.user_id)
        if ml_signal is None and self.model is not None and isinstance(baseline, UserBaseline):
            ml_signal = invoke_model(
                self.model,
                sample,
                baseline,
                timeout_seconds=self.coordinator.ml_settings.timeout_seconds,
                min_confidence=self.coordinator.ml_settings.confidence_threshold,
            )

        outcome = self.coordinator.run(
            sample, baseline, ml_signal=ml_signal, detected_at=detected_at or datetime.now(timezone.utc)
        )
        if outcome.anomalies:
            self.tracker.register(outcome.anomalies)
        return outcome

    def unacknowledged(self, user_id: str) -> List[Anomaly]:
        return self.tracker.unacknowledged(user_id)

    def anomalies_for_date(self, user_id: str, sample_date: date) -> List[Anomaly]:
        return self.anomalies.for_date(user_id, sample_date)

    def recent_anomalies(self, user_id: str, limit: int = 10) -> List[Anomaly]:
        return self.anomalies.recent(user_id, limit)

    def acknowledge(self, anomaly_id: str) -> AcknowledgementResult:
        return self.tracker.acknowledge(anomaly_id)


def create_health_service(feed: SampleFeed, model: Optional[AnomalyModel] = None) -> HealthAnomalyService:
    """
    Factory for a service backed by in-memory stores.
    """

    setup_logging()
    return HealthAnomalyService(
        feed=feed,
        baselines=InMemoryBaselineStore(),
        anomalies=InMemoryAnomalyStore(),
        model=model,
    )
