"""
Detection coordinator: ML signal first, threshold rule as fallback.

This is the single place where a failing ML path is turned into the rule-based
path. Nothing raised by the ML side crosses this boundary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Union

from healthwatch.core.config import MLConfig, config
from healthwatch.metrics.schema import MetricSample, MetricType

from .detectors import ThresholdAnomalyDetector
from .ml import MLFailure, MLFailureKind, MLSignal, MLSuccess, call_with_timeout, gate_confidence
from .schema import Anomaly, DetectionOutcome, FallbackReason, InsufficientData, UserBaseline
from .scoring import overall_severity, severity_rank

logger = logging.getLogger(__name__)

BaselineState = Union[UserBaseline, InsufficientData, None]
MLInput = Union[MLSuccess, MLFailure, Callable[[], MLSignal], None]


def merge_candidates(candidates: List[Anomaly]) -> List[Anomaly]:
    """
    Keep one anomaly per metric, the most severe, in MetricType order.
    """
    best: Dict[MetricType, Anomaly] = {}
    for candidate in candidates:
        current = best.get(candidate.metric_type)
        if current is None or severity_rank(candidate.severity) > severity_rank(current.severity):
            best[candidate.metric_type] = candidate
    return [best[m] for m in MetricType if m in best]


@dataclass
class AnomalyDetectionCoordinator:
    """
    Orchestrates one detection run for one sample.

    Notes:
    - An absent or invalid baseline short-circuits with reason "no_baseline".
    - ML successes are trusted as-is, apart from per-metric de-duplication.
    - Any other ML state falls back to ThresholdAnomalyDetector.
    """

    detector: ThresholdAnomalyDetector = field(default_factory=ThresholdAnomalyDetector)
    ml_settings: MLConfig = field(default_factory=lambda: config.anomaly.ml)

    def run(
        self,
        sample: MetricSample,
        baseline: BaselineState,
        ml_signal: MLInput = None,
        detected_at: Optional[datetime] = None,
    ) -> DetectionOutcome:
        if not isinstance(baseline, UserBaseline) or not baseline.is_valid:
            logger.info("No valid baseline for user=%s; skipping detection", sample.user_id)
            return DetectionOutcome(
                anomalies=[], used_fallback=True, fallback_reason=FallbackReason.NO_BASELINE.value
            )

        signal = self._resolve(ml_signal)

        if isinstance(signal, MLSuccess):
            anomalies = merge_candidates(signal.candidates)
            severity = overall_severity(*(a.severity for a in anomalies))
            logger.info(
                "ML path used for user=%s: %d anomalies, overall %s (confidence %.2f)",
                sample.user_id,
                len(anomalies),
                severity.value,
                signal.confidence,
            )
            return DetectionOutcome(anomalies=anomalies, used_fallback=False, severity=severity)

        reason = signal.fallback_reason
        logger.warning("ML path unavailable for user=%s (%s); using threshold rule", sample.user_id, reason)
        anomalies = self.detector.detect(sample, baseline, detected_at=detected_at)
        severity = overall_severity(*(a.severity for a in anomalies))
        logger.info("Threshold rule found %d anomalies for user=%s, overall %s", len(anomalies), sample.user_id, severity.value)
        return DetectionOutcome(
            anomalies=anomalies, used_fallback=True, fallback_reason=reason, severity=severity
        )

    def _resolve(self, ml_signal: MLInput) -> MLSignal:
        if ml_signal is None or not self.ml_settings.enabled:
            return MLFailure(kind=MLFailureKind.UNAVAILABLE)
        if callable(ml_signal):
            ml_signal = call_with_timeout(ml_signal, self.ml_settings.timeout_seconds)
        if not isinstance(ml_signal, (MLSuccess, MLFailure)):
            return MLFailure(
                kind=MLFailureKind.ERROR, detail=f"unexpected signal type {type(ml_signal).__name__}"
            )
        return gate_confidence(ml_signal, self.ml_settings.confidence_threshold)
