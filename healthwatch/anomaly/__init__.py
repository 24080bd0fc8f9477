"""
Anomaly module: baselines, threshold detection, severity, ML fallback.

Implements deterministic per-user baselines, a deviation-count detector, and the
coordinator that prefers an optional ML signal and falls back to the rule.
"""

from .baselines import BaselineCalculator, is_stale, population_stats
from .coordinator import AnomalyDetectionCoordinator, merge_candidates
from .detectors import CATEGORY_TABLE, ThresholdAnomalyDetector, build_message
from .ml import (
    AnomalyModel,
    MLFailure,
    MLFailureKind,
    MLSignal,
    MLSuccess,
    call_with_timeout,
    gate_confidence,
    invoke_model,
)
from .schema import (
    MIN_BASELINE_DAYS,
    THRESHOLD_STD_DEV,
    Anomaly,
    AnomalyCategory,
    AnomalyState,
    DetectionOutcome,
    Direction,
    FallbackReason,
    InsufficientData,
    Severity,
    UserBaseline,
    anomaly_id_for,
)
from .scoring import SeverityClassifier, classify, overall_severity, severity_rank

__all__ = [
	"MIN_BASELINE_DAYS",
	"THRESHOLD_STD_DEV",
	"Anomaly",
	"AnomalyCategory",
	"AnomalyState",
	"DetectionOutcome",
	"Direction",
	"FallbackReason",
	"InsufficientData",
	"Severity",
	"UserBaseline",
	"anomaly_id_for",
	"BaselineCalculator",
	"is_stale",
	"population_stats",
	"ThresholdAnomalyDetector",
	"CATEGORY_TABLE",
	"build_message",
	"SeverityClassifier",
	"classify",
	"overall_severity",
	"severity_rank",
	"AnomalyModel",
	"MLSuccess",
	"MLFailure",
	"MLFailureKind",
	"MLSignal",
	"call_with_timeout",
	"gate_confidence",
	"invoke_model",
	"AnomalyDetectionCoordinator",
	"merge_candidates",
]
