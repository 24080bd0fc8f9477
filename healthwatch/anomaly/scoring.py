"""
Severity mapping for anomalies.

Maps deviation counts to severity tiers with configurable thresholds.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from healthwatch.core.config import AnomalyThresholds, config

from .schema import Severity

_ORDER = [Severity.INFO, Severity.WARNING, Severity.ALERT]


@dataclass
class SeverityClassifier:
    """
    Maps a z-score to a severity level.

    Total over all floats: |z| below the flagging threshold maps to INFO,
    although the detector never asks for it.
    """

    thresholds: AnomalyThresholds = field(default_factory=lambda: config.anomaly.thresholds)

    def classify(self, z_score: float) -> Severity:
        z = abs(z_score)
        if z >= self.thresholds.alert_std_dev:
            return Severity.ALERT
        if z >= self.thresholds.threshold_std_dev:
            return Severity.WARNING
        return Severity.INFO


def classify(z_score: float) -> Severity:
    """Classify with the process-wide thresholds."""
    return SeverityClassifier().classify(z_score)


def severity_rank(severity: Severity) -> int:
    return _ORDER.index(severity)


def overall_severity(*severities: Severity) -> Severity:
    """
    Return the highest severity among inputs.
    """

    if not severities:
        return Severity.INFO
    return max(severities, key=severity_rank)
