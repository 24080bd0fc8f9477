"""
Tracking module: anomaly/baseline persistence and acknowledgement lifecycle.
"""

from .acknowledgement import AckStatus, AcknowledgementResult, AcknowledgementTracker
from .store import (
    AnomalyStore,
    BaselineStore,
    InMemoryAnomalyStore,
    InMemoryBaselineStore,
)

__all__ = [
    "AckStatus",
    "AcknowledgementResult",
    "AcknowledgementTracker",
    "AnomalyStore",
    "BaselineStore",
    "InMemoryAnomalyStore",
    "InMemoryBaselineStore",
]
