"""
Custom exceptions for the health anomaly engine.

Use them to distinguish between bad input data, caller logic errors, and
missing records. Outcomes the caller is expected to handle routinely
(insufficient history, unknown anomaly on acknowledgement, ML failure) are
returned as values instead.
"""


class HealthWatchError(Exception):
    """Base exception for the engine."""
    pass


class DataValidationError(HealthWatchError):
    """Raised when input samples fail validation (empty window, mixed users, bad rows)."""
    pass


class PreconditionViolation(HealthWatchError):
    """Raised when detection is invoked without a valid baseline for the sample's user."""
    pass


class AnomalyNotFoundError(HealthWatchError):
    """Raised by anomaly stores when an id is unknown."""

    def __init__(self, anomaly_id: str):
        super().__init__(f"Anomaly not found: {anomaly_id}")
        self.anomaly_id = anomaly_id
