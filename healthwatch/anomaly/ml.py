"""
Optional ML signal for anomaly detection.

An ML path reports either MLSuccess (candidate anomalies plus a confidence) or
MLFailure (a reason). Callers never see exceptions from a model: invoke_model()
bounds the call with a timeout and converts every failure into MLFailure.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from enum import Enum
from typing import Callable, List, Optional, Union

from pydantic import BaseModel, Field

from healthwatch.core.config import config
from healthwatch.metrics.schema import MetricSample

from .schema import Anomaly, FallbackReason, UserBaseline

logger = logging.getLogger(__name__)


class MLFailureKind(str, Enum):
    UNAVAILABLE = "unavailable"
    ERROR = "error"
    TIMEOUT = "timeout"
    LOW_CONFIDENCE = "low_confidence"


class MLSuccess(BaseModel):
    """Candidate anomalies reported by a model."""

    candidates: List[Anomaly] = Field(default_factory=list)
    confidence: float = Field(..., ge=0.0, le=1.0)


class MLFailure(BaseModel):
    """Structured failure of the ML path."""

    kind: MLFailureKind
    detail: Optional[str] = None

    @property
    def fallback_reason(self) -> str:
        if self.kind == MLFailureKind.UNAVAILABLE:
            return FallbackReason.ML_UNAVAILABLE.value
        if self.kind == MLFailureKind.LOW_CONFIDENCE:
            return FallbackReason.ML_LOW_CONFIDENCE.value
        detail = self.detail or self.kind.value
        return f"{FallbackReason.ML_ERROR.value}: {detail}"


MLSignal = Union[MLSuccess, MLFailure]


class AnomalyModel(ABC):
    """
    Interface for ML-backed detectors.
    """

    @abstractmethod
    def predict(self, sample: MetricSample, baseline: UserBaseline) -> MLSignal:
        pass


def gate_confidence(signal: MLSignal, min_confidence: Optional[float] = None) -> MLSignal:
    """Treat a success below the confidence threshold as a failure."""
    if not isinstance(signal, MLSuccess):
        return signal
    threshold = config.anomaly.ml.confidence_threshold if min_confidence is None else min_confidence
    if signal.confidence < threshold:
        return MLFailure(
            kind=MLFailureKind.LOW_CONFIDENCE,
            detail=f"confidence {signal.confidence:.2f} < {threshold:.2f}",
        )
    return signal


def call_with_timeout(fn: Callable[[], object], timeout_seconds: Optional[float] = None) -> MLSignal:
    """
    Run an ML call in a worker thread, bounded by timeout_seconds.

    Timeouts, exceptions and unexpected return types become MLFailure. A call
    that times out keeps running in its thread; its result is discarded.
    """
    timeout = config.anomaly.ml.timeout_seconds if timeout_seconds is None else timeout_seconds
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="healthwatch-ml")
    try:
        future = pool.submit(fn)
        result = future.result(timeout=timeout)
    except FutureTimeoutError:
        logger.warning("ML signal timed out after %.3fs", timeout)
        return MLFailure(kind=MLFailureKind.TIMEOUT, detail=f"timed out after {timeout}s")
    except Exception as exc:
        logger.warning("ML signal raised %s: %s", type(exc).__name__, exc)
        return MLFailure(kind=MLFailureKind.ERROR, detail=f"{type(exc).__name__}: {exc}")
    finally:
        pool.shutdown(wait=False, cancel_futures=True)

    if result is None:
        return MLFailure(kind=MLFailureKind.UNAVAILABLE)
    if not isinstance(result, (MLSuccess, MLFailure)):
        return MLFailure(kind=MLFailureKind.ERROR, detail=f"unexpected result type {type(result).__name__}")
    return result


def invoke_model(
    model: Optional[AnomalyModel],
    sample: MetricSample,
    baseline: UserBaseline,
    timeout_seconds: Optional[float] = None,
    min_confidence: Optional[float] = None,
) -> MLSignal:
    """
    Ask a model for candidates, bounded and confidence-gated.
    """
    if model is None or not config.anomaly.ml.enabled:
        return MLFailure(kind=MLFailureKind.UNAVAILABLE)
    signal = call_with_timeout(lambda: model.predict(sample, baseline), timeout_seconds)
    return gate_confidence(signal, min_confidence)
