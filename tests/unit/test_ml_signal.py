"""
Unit tests for ML signal wrapping.
"""

import threading

from healthwatch.anomaly.ml import (
    AnomalyModel,
    MLFailure,
    MLFailureKind,
    MLSuccess,
    call_with_timeout,
    gate_confidence,
    invoke_model,
)
from healthwatch.metrics.schema import MetricType


class _FixedModel(AnomalyModel):
    def __init__(self, signal):
        self._signal = signal

    def predict(self, sample, baseline):
        return self._signal


class _BrokenModel(AnomalyModel):
    def predict(self, sample, baseline):
        raise RuntimeError("model file missing")


def test_low_confidence_becomes_failure():
    signal = gate_confidence(MLSuccess(candidates=[], confidence=0.5), min_confidence=0.7)

    assert isinstance(signal, MLFailure)
    assert signal.kind == MLFailureKind.LOW_CONFIDENCE
    assert signal.fallback_reason == "ml_low_confidence"


def test_confident_success_passes_gate():
    original = MLSuccess(candidates=[], confidence=0.7)
    assert gate_confidence(original, min_confidence=0.7) is original


def test_failure_reasons():
    assert MLFailure(kind=MLFailureKind.UNAVAILABLE).fallback_reason == "ml_unavailable"
    assert MLFailure(kind=MLFailureKind.ERROR, detail="boom").fallback_reason == "ml_error: boom"
    assert MLFailure(kind=MLFailureKind.TIMEOUT).fallback_reason.startswith("ml_error: ")


def test_exception_becomes_error():
    def explode():
        raise ValueError("bad tensor shape")

    signal = call_with_timeout(explode, timeout_seconds=1.0)

    assert isinstance(signal, MLFailure)
    assert signal.kind == MLFailureKind.ERROR
    assert "bad tensor shape" in signal.detail


def test_timeout_becomes_failure():
    release = threading.Event()

    def hang():
        release.wait(5.0)
        return MLSuccess(candidates=[], confidence=1.0)

    try:
        signal = call_with_timeout(hang, timeout_seconds=0.05)
    finally:
        release.set()

    assert isinstance(signal, MLFailure)
    assert signal.kind == MLFailureKind.TIMEOUT


def test_none_result_is_unavailable():
    signal = call_with_timeout(lambda: None, timeout_seconds=1.0)
    assert signal.kind == MLFailureKind.UNAVAILABLE


def test_unexpected_result_type_is_error():
    signal = call_with_timeout(lambda: ["not", "a", "signal"], timeout_seconds=1.0)
    assert signal.kind == MLFailureKind.ERROR


def test_invoke_model_without_model(make_sample, make_baseline):
    baseline = make_baseline({MetricType.STEPS: (6000.0, 1000.0)})
    signal = invoke_model(None, make_sample(), baseline)
    assert signal.kind == MLFailureKind.UNAVAILABLE


def test_invoke_model_catches_model_errors(make_sample, make_baseline):
    baseline = make_baseline({MetricType.STEPS: (6000.0, 1000.0)})
    signal = invoke_model(_BrokenModel(), make_sample(), baseline, timeout_seconds=1.0)
    assert signal.kind == MLFailureKind.ERROR
    assert "model file missing" in signal.fallback_reason


def test_invoke_model_gates_confidence(make_sample, make_baseline):
    baseline = make_baseline({MetricType.STEPS: (6000.0, 1000.0)})
    model = _FixedModel(MLSuccess(candidates=[], confidence=0.2))

    signal = invoke_model(model, make_sample(), baseline, timeout_seconds=1.0, min_confidence=0.7)

    assert signal.kind == MLFailureKind.LOW_CONFIDENCE
