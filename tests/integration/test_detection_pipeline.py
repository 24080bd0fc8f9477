"""
Integration tests for the full daily detection flow:
feed -> baseline -> coordinator -> acknowledgement.
"""

from datetime import datetime, timedelta, timezone

import pytest

from healthwatch.anomaly.ml import AnomalyModel, MLFailure, MLFailureKind, MLSuccess
from healthwatch.anomaly.schema import InsufficientData, Severity, UserBaseline
from healthwatch.metrics.feed import DataFrameSampleFeed, InMemorySampleFeed
from healthwatch.metrics.schema import MetricType
from healthwatch.service import create_health_service
from healthwatch.tracking import AckStatus

pytestmark = pytest.mark.integration

NOW = datetime(2025, 3, 10, 23, 0, tzinfo=timezone.utc)


class _SlowModel(AnomalyModel):
    def predict(self, sample, baseline):
        raise TimeoutError("accelerator busy")


class _QuietModel(AnomalyModel):
    def predict(self, sample, baseline):
        return MLSuccess(candidates=[], confidence=0.99)


def test_five_days_gives_no_baseline(history, make_sample):
    service = create_health_service(InMemorySampleFeed(history[:5]))

    result = service.recompute_baseline("user-1")
    outcome = service.analyze(make_sample(steps=10), detected_at=NOW)

    assert isinstance(result, InsufficientData)
    assert not service.has_valid_baseline("user-1")
    assert outcome.anomalies == []
    assert outcome.fallback_reason == "no_baseline"


def test_full_flow_with_fallback(history, make_sample):
    service = create_health_service(InMemorySampleFeed(history))
    baseline = service.recompute_baseline("user-1")

    assert isinstance(baseline, UserBaseline)
    assert baseline.sample_count == 30
    # three of thirty days had no heart-rate reading
    assert baseline.per_metric_count[MetricType.HEART_RATE] == 27

    odd_day = make_sample(steps=500, screen_time_minutes=600)
    outcome = service.analyze(odd_day, detected_at=NOW)

    assert outcome.used_fallback is True
    assert outcome.fallback_reason == "ml_unavailable"
    flagged = {a.metric_type: a for a in outcome.anomalies}
    assert flagged[MetricType.STEPS].severity == Severity.ALERT
    assert flagged[MetricType.SCREEN_TIME].severity == Severity.ALERT

    pending = service.unacknowledged("user-1")
    assert {a.id for a in pending} == {a.id for a in outcome.anomalies}

    first = service.acknowledge(flagged[MetricType.STEPS].id)
    second = service.acknowledge(flagged[MetricType.STEPS].id)
    assert first.status == AckStatus.ACKNOWLEDGED
    assert second.status == AckStatus.ALREADY_ACKNOWLEDGED
    assert len(service.unacknowledged("user-1")) == len(outcome.anomalies) - 1
    assert len(service.anomalies_for_date("user-1", odd_day.date)) == len(outcome.anomalies)


def test_rerun_for_same_day_does_not_duplicate(history, make_sample):
    service = create_health_service(InMemorySampleFeed(history))
    service.recompute_baseline("user-1")
    odd_day = make_sample(steps=500)

    service.analyze(odd_day, detected_at=NOW)
    service.analyze(odd_day, detected_at=NOW + timedelta(minutes=5))

    assert len(service.recent_anomalies("user-1", limit=50)) == 1


def test_failing_model_falls_back(history, make_sample):
    service = create_health_service(InMemorySampleFeed(history), model=_SlowModel())
    service.recompute_baseline("user-1")

    outcome = service.analyze(make_sample(steps=500), detected_at=NOW)

    assert outcome.used_fallback is True
    assert outcome.fallback_reason.startswith("ml_error: ")
    assert [a.metric_type for a in outcome.anomalies] == [MetricType.STEPS]


def test_confident_model_is_trusted(history, make_sample):
    service = create_health_service(InMemorySampleFeed(history), model=_QuietModel())
    service.recompute_baseline("user-1")

    outcome = service.analyze(make_sample(steps=500), detected_at=NOW)

    assert outcome.used_fallback is False
    assert outcome.anomalies == []


def test_explicit_signal_overrides_model(history, make_sample):
    service = create_health_service(InMemorySampleFeed(history), model=_QuietModel())
    service.recompute_baseline("user-1")

    outcome = service.analyze(
        make_sample(steps=500),
        ml_signal=MLFailure(kind=MLFailureKind.ERROR, detail="stale weights"),
        detected_at=NOW,
    )

    assert outcome.fallback_reason == "ml_error: stale weights"
    assert len(outcome.anomalies) == 1


def test_dataframe_feed_baseline(history_frame):
    service = create_health_service(DataFrameSampleFeed(history_frame))

    baseline = service.ensure_baseline("user-1", now=NOW)

    assert isinstance(baseline, UserBaseline)
    assert service.ensure_baseline("user-1", now=baseline.calculated_at) is baseline


def test_ensure_baseline_accepts_naive_times(history_frame):
    service = create_health_service(DataFrameSampleFeed(history_frame))
    computed = service.recompute_baseline("user-1")
    stored = UserBaseline.model_validate({**computed.model_dump(), "calculated_at": datetime(2025, 3, 10, 22, 0)})
    service.baselines.save(stored)

    assert service.ensure_baseline("user-1", now=datetime(2025, 3, 10, 23, 0)) is stored
    assert service.ensure_baseline("user-1", now=NOW) is stored
