"""
Pytest configuration and shared fixtures.

Provides sample/baseline factories and a pandas history frame for unit and
integration tests.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, List

import pandas as pd
import pytest

from healthwatch.anomaly.schema import UserBaseline
from healthwatch.core.config import Config
from healthwatch.metrics.schema import MetricSample, MetricType

USER_ID = "user-1"
DAY = date(2025, 3, 10)
DETECTED_AT = datetime(2025, 3, 10, 23, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_config(tmp_path):
    """
    Fixture providing test configuration with explicit values.
    
    Ensures tests run consistently regardless of .env settings.
    """
    return Config(log_level="WARNING", logs_dir=tmp_path / "logs")


@pytest.fixture
def make_sample() -> Callable[..., MetricSample]:
    """
    Factory for a typical day; keyword overrides replace any field.
    """
    def _make(**overrides) -> MetricSample:
        data = {
            "user_id": USER_ID,
            "date": DAY,
            "steps": 6000,
            "distance_meters": 4500.0,
            "calories_burned": 350.0,
            "screen_time_minutes": 180,
            "sleep_duration_minutes": 420,
            "average_heart_rate": 68.0,
            "average_hrv": 45.0,
            "mood_score": 7,
        }
        data.update(overrides)
        return MetricSample(**data)
    return _make


@pytest.fixture
def make_baseline() -> Callable[..., UserBaseline]:
    """
    Factory for a valid baseline from {metric: (mean, std)}.
    """
    def _make(stats: Dict[MetricType, tuple], sample_count: int = 30, user_id: str = USER_ID) -> UserBaseline:
        return UserBaseline(
            user_id=user_id,
            per_metric_mean={m: s[0] for m, s in stats.items()},
            per_metric_std_dev={m: s[1] for m, s in stats.items()},
            per_metric_count={m: sample_count for m in stats},
            sample_count=sample_count,
            calculated_at=DETECTED_AT - timedelta(hours=1),
        )
    return _make


@pytest.fixture
def history(make_sample) -> List[MetricSample]:
    """
    Thirty days of varied but ordinary data ending the day before DAY.
    """
    samples = []
    for i in range(30):
        day = DAY - timedelta(days=30 - i)
        samples.append(make_sample(
            date=day,
            steps=5000 + (i % 5) * 500,          # 5000-7000
            screen_time_minutes=150 + (i % 3) * 30,  # 150-210
            sleep_duration_minutes=400 + (i % 4) * 15,  # 400-445
            average_heart_rate=0.0 if i % 10 == 0 else 66.0 + (i % 3),
            average_hrv=40.0 + (i % 4) * 2,
            mood_score=None if i % 7 == 0 else 6 + (i % 2),
        ))
    return samples


@pytest.fixture
def history_frame(history) -> pd.DataFrame:
    """
    The history fixture as a pandas DataFrame (one row per user-day).
    """
    return pd.DataFrame([s.model_dump() for s in history])


def pytest_configure(config):
    """
    Pytest hook for custom configuration.
    
    Registers custom markers used throughout tests.
    """
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running (deferred CI)"
    )
