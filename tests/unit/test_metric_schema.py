"""
Unit tests for the daily metric schema.
"""

from datetime import date

import pytest
from pydantic import ValidationError

from healthwatch.metrics.schema import MetricSample, MetricType, field_name_for


class TestMetricSampleValidation:
    """Test field constraints."""
    
    def test_valid_sample(self, make_sample):
        sample = make_sample()
        assert sample.steps == 6000
        assert sample.key == ("user-1", date(2025, 3, 10))
    
    def test_negative_steps_rejected(self, make_sample):
        with pytest.raises(ValidationError):
            make_sample(steps=-1)
    
    def test_sleep_longer_than_a_day_rejected(self, make_sample):
        with pytest.raises(ValidationError):
            make_sample(sleep_duration_minutes=1441)
    
    def test_mood_out_of_range_rejected(self, make_sample):
        with pytest.raises(ValidationError):
            make_sample(mood_score=11)
        with pytest.raises(ValidationError):
            make_sample(mood_score=0)
    
    def test_sample_is_immutable(self, make_sample):
        sample = make_sample()
        with pytest.raises(ValidationError):
            sample.steps = 10


class TestValueFor:
    """Test missing-data handling."""
    
    def test_zero_heart_rate_is_missing(self, make_sample):
        sample = make_sample(average_heart_rate=0.0, average_hrv=0.0)
        assert sample.value_for(MetricType.HEART_RATE) is None
        assert sample.value_for(MetricType.HRV) is None
    
    def test_zero_steps_is_real(self, make_sample):
        sample = make_sample(steps=0, sleep_duration_minutes=0, screen_time_minutes=0)
        assert sample.value_for(MetricType.STEPS) == 0.0
        assert sample.value_for(MetricType.SLEEP) == 0.0
        assert sample.value_for(MetricType.SCREEN_TIME) == 0.0
    
    def test_unlogged_mood_is_missing(self, make_sample):
        sample = make_sample(mood_score=None)
        assert MetricType.MOOD not in sample.metric_values()
    
    def test_metric_values_covers_every_field(self, make_sample):
        values = make_sample().metric_values()
        assert list(values) == list(MetricType)
        assert values[MetricType.SLEEP] == 420.0
    
    def test_field_names(self):
        assert field_name_for(MetricType.SCREEN_TIME) == "screen_time_minutes"
