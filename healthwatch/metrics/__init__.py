"""
Metrics module: daily sample schema and historical feeds.
"""

from healthwatch.metrics.feed import DataFrameSampleFeed, InMemorySampleFeed, SampleFeed
from healthwatch.metrics.schema import (
    DEFAULT_MISSING_WHEN_ZERO,
    MetricSample,
    MetricType,
    field_name_for,
)

__all__ = [
    "MetricSample",
    "MetricType",
    "DEFAULT_MISSING_WHEN_ZERO",
    "field_name_for",
    "SampleFeed",
    "InMemorySampleFeed",
    "DataFrameSampleFeed",
]
