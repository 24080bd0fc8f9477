"""
Historical sample feeds.

A feed returns the most recent window of daily samples for a user, ascending by
date, with at most one sample per (user_id, date). Feeds are read-only from the
engine's point of view.

Design:
- InMemorySampleFeed applies corrections by replacing the sample for a key
- DataFrameSampleFeed reads a pandas frame (e.g. loaded from an export),
  keeping the last row per key
- Bad rows are rejected loudly; silently dropping days would skew baselines
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, Iterable, List, Tuple

import pandas as pd
from pydantic import ValidationError

from healthwatch.core.exceptions import DataValidationError
from healthwatch.metrics.schema import MetricSample

logger = logging.getLogger(__name__)


class SampleFeed(ABC):
    """
    Abstract read API over a user's daily samples.
    """
    
    @abstractmethod
    def recent_samples(self, user_id: str, window_days: int) -> List[MetricSample]:
        """
        Return up to window_days most recent samples for a user.
        
        Returns:
            Samples ordered ascending by date
        """
        pass


class InMemorySampleFeed(SampleFeed):
    """
    Feed backed by a dict keyed on (user_id, date).
    """
    
    def __init__(self, samples: Iterable[MetricSample] = ()):
        self._samples: Dict[Tuple[str, date], MetricSample] = {}
        self._lock = threading.Lock()
        for sample in samples:
            self.add(sample)
    
    def add(self, sample: MetricSample) -> None:
        """Store a sample; a sample with an existing key supersedes the old one."""
        with self._lock:
            if sample.key in self._samples:
                logger.debug("Replacing sample for user=%s date=%s", sample.user_id, sample.date)
            self._samples[sample.key] = sample
    
    def recent_samples(self, user_id: str, window_days: int) -> List[MetricSample]:
        if window_days < 1:
            raise DataValidationError("window_days must be positive")
        with self._lock:
            owned = [s for (uid, _), s in self._samples.items() if uid == user_id]
        owned.sort(key=lambda s: s.date)
        return owned[-window_days:]


class DataFrameSampleFeed(SampleFeed):
    """
    Feed backed by a pandas DataFrame with one row per user-day.
    
    Expected columns are the MetricSample field names. Missing optional metric
    columns take the schema defaults; NaN in mood_score means "not logged".
    """
    
    REQUIRED_COLUMNS = ("user_id", "date")
    INT_COLUMNS = ("steps", "screen_time_minutes", "sleep_duration_minutes", "mood_score")
    FLOAT_COLUMNS = ("distance_meters", "calories_burned", "average_heart_rate", "average_hrv")
    
    def __init__(self, frame: pd.DataFrame):
        missing = [c for c in self.REQUIRED_COLUMNS if c not in frame.columns]
        if missing:
            raise DataValidationError(f"Sample frame missing columns: {missing}")
        
        df = frame.copy()
        df["date"] = pd.to_datetime(df["date"]).dt.date
        before = len(df)
        df = df.drop_duplicates(subset=["user_id", "date"], keep="last")
        if len(df) != before:
            logger.info("Dropped %d superseded sample rows", before - len(df))
        self._frame = df.sort_values(["user_id", "date"]).reset_index(drop=True)
    
    def recent_samples(self, user_id: str, window_days: int) -> List[MetricSample]:
        if window_days < 1:
            raise DataValidationError("window_days must be positive")
        rows = self._frame[self._frame["user_id"] == user_id].tail(window_days)
        return [self._row_to_sample(row) for row in rows.to_dict(orient="records")]
    
    def _row_to_sample(self, row: Dict[str, object]) -> MetricSample:
        data = {k: v for k, v in row.items() if not pd.isna(v)}
        for name in self.INT_COLUMNS:
            # pandas widens int columns holding NaN to float; fractional counts are left for validation
            if name in data and float(data[name]).is_integer():
                data[name] = int(data[name])
        for name in self.FLOAT_COLUMNS:
            if name in data:
                data[name] = float(data[name])
        try:
            return MetricSample(**data)
        except ValidationError as e:
            raise DataValidationError(
                f"Invalid sample row for user={row.get('user_id')} date={row.get('date')}: {e}"
            ) from e
