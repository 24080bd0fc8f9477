"""
Persistence collaborators for baselines and anomalies.

The abstract stores describe what the engine needs from storage; the in-memory
implementations are thread-safe and provide the required atomicity:
- baselines are replaced whole (last write wins)
- anomaly acknowledgement is a compare-and-set under a per-record lock
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import date
from typing import DefaultDict, Dict, Iterable, List, Optional

from healthwatch.anomaly.schema import Anomaly, UserBaseline
from healthwatch.core.exceptions import AnomalyNotFoundError

logger = logging.getLogger(__name__)


class BaselineStore(ABC):
    @abstractmethod
    def get(self, user_id: str) -> Optional[UserBaseline]:
        pass

    @abstractmethod
    def save(self, baseline: UserBaseline) -> None:
        """Replace any prior baseline for the user."""
        pass


class AnomalyStore(ABC):
    @abstractmethod
    def insert(self, anomalies: Iterable[Anomaly]) -> int:
        """
        Insert anomalies, skipping ids already stored.

        Returns:
            Number of newly stored anomalies
        """
        pass

    @abstractmethod
    def get(self, anomaly_id: str) -> Anomaly:
        """Raises AnomalyNotFoundError for unknown ids."""
        pass

    @abstractmethod
    def mark_acknowledged(self, anomaly_id: str) -> bool:
        """
        Atomically flip acknowledged to True.

        Returns:
            True if this call performed the transition, False if already acknowledged

        Raises:
            AnomalyNotFoundError: if the id is unknown
        """
        pass

    @abstractmethod
    def list_for_user(self, user_id: str) -> List[Anomaly]:
        """All anomalies for a user, newest first."""
        pass

    def unacknowledged(self, user_id: str) -> List[Anomaly]:
        return [a for a in self.list_for_user(user_id) if not a.acknowledged]

    def for_date(self, user_id: str, sample_date: date) -> List[Anomaly]:
        return [
            a
            for a in self.list_for_user(user_id)
            if (a.sample_date or a.detected_at.date()) == sample_date
        ]

    def recent(self, user_id: str, limit: int = 10) -> List[Anomaly]:
        return self.list_for_user(user_id)[:limit]

    @abstractmethod
    def delete_for_user(self, user_id: str) -> int:
        pass


class InMemoryBaselineStore(BaselineStore):
    def __init__(self) -> None:
        self._baselines: Dict[str, UserBaseline] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str) -> Optional[UserBaseline]:
        with self._lock:
            return self._baselines.get(user_id)

    def save(self, baseline: UserBaseline) -> None:
        with self._lock:
            self._baselines[baseline.user_id] = baseline
        logger.debug("Stored baseline for user=%s (%d samples)", baseline.user_id, baseline.sample_count)


class InMemoryAnomalyStore(AnomalyStore):
    """
    Dict-backed anomaly store.

    _lock guards the record and lock tables; each record's read-modify-write
    runs under its own lock.
    """

    def __init__(self) -> None:
        self._records: Dict[str, Anomaly] = {}
        self._lock = threading.Lock()
        self._record_locks: DefaultDict[str, threading.Lock] = defaultdict(threading.Lock)

    def insert(self, anomalies: Iterable[Anomaly]) -> int:
        inserted = 0
        with self._lock:
            for anomaly in anomalies:
                if anomaly.id in self._records:
                    continue
                self._records[anomaly.id] = anomaly
                inserted += 1
        return inserted

    def get(self, anomaly_id: str) -> Anomaly:
        with self._lock:
            record = self._records.get(anomaly_id)
        if record is None:
            raise AnomalyNotFoundError(anomaly_id)
        return record

    def mark_acknowledged(self, anomaly_id: str) -> bool:
        with self._lock:
            if anomaly_id not in self._records:
                raise AnomalyNotFoundError(anomaly_id)
            record_lock = self._record_locks[anomaly_id]

        with record_lock:
            with self._lock:
                current = self._records.get(anomaly_id)
            if current is None:
                raise AnomalyNotFoundError(anomaly_id)
            if current.acknowledged:
                return False
            updated = current.model_copy(update={"acknowledged": True})
            with self._lock:
                self._records[anomaly_id] = updated
            return True

    def list_for_user(self, user_id: str) -> List[Anomaly]:
        with self._lock:
            owned = [a for a in self._records.values() if a.user_id == user_id]
        owned.sort(key=lambda a: (a.detected_at, a.metric_type.value), reverse=True)
        return owned

    def delete_for_user(self, user_id: str) -> int:
        with self._lock:
            doomed = [k for k, a in self._records.items() if a.user_id == user_id]
            for key in doomed:
                del self._records[key]
                self._record_locks.pop(key, None)
        return len(doomed)
