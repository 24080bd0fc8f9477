"""
Acknowledgement lifecycle for detected anomalies.

NEW (acknowledged=False) -> ACKNOWLEDGED (acknowledged=True). ACKNOWLEDGED is
terminal. Repeated acknowledgement is a successful no-op; an unknown id is
reported in the result rather than raised, so batch callers keep going.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from pydantic import BaseModel

from healthwatch.anomaly.schema import Anomaly, AnomalyState
from healthwatch.core.exceptions import AnomalyNotFoundError

from .store import AnomalyStore

logger = logging.getLogger(__name__)


class AckStatus(str, Enum):
    ACKNOWLEDGED = "acknowledged"
    ALREADY_ACKNOWLEDGED = "already_acknowledged"
    NOT_FOUND = "not_found"


class AcknowledgementResult(BaseModel):
    anomaly_id: str
    status: AckStatus
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != AckStatus.NOT_FOUND


@dataclass
class AcknowledgementTracker:
    """
    Manages anomaly state transitions through an AnomalyStore.
    """

    store: AnomalyStore

    def register(self, anomalies: Iterable[Anomaly]) -> int:
        """
        Persist freshly detected anomalies in the NEW state.

        Raises:
            ValueError: if any anomaly arrives already acknowledged
        """
        batch = list(anomalies)
        early = [a.id for a in batch if a.acknowledged]
        if early:
            raise ValueError(f"New anomalies must not be acknowledged: {early}")
        inserted = self.store.insert(batch)
        if inserted:
            logger.info("Registered %d new anomalies", inserted)
        return inserted

    def acknowledge(self, anomaly_id: str) -> AcknowledgementResult:
        try:
            changed = self.store.mark_acknowledged(anomaly_id)
        except AnomalyNotFoundError as e:
            logger.warning("Acknowledgement of unknown anomaly id=%s", anomaly_id)
            return AcknowledgementResult(anomaly_id=anomaly_id, status=AckStatus.NOT_FOUND, error=str(e))

        if changed:
            logger.info("Anomaly id=%s acknowledged", anomaly_id)
            return AcknowledgementResult(anomaly_id=anomaly_id, status=AckStatus.ACKNOWLEDGED)
        return AcknowledgementResult(anomaly_id=anomaly_id, status=AckStatus.ALREADY_ACKNOWLEDGED)

    def acknowledge_many(self, anomaly_ids: Iterable[str]) -> List[AcknowledgementResult]:
        return [self.acknowledge(anomaly_id) for anomaly_id in anomaly_ids]

    def state_of(self, anomaly_id: str) -> Optional[AnomalyState]:
        try:
            return self.store.get(anomaly_id).state
        except AnomalyNotFoundError:
            return None

    def unacknowledged(self, user_id: str) -> List[Anomaly]:
        return self.store.unacknowledged(user_id)
