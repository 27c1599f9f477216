"""
Shared fixtures: a scripted similarity store and record factories.
"""
import threading
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Tuple

import pytest

from errorlens.core.models import ErrorRecord, NeighborMatch


class ScriptedStore:
    """
    Similarity store whose scores come from a fixed pair table instead of
    real vectors. Pairs not in the table score 0.0.
    """

    def __init__(
        self,
        ids: List[str],
        similarities: Dict[Tuple[str, str], float],
        fail_for: Optional[Set[str]] = None,
        delay_for: Optional[Dict[str, float]] = None,
    ):
        self.ids = list(ids)
        self.similarities = {}
        for (a, b), score in similarities.items():
            self.similarities[(a, b)] = score
            self.similarities[(b, a)] = score
        self.fail_for = fail_for or set()
        self.delay_for = delay_for or {}
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def find_within_threshold(self, query_vector, exclude_id, threshold) -> List[NeighborMatch]:
        with self._lock:
            self.calls.append(exclude_id)
        if exclude_id in self.delay_for:
            time.sleep(self.delay_for[exclude_id])
        if exclude_id in self.fail_for:
            raise ConnectionError(f"store unavailable for {exclude_id}")

        matches = [
            NeighborMatch(error_id=other, similarity=self.similarities.get((exclude_id, other), 0.0))
            for other in self.ids
            if other != exclude_id
        ]
        matches = [m for m in matches if m.similarity >= threshold]
        return sorted(matches, key=lambda m: (-m.similarity, m.error_id))


def make_record(
    error_id: str,
    embedding: Optional[List[float]] = None,
    error_type: str = "TimeoutError",
    severity: str = "ERROR",
    timestamp: Optional[datetime] = None,
    message: Optional[str] = None,
) -> ErrorRecord:
    return ErrorRecord(
        error_id=error_id,
        error_type=error_type,
        error_message=message or f"{error_type} in {error_id}",
        severity=severity,
        timestamp=timestamp or datetime.now(timezone.utc),
        embedding=embedding if embedding is not None else [1.0, 0.0, 0.0],
    )


# sim(E1,E2)=0.9, sim(E1,E3)=0.5, sim(E1,E4)=0.3, sim(E2,E3)=0.2, sim(E3,E4)=0.95
SCENARIO_SIMILARITIES = {
    ("E1", "E2"): 0.9,
    ("E1", "E3"): 0.5,
    ("E1", "E4"): 0.3,
    ("E2", "E3"): 0.2,
    ("E3", "E4"): 0.95,
    ("E2", "E4"): 0.1,
}


@pytest.fixture
def scenario_records():
    """Four records E1..E4 in iteration order."""
    return [
        make_record("E1", [1.0, 0.0, 0.0], error_type="DbTimeout", severity="ERROR"),
        make_record("E2", [0.9, 0.1, 0.0], error_type="DbTimeout", severity="WARN"),
        make_record("E3", [0.0, 1.0, 0.0], error_type="NullPointer", severity="CRITICAL"),
        make_record("E4", [0.0, 0.9, 0.1], error_type="NullPointer", severity="CRITICAL"),
    ]


@pytest.fixture
def scenario_store():
    return ScriptedStore(["E1", "E2", "E3", "E4"], SCENARIO_SIMILARITIES)
