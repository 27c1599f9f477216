"""
Neighbor resolution between the clustering engine and a similarity store.

Adapter failures are returned as values rather than raised, so the engine
decides explicitly how a failed query affects the run.
"""
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

import numpy as np

from errorlens.core.models import ErrorRecord
from errorlens.core.exceptions import AdapterQueryError
from errorlens.clustering.cancellation import CancellationToken
from errorlens.embeddings.vector_store import SimilarityStore
from errorlens.utils.logger import logger

# Seconds between cancellation checks while a store call is in flight
POLL_INTERVAL = 0.05


@dataclass
class NeighborsFound:
    """Successful query: neighbors resolved from the snapshot, best first."""

    source_id: str
    records: List[ErrorRecord] = field(default_factory=list)


@dataclass
class NeighborQueryFailed:
    """Failed query; the cause is kept for reporting."""

    source_id: str
    error: AdapterQueryError


@dataclass
class NeighborQueryCancelled:
    """The run's token was cancelled while the query was in flight."""

    source_id: str


NeighborLookup = Union[NeighborsFound, NeighborQueryFailed, NeighborQueryCancelled]


class _QueryCancelled(Exception):
    pass


class NeighborResolver:
    """
    Resolve the neighbors of one record against a similarity store.

    Matches are joined back to the records of the current snapshot; ids the
    snapshot does not contain are dropped.
    """

    def __init__(
        self,
        store: SimilarityStore,
        records_by_id: Dict[str, ErrorRecord],
        query_timeout: Optional[float] = None,
    ):
        """
        Args:
            store: Similarity store to query
            records_by_id: Snapshot used to resolve matched ids
            query_timeout: Per-query limit in seconds. Queries then run on a
                worker thread; a timed-out worker is abandoned, not reused.
        """
        self.store = store
        self.records_by_id = records_by_id
        self.query_timeout = query_timeout
        self._executor: Optional[ThreadPoolExecutor] = None

    def __enter__(self) -> "NeighborResolver":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    @staticmethod
    def to_query_vector(record: ErrorRecord) -> np.ndarray:
        """Serialize an embedding into the store's query representation."""
        return np.asarray(record.embedding, dtype=np.float32)

    def _query(
        self,
        record: ErrorRecord,
        threshold: float,
        cancel_token: Optional[CancellationToken],
    ):
        query_vector = self.to_query_vector(record)
        if self.query_timeout is None and cancel_token is None:
            return self.store.find_within_threshold(query_vector, record.error_id, threshold)

        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="neighbor-query")

        future = self._executor.submit(
            self.store.find_within_threshold, query_vector, record.error_id, threshold
        )
        query_deadline = (
            time.monotonic() + self.query_timeout if self.query_timeout is not None else None
        )

        while True:
            waits = [POLL_INTERVAL]
            if query_deadline is not None:
                waits.append(max(0.0, query_deadline - time.monotonic()))
            if cancel_token is not None and cancel_token.remaining is not None:
                waits.append(cancel_token.remaining)

            try:
                return future.result(timeout=min(waits))
            except FutureTimeoutError:
                if future.done():
                    continue
                if cancel_token is not None and cancel_token.cancelled:
                    self.close()
                    raise _QueryCancelled()
                if query_deadline is not None and time.monotonic() >= query_deadline:
                    self.close()
                    raise TimeoutError(f"query exceeded {self.query_timeout}s")

    def resolve(
        self,
        record: ErrorRecord,
        threshold: float,
        cancel_token: Optional[CancellationToken] = None,
    ) -> NeighborLookup:
        """
        Find the records of the snapshot within `threshold` of `record`.

        Args:
            record: Source record; must carry an embedding
            threshold: Inclusive minimum similarity
            cancel_token: Run token; a cancel or deadline interrupts the wait
                for the store call

        Returns:
            NeighborsFound; NeighborQueryFailed if the store raised or the
            query timed out; NeighborQueryCancelled if the token fired first
        """
        if not record.has_embedding:
            raise ValueError(f"Record {record.error_id} has no embedding")

        try:
            matches = self._query(record, threshold, cancel_token)
        except _QueryCancelled:
            logger.info("Neighbor query interrupted by cancellation", error_id=record.error_id)
            return NeighborQueryCancelled(source_id=record.error_id)
        except Exception as e:
            failure = AdapterQueryError(record.error_id, e)
            logger.warning(
                "Neighbor query failed, treating as no neighbors",
                error_id=record.error_id,
                error=repr(e),
            )
            return NeighborQueryFailed(source_id=record.error_id, error=failure)

        neighbors = []
        dropped = 0
        for match in matches:
            if match.error_id == record.error_id:
                continue
            neighbor = self.records_by_id.get(match.error_id)
            if neighbor is None:
                dropped += 1
                continue
            neighbors.append(neighbor)

        if dropped:
            logger.debug(
                "Dropped unresolved neighbor ids",
                error_id=record.error_id,
                dropped=dropped,
            )

        return NeighborsFound(source_id=record.error_id, records=neighbors)
