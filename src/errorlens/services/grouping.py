"""
Error grouping service: selects the records to cluster and runs the clusterer.
"""
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Protocol

from errorlens.core.models import ErrorRecord, ErrorGroup, GroupingStatistics
from errorlens.core.exceptions import InvalidParametersError
from errorlens.clustering.cancellation import CancellationToken
from errorlens.clustering.clusterer import SimilarityClusterer, validate_parameters
from errorlens.embeddings.vector_store import SimilarityStore
from errorlens.utils.logger import logger
from errorlens.config import settings


class ErrorRepository(Protocol):
    """Supplies snapshots of error records in a deterministic order."""

    def find_all(self) -> List[ErrorRecord]:
        ...

    def find_recent(self, since: datetime) -> List[ErrorRecord]:
        ...


class InMemoryErrorRepository:
    """
    Repository over an in-memory list of records.
    Snapshots are ordered by ascending error_id.
    """

    def __init__(self, records: Iterable[ErrorRecord]):
        self._records = sorted(records, key=lambda r: r.error_id)

    def __len__(self) -> int:
        return len(self._records)

    def find_all(self) -> List[ErrorRecord]:
        return list(self._records)

    def find_recent(self, since: datetime) -> List[ErrorRecord]:
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        return [r for r in self._records if r.timestamp >= since]


class ErrorGroupingService:
    """
    Groups stored errors by embedding similarity.
    """

    def __init__(
        self,
        repository: ErrorRepository,
        store: SimilarityStore,
        clusterer: Optional[SimilarityClusterer] = None,
    ):
        self.repository = repository
        self.clusterer = clusterer or SimilarityClusterer(store)

    def _group(
        self,
        errors: List[ErrorRecord],
        similarity_threshold: float,
        min_group_size: int,
        cancel_token: Optional[CancellationToken],
    ) -> List[ErrorGroup]:
        errors_with_embeddings = [e for e in errors if e.has_embedding]
        logger.info(
            "Selected errors with embeddings",
            total=len(errors),
            with_embeddings=len(errors_with_embeddings),
        )

        if not errors_with_embeddings:
            return []

        groups = self.clusterer.cluster(
            errors_with_embeddings,
            threshold=similarity_threshold,
            min_group_size=min_group_size,
            cancel_token=cancel_token,
        )
        logger.info("Created error groups", num_groups=len(groups))
        return groups

    def group_errors(
        self,
        similarity_threshold: float = settings.SIMILARITY_THRESHOLD,
        min_group_size: int = settings.MIN_GROUP_SIZE,
        hours: int = settings.DEFAULT_HOURS,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[ErrorGroup]:
        """
        Group errors that occurred within the last `hours` hours.

        Raises:
            InvalidParametersError: If any parameter is out of range
        """
        validate_parameters(similarity_threshold, min_group_size)
        if isinstance(hours, bool) or not isinstance(hours, int) or hours < 1:
            raise InvalidParametersError(f"hours must be a positive integer, got {hours!r}")

        logger.info(
            "Grouping recent errors",
            threshold=similarity_threshold,
            min_group_size=min_group_size,
            hours=hours,
        )

        since = datetime.now(timezone.utc) - timedelta(hours=hours)
        return self._group(
            self.repository.find_recent(since),
            similarity_threshold,
            min_group_size,
            cancel_token,
        )

    def group_all_errors(
        self,
        similarity_threshold: float = settings.SIMILARITY_THRESHOLD,
        min_group_size: int = settings.MIN_GROUP_SIZE,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[ErrorGroup]:
        """
        Group every stored error regardless of when it occurred.

        Raises:
            InvalidParametersError: If any parameter is out of range
        """
        validate_parameters(similarity_threshold, min_group_size)

        logger.info(
            "Grouping all errors",
            threshold=similarity_threshold,
            min_group_size=min_group_size,
        )
        return self._group(
            self.repository.find_all(),
            similarity_threshold,
            min_group_size,
            cancel_token,
        )

    def get_grouping_statistics(
        self,
        similarity_threshold: float = settings.SIMILARITY_THRESHOLD,
        hours: Optional[int] = settings.DEFAULT_HOURS,
        cancel_token: Optional[CancellationToken] = None,
    ) -> GroupingStatistics:
        """
        Summary statistics over all groups, singletons included.
        `hours=None` covers every stored error.
        """
        if hours is None:
            groups = self.group_all_errors(similarity_threshold, 1, cancel_token=cancel_token)
        else:
            groups = self.group_errors(similarity_threshold, 1, hours, cancel_token=cancel_token)
        return GroupingStatistics.from_groups(groups)
