"""
Threshold-based similarity clustering for error grouping.
Groups errors whose embeddings lie within a similarity threshold of a seed error.
"""
from typing import Dict, List, Optional, Sequence

from tqdm import tqdm

from errorlens.core.models import ErrorRecord, ErrorGroup, ClusteringReport
from errorlens.core.exceptions import (
    ClusteringCancelledError,
    ClusteringError,
    InvalidParametersError,
)
from errorlens.clustering.assembler import GroupAssembler
from errorlens.clustering.cancellation import CancellationToken
from errorlens.clustering.neighbors import (
    NeighborResolver,
    NeighborQueryFailed,
    NeighborQueryCancelled,
)
from errorlens.clustering.ranking import filter_and_rank
from errorlens.embeddings.vector_store import SimilarityStore
from errorlens.utils.logger import logger
from errorlens.config import settings


def validate_parameters(threshold: float, min_group_size: int) -> None:
    """
    Reject out-of-range grouping parameters.

    Raises:
        InvalidParametersError: threshold outside (0, 1] or min_group_size < 1
    """
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        raise InvalidParametersError(f"threshold must be a number, got {threshold!r}")
    if not 0.0 < threshold <= 1.0:
        raise InvalidParametersError(f"threshold must be in (0, 1], got {threshold}")
    if isinstance(min_group_size, bool) or not isinstance(min_group_size, int):
        raise InvalidParametersError(f"min_group_size must be an integer, got {min_group_size!r}")
    if min_group_size < 1:
        raise InvalidParametersError(f"min_group_size must be >= 1, got {min_group_size}")


class SimilarityClusterer:
    """
    Seed-and-absorb clustering over a similarity store.

    Records are visited in input order. Each unvisited record seeds a new
    cluster and absorbs its unvisited direct neighbors (similarity >= threshold).
    Neighbors of neighbors are not expanded: a record that is only similar to
    an absorbed neighbor, not to the seed, seeds its own cluster later.

    Every record is visited exactly once, so the raw clusters partition the
    input. All traversal state is local to a single call, so one instance can
    serve concurrent runs as long as the store allows concurrent reads.
    """

    def __init__(
        self,
        store: SimilarityStore,
        threshold: Optional[float] = None,
        min_group_size: Optional[int] = None,
        query_timeout: Optional[float] = None,
        show_progress: bool = False,
    ):
        """
        Initialize the clusterer.

        Args:
            store: Similarity store holding (at least) the records to cluster

            threshold: Default similarity threshold in (0, 1].
                Higher = smaller, tighter groups.

            min_group_size: Default minimum members for a group to be reported.

            query_timeout: Seconds allowed for each store query. A query that
                times out counts as a failed query (no neighbors).

            show_progress: Show a tqdm progress bar over seeds.
        """
        self.store = store
        self.threshold = threshold if threshold is not None else settings.SIMILARITY_THRESHOLD
        self.min_group_size = (
            min_group_size if min_group_size is not None else settings.MIN_GROUP_SIZE
        )
        self.query_timeout = query_timeout if query_timeout is not None else settings.QUERY_TIMEOUT
        self.show_progress = show_progress
        self.assembler = GroupAssembler()

        validate_parameters(self.threshold, self.min_group_size)

        logger.info(
            "Initialized SimilarityClusterer",
            threshold=self.threshold,
            min_group_size=self.min_group_size,
            query_timeout=self.query_timeout,
        )

    @staticmethod
    def _check_records(records: Sequence[ErrorRecord]) -> Dict[str, ErrorRecord]:
        records_by_id: Dict[str, ErrorRecord] = {}
        dimension = None
        for record in records:
            if not record.has_embedding:
                raise ClusteringError(f"Record {record.error_id} has no embedding")
            if dimension is None:
                dimension = len(record.embedding)
            elif len(record.embedding) != dimension:
                raise ClusteringError(
                    f"Embedding dimension mismatch for {record.error_id}: "
                    f"expected {dimension}, got {len(record.embedding)}"
                )
            if record.error_id in records_by_id:
                raise ClusteringError(f"Duplicate error id: {record.error_id}")
            records_by_id[record.error_id] = record
        return records_by_id

    def find_clusters(
        self,
        records: Sequence[ErrorRecord],
        threshold: float,
        cancel_token: Optional[CancellationToken] = None,
        failed_query_ids: Optional[List[str]] = None,
    ) -> List[List[ErrorRecord]]:
        """
        Partition records into raw clusters, in discovery order.

        Args:
            records: Records with embeddings of equal dimension, in a
                deterministic order
            threshold: Inclusive similarity threshold
            cancel_token: Checked before each seed query and while each
                store call is in flight
            failed_query_ids: If given, ids of seeds whose query failed are appended

        Returns:
            Clusters as member lists, seed first, then neighbors in the order
            the store returned them

        Raises:
            ClusteringCancelledError: If the token is cancelled mid-run
        """
        records_by_id = self._check_records(records)
        total = len(records)

        visited = set()
        clusters: List[List[ErrorRecord]] = []

        resolver = NeighborResolver(self.store, records_by_id, query_timeout=self.query_timeout)

        with resolver:
            for record in tqdm(records, desc="Clustering", disable=not self.show_progress):
                if record.error_id in visited:
                    continue

                if cancel_token is not None:
                    cancel_token.raise_if_cancelled(processed=len(visited), total=total)

                cluster = [record]
                visited.add(record.error_id)

                lookup = resolver.resolve(record, threshold, cancel_token=cancel_token)
                if isinstance(lookup, NeighborQueryCancelled):
                    raise ClusteringCancelledError(processed=len(visited) - 1, total=total)
                if isinstance(lookup, NeighborQueryFailed):
                    if failed_query_ids is not None:
                        failed_query_ids.append(lookup.source_id)
                else:
                    for neighbor in lookup.records:
                        if neighbor.error_id not in visited:
                            cluster.append(neighbor)
                            visited.add(neighbor.error_id)

                clusters.append(cluster)

        return clusters

    def run(
        self,
        records: Sequence[ErrorRecord],
        threshold: Optional[float] = None,
        min_group_size: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ClusteringReport:
        """
        Cluster records and return the ranked groups with run metadata.

        Args:
            records: Records with embeddings, in a deterministic order
            threshold: Similarity threshold (default: instance setting)
            min_group_size: Minimum group size (default: instance setting)
            cancel_token: Optional cancellation/deadline token

        Returns:
            ClusteringReport with groups sorted by size, largest first

        Raises:
            InvalidParametersError: If parameters are out of range
            ClusteringCancelledError: If the run was cancelled
        """
        threshold = self.threshold if threshold is None else threshold
        min_group_size = self.min_group_size if min_group_size is None else min_group_size
        validate_parameters(threshold, min_group_size)

        if not records:
            logger.info("No records to cluster")
            return ClusteringReport(
                groups=[],
                num_records=0,
                num_raw_clusters=0,
                threshold=threshold,
                min_group_size=min_group_size,
            )

        logger.info(
            "Starting similarity clustering",
            num_records=len(records),
            threshold=threshold,
            min_group_size=min_group_size,
        )

        failed_query_ids: List[str] = []
        clusters = self.find_clusters(
            records,
            threshold,
            cancel_token=cancel_token,
            failed_query_ids=failed_query_ids,
        )

        groups = [
            self.assembler.assemble(group_id, members)
            for group_id, members in enumerate(clusters, start=1)
        ]
        ranked = filter_and_rank(groups, min_group_size)

        if failed_query_ids:
            logger.warning(
                "Clustering completed with failed neighbor queries",
                num_failed=len(failed_query_ids),
            )

        logger.info(
            "Similarity clustering complete",
            num_raw_clusters=len(clusters),
            num_groups=len(ranked),
            num_singletons=sum(1 for c in clusters if len(c) == 1),
        )

        return ClusteringReport(
            groups=ranked,
            num_records=len(records),
            num_raw_clusters=len(clusters),
            failed_query_ids=failed_query_ids,
            threshold=threshold,
            min_group_size=min_group_size,
        )

    def cluster(
        self,
        records: Sequence[ErrorRecord],
        threshold: Optional[float] = None,
        min_group_size: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[ErrorGroup]:
        """
        Group similar errors.

        Returns an empty list when there are no records or no group reaches
        `min_group_size`; raises only for invalid parameters or cancellation.
        """
        return self.run(
            records,
            threshold=threshold,
            min_group_size=min_group_size,
            cancel_token=cancel_token,
        ).groups
