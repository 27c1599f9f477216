"""
Turn raw clusters into reportable error groups.
"""
from collections import Counter
from typing import List

import numpy as np

from errorlens.core.models import ErrorRecord, ErrorGroup


def average_pairwise_similarity(records: List[ErrorRecord]) -> float:
    """
    Mean cosine similarity over all member pairs.

    Single-member clusters score 1.0. A zero vector has similarity 0.0 with
    everything.
    """
    if len(records) <= 1:
        return 1.0

    matrix = np.array([r.embedding for r in records], dtype=np.float64)
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    normalized = np.divide(matrix, norms, out=np.zeros_like(matrix), where=norms > 0)

    similarities = normalized @ normalized.T
    upper = np.triu_indices(len(records), k=1)
    return float(np.clip(similarities[upper].mean(), -1.0, 1.0))


def most_common_severity(records: List[ErrorRecord]) -> str:
    """
    The severity with the highest count. Ties go to the severity seen first
    in member order (Counter keeps first-insertion order among equal counts).
    """
    counts = Counter(r.severity for r in records)
    return counts.most_common(1)[0][0]


class GroupAssembler:
    """Builds an ErrorGroup from the members of one cluster."""

    def assemble(self, group_id: int, members: List[ErrorRecord]) -> ErrorGroup:
        """
        Args:
            group_id: Discovery-order counter, starting at 1
            members: Cluster members, seed first

        Returns:
            The assembled group; the seed is its representative
        """
        if not members:
            raise ValueError("Cannot assemble a group from an empty cluster")

        representative = members[0]
        count = len(members)

        return ErrorGroup(
            group_id=group_id,
            group_name=f"{representative.error_type} - {count} occurrences",
            representative_error_type=representative.error_type,
            representative_error_message=representative.error_message,
            errors=list(members),
            error_count=count,
            avg_similarity=average_pairwise_similarity(members),
            severity=most_common_severity(members),
        )
