"""
Size filtering and ordering of error groups.
"""
from typing import List

from errorlens.core.models import ErrorGroup


def filter_and_rank(groups: List[ErrorGroup], min_group_size: int) -> List[ErrorGroup]:
    """
    Drop groups smaller than `min_group_size` and order the rest by size,
    largest first. `sorted` is stable, so equal-size groups keep their
    discovery order.
    """
    kept = [g for g in groups if g.error_count >= min_group_size]
    return sorted(kept, key=lambda g: g.error_count, reverse=True)
