"""
Clustering module for error grouping using threshold similarity search.
Seeds clusters in input order and absorbs each seed's direct neighbors.
"""

from errorlens.clustering.cancellation import CancellationToken
from errorlens.clustering.clusterer import SimilarityClusterer, validate_parameters
from errorlens.clustering.ranking import filter_and_rank

__all__ = [
    "CancellationToken",
    "SimilarityClusterer",
    "filter_and_rank",
    "validate_parameters",
]
