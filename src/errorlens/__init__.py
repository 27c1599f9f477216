"""
ErrorLens - similarity-based grouping of error records.

This package partitions error records that carry vector embeddings into groups
of semantically similar errors, using threshold-based nearest-neighbor search
against a vector index.
"""

__version__ = "0.1.0"

from errorlens.config import settings

__all__ = [
    "settings",
    "__version__",
]
