"""
Custom exceptions for the ErrorLens application.
"""


class ErrorLensError(Exception):
    """Base exception for all ErrorLens errors."""
    pass


class InvalidParametersError(ErrorLensError, ValueError):
    """Raised when grouping parameters are outside their allowed range."""
    pass


class VectorStoreError(ErrorLensError):
    """Raised when vector store operations fail."""
    pass


class AdapterQueryError(ErrorLensError):
    """Raised when a single neighbor query against the similarity store fails."""

    def __init__(self, error_id: str, cause: BaseException):
        self.error_id = error_id
        self.cause = cause
        super().__init__(f"Neighbor query failed for {error_id}: {cause!r}")


class ClusteringError(ErrorLensError):
    """Raised when clustering operations fail."""
    pass


class ClusteringCancelledError(ClusteringError):
    """Raised when a clustering run is cancelled or exceeds its deadline."""

    def __init__(self, processed: int, total: int):
        self.processed = processed
        self.total = total
        super().__init__(
            f"Clustering cancelled after {processed} of {total} records; "
            "no result was produced"
        )


class DataLoadError(ErrorLensError):
    """Raised when data loading fails."""
    pass
