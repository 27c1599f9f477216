"""
Pydantic models for type-safe data handling.
Defines the contract for error records, neighbor matches and grouping results.
"""
import math
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict


class ClusteringStatus(str, Enum):
    """Outcome label for a clustering run, as written by the CLI."""
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ErrorRecord(BaseModel):
    """
    A single recorded error as supplied by the ingestion layer.

    Records without an embedding are excluded from clustering. The clustering
    engine only reads records, it never modifies them.
    """

    # Required fields
    error_id: str = Field(..., min_length=1, description="Unique, totally ordered identifier")
    error_type: str = Field(..., description="Exception class or error classification")
    error_message: str = Field("", description="Error message")
    severity: str = Field(default="ERROR", description="Severity label, e.g. ERROR, WARN, CRITICAL")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the error occurred",
    )
    embedding: Optional[List[float]] = Field(None, description="Dense vector representation")

    # Optional context
    stack_trace: Optional[str] = Field(None, description="Full stack trace")
    application_name: Optional[str] = Field(None, description="Reporting application")
    environment: Optional[str] = Field(None, description="Deployment environment")

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    @field_validator("error_type")
    @classmethod
    def validate_error_type(cls, v: str) -> str:
        """Ensure error type is not blank."""
        if not v or len(v.strip()) == 0:
            raise ValueError("Error type cannot be empty")
        return v.strip()

    @field_validator("severity")
    @classmethod
    def normalize_severity(cls, v: str) -> str:
        """Severity is an open set of labels; compare them case-insensitively."""
        v = (v or "").strip().upper()
        if not v:
            raise ValueError("Severity cannot be empty")
        return v

    @field_validator("timestamp")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Naive timestamps are taken to be UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("embedding")
    @classmethod
    def validate_embedding(cls, v: Optional[List[float]]) -> Optional[List[float]]:
        """Reject empty vectors and non-finite components."""
        if v is None:
            return v
        if len(v) == 0:
            raise ValueError("Embedding cannot be empty")
        if not all(math.isfinite(x) for x in v):
            raise ValueError("Embedding contains NaN or infinite values")
        return v

    @property
    def has_embedding(self) -> bool:
        """Check if this record can take part in clustering."""
        return self.embedding is not None


class NeighborMatch(BaseModel):
    """
    One result of a threshold similarity query.
    """

    error_id: str = Field(..., description="Matched record identifier")
    similarity: float = Field(..., ge=-1.0 - 1e-6, le=1.0 + 1e-6, description="Similarity score")

    model_config = ConfigDict(frozen=True)


class ErrorGroup(BaseModel):
    """
    A group of similar errors produced by one clustering run.

    Group ids are assigned in discovery order starting at 1 and are only
    unique within the run that produced them.
    """

    group_id: int = Field(..., ge=1, description="Discovery-order counter")
    group_name: str = Field(..., description="Representative type and member count")
    representative_error_type: str
    representative_error_message: str
    errors: List[ErrorRecord] = Field(..., min_length=1, description="Members in insertion order")
    error_count: int = Field(..., ge=1)
    avg_similarity: float = Field(..., description="Mean pairwise cosine similarity")
    severity: str = Field(..., description="Most common severity among members")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_error_count(self) -> "ErrorGroup":
        if self.error_count != len(self.errors):
            raise ValueError(
                f"error_count ({self.error_count}) does not match "
                f"number of errors ({len(self.errors)})"
            )
        return self

    @property
    def display_id(self) -> str:
        return f"GROUP-{self.group_id}"

    @property
    def error_ids(self) -> List[str]:
        return [e.error_id for e in self.errors]


class GroupingStatistics(BaseModel):
    """
    Summary numbers over a list of groups.
    """

    total_groups: int = Field(..., ge=0)
    total_errors_clustered: int = Field(..., ge=0)
    largest_group_size: int = Field(..., ge=0)
    average_group_size: float = Field(..., ge=0.0)

    @classmethod
    def from_groups(cls, groups: List[ErrorGroup]) -> "GroupingStatistics":
        sizes = [g.error_count for g in groups]
        return cls(
            total_groups=len(groups),
            total_errors_clustered=sum(sizes),
            largest_group_size=max(sizes) if sizes else 0,
            average_group_size=sum(sizes) / len(sizes) if sizes else 0.0,
        )


class ClusteringReport(BaseModel):
    """
    Complete result of a clustering run with run metadata.
    Only completed runs produce a report; cancelled runs raise
    ClusteringCancelledError, so the report carries no status.
    """

    groups: List[ErrorGroup] = Field(default_factory=list, description="Filtered, ranked groups")
    num_records: int = Field(..., ge=0, description="Records clustered")
    num_raw_clusters: int = Field(..., ge=0, description="Clusters before size filtering")
    failed_query_ids: List[str] = Field(
        default_factory=list,
        description="Seeds whose neighbor query failed and were treated as having no neighbors",
    )
    threshold: float
    min_group_size: int
    completed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_degraded(self) -> bool:
        """True when at least one neighbor query failed during the run."""
        return len(self.failed_query_ids) > 0

    @property
    def statistics(self) -> GroupingStatistics:
        return GroupingStatistics.from_groups(self.groups)
