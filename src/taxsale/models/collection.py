"""
Collection Result Models

Outcome of a collection run and the aggregated health report.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CollectionStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"


class ErrorLogEntry(_CamelModel):
    message: str
    timestamp: datetime = Field(default_factory=_utcnow)


class CollectionStats(_CamelModel):
    """
    Counters for one collection.

    Attributes:
        duration_ms: Wall time from start to persistence finished
        fetched: Raw records returned by the collector
        transformed: Records that passed the transformation pipeline
        saved: Records upserted (new + updated)
        new: Records inserted
        updated: Records updated in place
        validation_failed: Records rejected by validation
        persistence_failed: Records whose upsert raised
        enrichment_failed: Records kept without enrichment
    """

    duration_ms: int = 0
    fetched: int = 0
    transformed: int = 0
    saved: int = 0
    new: int = 0
    updated: int = 0
    validation_failed: int = 0
    persistence_failed: int = 0
    enrichment_failed: int = 0


class CollectionResult(_CamelModel):
    """
    Result returned by a collector and completed by the manager.

    `records` carries raw records from the collector to the manager and is
    never serialized. `data` holds the identities of stored properties.
    """

    source_id: Optional[str] = None
    collector_name: str
    timestamp: datetime = Field(default_factory=_utcnow)
    success: bool
    status: CollectionStatus = CollectionStatus.SUCCESS
    message: str = ""
    record_count: int = 0
    records: List[Dict[str, Any]] = Field(default_factory=list, exclude=True)
    data: List[str] = Field(default_factory=list)
    raw_data_path: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    stats: CollectionStats = Field(default_factory=CollectionStats)
    error_log: List[ErrorLogEntry] = Field(default_factory=list)

    @classmethod
    def failure(
        cls,
        collector_name: str,
        message: str,
        source_id: Optional[str] = None,
        **metadata: Any,
    ) -> "CollectionResult":
        """Build an error result with a single error_log entry."""
        return cls(
            source_id=source_id,
            collector_name=collector_name,
            success=False,
            status=CollectionStatus.ERROR,
            message=message,
            metadata=metadata,
            error_log=[ErrorLogEntry(message=message)],
        )

    def log_error(self, message: str) -> None:
        self.error_log.append(ErrorLogEntry(message=message))

    @property
    def used_sample_data(self) -> bool:
        return bool(self.metadata.get("used_sample_data"))


class SourceValidation(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)


class HealthIssue(_CamelModel):
    """
    One finding in a health report.

    Attributes:
        issue_type: source, collection, collector or system
        id: Id of the source, collection run or collector the issue is about
        name: Display name of the affected source
        source_id: Source the issue concerns, when there is one
        message: Description
        timestamp: When the underlying event happened
        severity: warning, error or critical
    """

    issue_type: str = Field(..., alias="type")
    id: str
    name: str
    source_id: Optional[str] = None
    message: str
    timestamp: Optional[datetime] = None
    severity: str


class SourceCounts(_CamelModel):
    total: int = 0
    active: int = 0
    warning: int = 0
    error: int = 0


class CollectorCounts(_CamelModel):
    total: int = 0
    active: int = 0


class RecentCollections(_CamelModel):
    total: int = 0
    successful: int = 0
    failed: int = 0


class HealthCheckResult(_CamelModel):
    healthy: bool
    status: str
    issues: List[HealthIssue] = Field(default_factory=list)
    sources: SourceCounts = Field(default_factory=SourceCounts)
    collectors: CollectorCounts = Field(default_factory=CollectorCounts)
    recent_collections: RecentCollections = Field(default_factory=RecentCollections)
    last_checked: datetime = Field(default_factory=_utcnow)
