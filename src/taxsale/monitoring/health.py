"""
Helpers for deriving overall collection health from source state and run history.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Iterable, List, Optional, Sequence

from src.taxsale.models.collection import (
    CollectorCounts,
    HealthCheckResult,
    HealthIssue,
    RecentCollections,
    SourceCounts,
)
from src.taxsale.models.source import ScheduleFrequency, Source, SourceStatus
from src.taxsale.utils.clock import ensure_utc, utcnow
from src.taxsale.utils.logger import get_logger

logger = get_logger(__name__)

SEVERITY_ORDER = {"critical": 0, "error": 1, "warning": 2}


def source_issues(
    sources: Sequence[Source],
    now: datetime,
    stale_after_days: int = 7,
) -> List[HealthIssue]:
    """Issues for sources in error or warning state and active sources gone stale."""
    issues = []
    for source in sources:
        if source.status == SourceStatus.ERROR:
            issues.append(HealthIssue(
                issue_type="source",
                id=source.id,
                name=source.name,
                source_id=source.id,
                message=source.metadata.get("errorMessage") or "Source is in error state",
                timestamp=source.last_collected,
                severity="error",
            ))
        elif source.status == SourceStatus.WARNING:
            issues.append(HealthIssue(
                issue_type="source",
                id=source.id,
                name=source.name,
                source_id=source.id,
                message=source.metadata.get("warningMessage") or "Source has warnings",
                timestamp=source.last_collected,
                severity="warning",
            ))
        elif source.status == SourceStatus.ACTIVE and source.schedule.frequency != ScheduleFrequency.MANUAL:
            last = ensure_utc(source.last_collected)
            if last is None:
                issues.append(HealthIssue(
                    issue_type="source",
                    id=source.id,
                    name=source.name,
                    source_id=source.id,
                    message="Source has never been collected",
                    severity="warning",
                ))
                continue
            days = (now - last).total_seconds() / 86400
            if days > stale_after_days:
                issues.append(HealthIssue(
                    issue_type="source",
                    id=source.id,
                    name=source.name,
                    source_id=source.id,
                    message=f"Source hasn't been collected in {round(days)} days",
                    timestamp=last,
                    severity="warning",
                ))
    return issues


def run_issues(runs: Iterable[Any], sources: Sequence[Source]) -> List[HealthIssue]:
    """One error issue per failed collection run."""
    names = {source.id: source.name for source in sources}
    issues = []
    for run in runs:
        if run.status != "error":
            continue
        error_log = run.error_log or []
        message = error_log[0].get("message") if error_log else None
        issues.append(HealthIssue(
            issue_type="collection",
            id=str(run.id),
            name=names.get(run.source_id, "Unknown source"),
            source_id=run.source_id,
            message=message or "Collection failed",
            timestamp=ensure_utc(run.timestamp),
            severity="error",
        ))
    return issues


def collector_issues(sources: Sequence[Source], registered: Iterable[str]) -> List[HealthIssue]:
    """Error issues for sources bound to a collector type that is not registered."""
    registered = set(registered)
    return [
        HealthIssue(
            issue_type="collector",
            id=source.collector_type,
            name=source.name,
            source_id=source.id,
            message=f"No collector registered for type {source.collector_type}",
            severity="error",
        )
        for source in sources
        if source.is_active() and source.collector_type not in registered
    ]


def overall_status(issues: Sequence[HealthIssue], source_total: int, warning_ratio: float = 0.2) -> str:
    """
    unhealthy if anything is critical, degraded on any error or when warnings
    exceed warning_ratio of sources, healthy otherwise.
    """
    if any(issue.severity == "critical" for issue in issues):
        return "unhealthy"
    if any(issue.severity == "error" for issue in issues):
        return "degraded"
    warnings = sum(1 for issue in issues if issue.severity == "warning")
    if warnings > 0 and warnings > source_total * warning_ratio:
        return "degraded"
    return "healthy"


def evaluate_health(
    sources: Sequence[Source],
    recent_runs: Sequence[Any],
    registered_collectors: Iterable[str],
    now: Optional[datetime] = None,
    stale_after_days: int = 7,
    warning_ratio: float = 0.2,
    system_errors: Sequence[str] = (),
) -> HealthCheckResult:
    """
    Build a HealthCheckResult.

    Args:
        sources: Every configured source
        recent_runs: Collection runs inside the lookback window
        registered_collectors: Names of collectors in the registry
        now: Evaluation time (defaults to now, UTC)
        stale_after_days: Age after which an active scheduled source is stale
        warning_ratio: Share of sources with warnings that degrades the system
        system_errors: Failures reading the store; each becomes a critical issue
    """
    now = ensure_utc(now) or utcnow()
    registered = list(registered_collectors)

    issues: List[HealthIssue] = [
        HealthIssue(
            issue_type="system",
            id="store",
            name="persistence",
            message=message,
            timestamp=now,
            severity="critical",
        )
        for message in system_errors
    ]
    issues.extend(source_issues(sources, now, stale_after_days))
    issues.extend(run_issues(recent_runs, sources))
    issues.extend(collector_issues(sources, registered))
    issues.sort(key=lambda issue: SEVERITY_ORDER.get(issue.severity, 99))

    status = overall_status(issues, len(sources), warning_ratio)
    referenced = {source.collector_type for source in sources if source.is_active()}

    result = HealthCheckResult(
        healthy=status == "healthy",
        status=status,
        issues=issues,
        sources=SourceCounts(
            total=len(sources),
            active=sum(1 for s in sources if s.status == SourceStatus.ACTIVE),
            warning=sum(1 for s in sources if s.status == SourceStatus.WARNING),
            error=sum(1 for s in sources if s.status == SourceStatus.ERROR),
        ),
        collectors=CollectorCounts(
            total=len(registered),
            active=sum(1 for name in registered if name in referenced),
        ),
        recent_collections=RecentCollections(
            total=len(recent_runs),
            successful=sum(1 for run in recent_runs if run.status == "success"),
            failed=sum(1 for run in recent_runs if run.status == "error"),
        ),
        last_checked=now,
    )

    logger.info(
        "health_evaluated",
        status=status,
        issue_count=len(issues),
        source_count=len(sources),
    )
    return result


def lookback_start(now: datetime, lookback_hours: int) -> datetime:
    return now - timedelta(hours=lookback_hours)


class RunRecord:
    """Session-independent view of a CollectionRun used for health evaluation."""

    __slots__ = ("id", "source_id", "status", "error_log", "timestamp")

    def __init__(self, id, source_id, status, error_log, timestamp):
        self.id = id
        self.source_id = source_id
        self.status = status
        self.error_log = error_log
        self.timestamp = timestamp

    @classmethod
    def from_run(cls, run: Any) -> "RunRecord":
        return cls(
            id=run.id,
            source_id=run.source_id,
            status=run.status,
            error_log=list(run.error_log or []),
            timestamp=ensure_utc(run.timestamp),
        )
