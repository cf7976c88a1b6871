"""
Tests for health evaluation
"""
from datetime import datetime, timedelta, timezone

from src.taxsale.models.source import ScheduleFrequency, SourceSchedule, SourceStatus
from src.taxsale.monitoring.health import RunRecord, evaluate_health, overall_status

NOW = datetime(2024, 6, 1, 12, tzinfo=timezone.utc)
WEEKLY = SourceSchedule(frequency=ScheduleFrequency.WEEKLY, day_of_week=1)


def run(run_id, source_id, status, message=None):
    error_log = [{"message": message, "timestamp": NOW.isoformat()}] if message else []
    return RunRecord(run_id, source_id, status, error_log, NOW - timedelta(hours=1))


class TestEvaluateHealth:
    """Tests for evaluate_health"""

    def test_healthy(self, make_source):
        sources = [make_source("a"), make_source("b")]
        runs = [run(1, "a", "success"), run(2, "b", "success")]

        health = evaluate_health(sources, runs, ["static"], now=NOW)

        assert health.healthy
        assert health.status == "healthy"
        assert health.sources.total == 2
        assert health.sources.active == 2
        assert health.collectors.total == 1
        assert health.collectors.active == 1
        assert health.recent_collections.total == 2
        assert health.recent_collections.successful == 2
        assert health.last_checked == NOW

    def test_error_source_degrades(self, make_source):
        sources = [
            make_source("a", status=SourceStatus.ERROR, metadata={"errorMessage": "timeout"}),
            make_source("b"),
        ]

        health = evaluate_health(sources, [], ["static"], now=NOW)

        assert health.status == "degraded"
        assert health.sources.error == 1
        assert health.issues[0].message == "timeout"
        assert health.issues[0].severity == "error"

    def test_failed_run_becomes_issue(self, make_source):
        sources = [make_source("a", name="County A")]

        health = evaluate_health(sources, [run(7, "a", "error", "HTTP 500")], ["static"], now=NOW)

        issue = health.issues[0]
        assert issue.issue_type == "collection"
        assert issue.id == "7"
        assert issue.name == "County A"
        assert issue.message == "HTTP 500"
        assert health.recent_collections.failed == 1
        assert health.status == "degraded"

    def test_warnings_degrade_above_ratio(self, make_source):
        sources = [make_source("a", status=SourceStatus.WARNING)] + [
            make_source(f"ok-{i}") for i in range(4)
        ]
        assert evaluate_health(sources, [], ["static"], now=NOW).status == "healthy"

        sources.append(make_source("b", status=SourceStatus.WARNING))
        assert evaluate_health(sources, [], ["static"], now=NOW).status == "degraded"

    def test_stale_active_source(self, make_source):
        sources = [make_source("a", schedule=WEEKLY, last_collected=NOW - timedelta(days=10))]

        health = evaluate_health(sources, [], ["static"], now=NOW, stale_after_days=7)

        assert health.issues[0].message == "Source hasn't been collected in 10 days"
        assert health.issues[0].severity == "warning"

    def test_never_collected_scheduled_source(self, make_source):
        health = evaluate_health([make_source("a", schedule=WEEKLY)], [], ["static"], now=NOW)

        assert health.issues[0].message == "Source has never been collected"

    def test_manual_source_never_stale(self, make_source):
        health = evaluate_health([make_source("a")], [], ["static"], now=NOW)
        assert health.issues == []

    def test_unregistered_collector(self, make_source):
        health = evaluate_health([make_source("a", collector_type="ghost")], [], ["static"], now=NOW)

        assert health.issues[0].issue_type == "collector"
        assert health.issues[0].id == "ghost"
        assert health.collectors.active == 0
        assert health.status == "degraded"

    def test_system_error_is_critical_and_first(self, make_source):
        sources = [make_source("a", status=SourceStatus.WARNING)]

        health = evaluate_health(sources, [], ["static"], now=NOW, system_errors=["store down"])

        assert health.status == "unhealthy"
        assert health.issues[0].severity == "critical"
        assert health.issues[1].severity == "warning"

    def test_serializes_with_camel_case(self, make_source):
        health = evaluate_health([make_source("a", status=SourceStatus.ERROR)], [], ["static"], now=NOW)

        payload = health.model_dump(by_alias=True, mode="json")

        assert "recentCollections" in payload
        assert "lastChecked" in payload
        assert payload["issues"][0]["type"] == "source"
        assert payload["issues"][0]["sourceId"] == "a"


class TestOverallStatus:
    """Tests for overall_status"""

    def test_no_issues(self):
        assert overall_status([], 0) == "healthy"
