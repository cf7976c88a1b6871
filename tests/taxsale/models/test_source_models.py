"""
Tests for Source and CollectionResult models.
"""
from src.taxsale.models.collection import CollectionResult, CollectionStatus
from src.taxsale.models.source import ScheduleFrequency, Source, SourceStatus, SourceType


class TestSource:
    """Tests for Source"""

    def test_parses_camel_case_definition(self):
        source = Source.model_validate({
            "id": "stmarys-md",
            "name": "St. Mary's County",
            "type": "county-website",
            "url": "https://example.gov/taxsale",
            "region": {"state": "md", "county": "St. Mary's"},
            "collectorType": "stmarys-county-collector",
            "schedule": {"frequency": "weekly", "dayOfWeek": 1},
            "metadata": {"enrich_with_sdat": False},
        })

        assert source.source_type == SourceType.COUNTY_WEBSITE
        assert source.region.state == "MD"
        assert source.schedule.frequency == ScheduleFrequency.WEEKLY
        assert source.schedule.day_of_week == 1
        assert source.status == SourceStatus.ACTIVE
        assert source.setting("enrich_with_sdat") is False
        assert source.setting("missing", "default") == "default"

    def test_inactive_source_is_not_active(self, make_source):
        assert make_source().is_active()
        assert not make_source(status=SourceStatus.INACTIVE).is_active()
        assert make_source(status=SourceStatus.ERROR).is_active()


class TestCollectionResult:
    """Tests for CollectionResult"""

    def test_failure_builds_error_result(self):
        result = CollectionResult.failure("stmarys", "boom", source_id="s1", error_type="connection")

        assert result.success is False
        assert result.status == CollectionStatus.ERROR
        assert result.error_log[0].message == "boom"
        assert result.metadata["error_type"] == "connection"

    def test_records_are_not_serialized(self):
        result = CollectionResult(
            collector_name="stmarys",
            success=True,
            records=[{"Owner": "Jane"}],
            metadata={"used_sample_data": True},
        )
        payload = result.model_dump(by_alias=True, mode="json")

        assert "records" not in payload
        assert payload["collectorName"] == "stmarys"
        assert result.used_sample_data is True
