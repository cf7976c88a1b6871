"""
Tests for StMarysCountyCollector
"""
import json
from unittest.mock import MagicMock, Mock

import pytest
import requests

from src.taxsale.collectors.errors import CollectionCancelledError
from src.taxsale.collectors.st_marys import (
    StMarysCountyCollector,
    extract_area_unit,
    extract_currency,
    sdat_account_parts,
)
from src.taxsale.enrichers.geocoder import PropertyLocator
from src.taxsale.models.collection import CollectionStatus
from src.taxsale.models.source import SourceRegion, SourceType
from src.taxsale.storage.snapshots import RawSnapshotStore
from src.taxsale.transformers.pipeline import TransformationPipeline
from src.taxsale.utils.cancellation import CancellationToken
from src.taxsale.utils.rate_limiter import RateLimiter
from src.taxsale.utils.retry import RetryPolicy

LISTING_URL = "https://example.gov/taxsale"
SDAT_BASE = "https://sdat.example.gov/details"

LISTING_HTML = """
<html><body>
<table>
  <tr><th>Tax Acct#</th><th>Owner</th><th>Address</th><th>Amount Due</th></tr>
  <tr><td>08-00001</td><td>Jane Doe</td><td>123 Main St, Town, MD 20650</td><td>1,200.50</td></tr>
</table>
</body></html>
"""

EMPTY_LISTING_HTML = """
<html><body>
<table><tr><th>Tax Acct#</th><th>Owner</th></tr></table>
</body></html>
"""

SDAT_HTML = """
<html><body>
<div><span class="SDAT_Value">Owner Name</span><span>DOE JANE</span></div>
<div><span class="SDAT_Value">Premise Address</span><span>123 MAIN ST TOWN 20650</span></div>
<div><span class="SDAT_Value">Legal Description</span><span>LOT 4 MAIN ST</span></div>
<div><span class="SDAT_Label">Land:</span><span>$80,000</span></div>
<div><span class="SDAT_Label">Improvements:</span><span>$170,000</span></div>
<div><span class="SDAT_Label">Total:</span><span>$250,000</span></div>
<div class="SDAT_DataRepeater">Year Built <span class="SDAT_Value">1985</span></div>
<div class="SDAT_DataRepeater">Land Area <span class="SDAT_Value">2,500 SF</span></div>
<div class="SDAT_DataRepeater">Zoning <span class="SDAT_Value">RL</span></div>
</body></html>
"""


async def no_sleep(seconds):
    return None


def response(text):
    resp = Mock()
    resp.text = text
    resp.raise_for_status = Mock()
    return resp


def fake_session(pages, failing=()):
    """requests.Session stand-in routing by URL prefix."""
    session = MagicMock()
    session.headers = {}

    def get(url, timeout=None):
        for prefix in failing:
            if url.startswith(prefix):
                raise requests.ConnectionError(f"cannot reach {prefix}")
        for prefix, text in pages.items():
            if url.startswith(prefix):
                return response(text)
        raise requests.HTTPError(f"404 for {url}")

    session.get.side_effect = get
    return session


@pytest.fixture
def build_collector(tmp_path):
    def _build(session, allow_sample_data=False):
        return StMarysCountyCollector(
            session=session,
            rate_limiter=RateLimiter(window_ms=1000, max_requests_per_window=1000, sleep=no_sleep),
            retry_policy=RetryPolicy(max_attempts=3, delay_seconds=0.5, sleep=no_sleep),
            snapshot_store=RawSnapshotStore(tmp_path / "raw"),
            locator=PropertyLocator(fallback=(38.0, -76.0)),
            allow_sample_data=allow_sample_data,
            sdat_base_url=SDAT_BASE,
            sdat_county_code="19",
        )
    return _build


@pytest.fixture
def stmarys_source(make_source):
    return make_source(
        "stmarys-md",
        collector_type=StMarysCountyCollector.collector_id,
        url=LISTING_URL,
        metadata={"year": "2024"},
    )


class TestHelpers:
    """Tests for module helpers"""

    def test_sdat_account_parts(self):
        assert sdat_account_parts("08-012083") == ("08", "012083")
        assert sdat_account_parts("08-00001") == ("08", "000001")
        assert sdat_account_parts("8") is None

    def test_extract_currency(self):
        assert extract_currency("$250,000") == 250000.0
        assert extract_currency("none") is None
        assert extract_currency(None) is None

    def test_extract_area_unit(self):
        assert extract_area_unit("1.5 ACRES") == "ACRES"
        assert extract_area_unit("2500") == "SQFT"
        assert extract_area_unit(None) is None


class TestStMarysCountyCollector:
    """Tests for StMarysCountyCollector"""

    def test_sdat_url(self, build_collector):
        collector = build_collector(fake_session({}))

        assert collector.sdat_url("08-012083") == (
            f"{SDAT_BASE}?County=19&SearchType=ACCT&District=08&AccountNumber=012083"
        )
        assert collector.sdat_url("x") is None

    def test_validate_source(self, build_collector, stmarys_source):
        collector = build_collector(fake_session({}))

        assert collector.validate_source(stmarys_source).valid

        wrong_region = stmarys_source.model_copy(update={"region": SourceRegion(state="VA", county="Fairfax")})
        validation = collector.validate_source(wrong_region)
        assert not validation.valid
        assert len(validation.errors) == 2

        wrong_type = stmarys_source.model_copy(update={"source_type": SourceType.PDF})
        assert not collector.validate_source(wrong_type).valid

    def test_extract_table_data(self, build_collector):
        collector = build_collector(fake_session({}))

        rows = collector.extract_table_data(LISTING_HTML)

        assert rows == [{
            "Tax Acct#": "08-00001",
            "Owner": "Jane Doe",
            "Address": "123 Main St, Town, MD 20650",
            "Amount Due": "1,200.50",
        }]

    def test_extract_table_without_table(self, build_collector):
        collector = build_collector(fake_session({}))
        assert collector.extract_table_data("<p>closed</p>") == []

    def test_extract_sdat_data(self, build_collector):
        collector = build_collector(fake_session({}))

        data = collector.extract_sdat_data(SDAT_HTML)

        assert data["sdat_owner_name"] == "DOE JANE"
        assert data["sdat_premises_address"] == "123 MAIN ST TOWN 20650"
        assert data["sdat_legal_description"] == "LOT 4 MAIN ST"
        assert data["sdat_land_value"] == 80000.0
        assert data["sdat_improvement_value"] == 170000.0
        assert data["sdat_total_value"] == 250000.0
        assert data["sdat_year_built"] == "1985"
        assert data["sdat_land_area"] == "2,500 SF"
        assert data["sdat_zoning"] == "RL"

    async def test_execute_with_enrichment(self, build_collector, stmarys_source):
        session = fake_session({LISTING_URL: LISTING_HTML, SDAT_BASE: SDAT_HTML})
        collector = build_collector(session)

        result = await collector.execute(stmarys_source)

        assert result.success
        assert result.status == CollectionStatus.SUCCESS
        assert result.record_count == 1
        assert result.records[0]["sdat_total_value"] == 250000.0
        assert result.records[0]["Owner"] == "Jane Doe"
        assert result.metadata == {"used_sample_data": False, "enrichment_failures": 0}
        assert session.get.call_count == 2

        raw = RawSnapshotStore.load(result.raw_data_path)
        assert raw[0] == {
            "Tax Acct#": "08-00001",
            "Owner": "Jane Doe",
            "Address": "123 Main St, Town, MD 20650",
            "Amount Due": "1,200.50",
        }
        enriched_path = result.raw_data_path.replace(".json", "_enriched.json")
        with open(enriched_path, encoding="utf-8") as fh:
            assert json.load(fh)[0]["sdat_zoning"] == "RL"

    async def test_enrichment_failure_keeps_record(self, build_collector, stmarys_source):
        session = fake_session({LISTING_URL: LISTING_HTML}, failing=(SDAT_BASE,))
        collector = build_collector(session)

        result = await collector.execute(stmarys_source)

        assert result.success
        assert result.status == CollectionStatus.PARTIAL
        assert result.record_count == 1
        assert "sdat_total_value" not in result.records[0]
        assert result.stats.enrichment_failed == 1
        # one listing request plus three SDAT attempts
        assert session.get.call_count == 4

    async def test_enrichment_can_be_disabled(self, build_collector, make_source):
        source = make_source(
            "stmarys-md",
            collector_type=StMarysCountyCollector.collector_id,
            url=LISTING_URL,
            metadata={"enrich_with_sdat": False},
        )
        session = fake_session({LISTING_URL: LISTING_HTML})

        result = await build_collector(session).execute(source)

        assert result.status == CollectionStatus.SUCCESS
        assert session.get.call_count == 1

    async def test_fetch_failure_without_sample_data(self, build_collector, stmarys_source):
        collector = build_collector(fake_session({}, failing=(LISTING_URL,)))

        result = await collector.execute(stmarys_source)

        assert not result.success
        assert result.status == CollectionStatus.ERROR
        assert "Failed to fetch" in result.message
        assert result.records == []
        assert not result.used_sample_data

    async def test_fetch_failure_with_sample_data(self, build_collector, stmarys_source):
        session = fake_session({}, failing=(LISTING_URL,))
        collector = build_collector(session, allow_sample_data=True)

        result = await collector.execute(stmarys_source)

        assert result.success
        assert result.used_sample_data
        assert result.record_count == 10
        assert all(row["Sample"] for row in result.records)
        assert "Sample data used" in result.message
        # sample rows are never sent to SDAT
        assert session.get.call_count == 1

    async def test_source_can_opt_in_to_sample_data(self, build_collector, make_source):
        source = make_source(
            "stmarys-md",
            collector_type=StMarysCountyCollector.collector_id,
            url=LISTING_URL,
            metadata={"allow_sample_data": True},
        )
        collector = build_collector(fake_session({LISTING_URL: EMPTY_LISTING_HTML}))

        result = await collector.execute(source)

        assert result.used_sample_data
        assert result.record_count == 10

    async def test_empty_listing(self, build_collector, stmarys_source):
        collector = build_collector(fake_session({LISTING_URL: EMPTY_LISTING_HTML}))

        result = await collector.execute(stmarys_source)

        assert result.success
        assert result.record_count == 0
        assert result.message == "No tax sale listings found"
        assert result.raw_data_path is None

    async def test_invalid_source(self, build_collector, make_source):
        session = fake_session({LISTING_URL: LISTING_HTML})
        source = make_source("va", region=SourceRegion(state="VA", county="Fairfax"))

        result = await build_collector(session).execute(source)

        assert not result.success
        assert result.message.startswith("Invalid source")
        session.get.assert_not_called()

    async def test_cancelled_before_fetch(self, build_collector, stmarys_source):
        session = fake_session({LISTING_URL: LISTING_HTML})
        token = CancellationToken()
        token.cancel("shutdown")

        with pytest.raises(CollectionCancelledError):
            await build_collector(session).execute(stmarys_source, cancel_token=token)
        session.get.assert_not_called()

    def test_standardize_record_feeds_pipeline(self, build_collector, stmarys_source):
        collector = build_collector(fake_session({}))
        raw = {
            "Tax Acct#": "08-00001",
            "Owner": "Jane Doe",
            "Address": "123 Main St, Town, MD 20650",
            "Amount Due": "1,200.50",
        }

        prop = TransformationPipeline().to_property(collector.standardize_record(raw, stmarys_source))
        api = prop.to_api_dict()

        assert api["parcelId"] == "08-00001"
        assert api["ownerName"] == "Jane Doe"
        assert api["propertyAddress"] == "123 MAIN STREET, TOWN, MD 20650"
        assert api["saleInfo"]["saleAmount"] == 1200.5
        assert api["city"] == "TOWN"
        assert api["zipCode"] == "20650"
        assert api["location"] == {"latitude": 38.0, "longitude": -76.0}
        assert prop.raw_data == raw

    def test_standardize_enriched_record(self, build_collector, stmarys_source):
        collector = build_collector(fake_session({}))
        raw = {
            "Tax Acct#": "08-00001",
            "Address": "123 Main St, Town, MD 20650",
            "Amount Due": "$900",
            "Status": "Delinquent",
            "sdat_total_value": 250000.0,
            "sdat_land_area": "2,500 SF",
            "sdat_year_built": "1985",
            "Zoning": "Commercial",
        }

        draft = collector.standardize_record(raw, stmarys_source)
        prop = TransformationPipeline().to_property(draft)

        assert prop.tax_info.assessed_value == 250000.0
        assert prop.tax_info.tax_status == "Delinquent"
        assert prop.property_details.land_area == 2500.0
        assert prop.property_details.land_area_unit == "SF"
        assert prop.property_details.year_built == 1985
        assert prop.property_type == "COMMERCIAL"

    @pytest.mark.parametrize("raw,expected", [
        ({"Description": "Vacant lot"}, "Vacant Land"),
        ({"Zoning": "Commercial"}, "Commercial"),
        ({"Zoning": "Residential"}, "Residential"),
        ({"Property Type": "Agricultural"}, "Agricultural"),
        ({}, None),
    ])
    def test_determine_property_type(self, raw, expected):
        assert StMarysCountyCollector.determine_property_type(raw) == expected
