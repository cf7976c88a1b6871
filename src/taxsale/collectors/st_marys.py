"""
St. Mary's County Tax Sale Collector

Scrapes the St. Mary's County, Maryland tax sale listing table and enriches
each listing with assessment details from the Maryland SDAT real property site.
"""
import asyncio
import re
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import requests
from bs4 import BeautifulSoup

from config.settings import settings
from src.taxsale.collectors.base import BaseCollector
from src.taxsale.collectors.errors import (
    CollectionCancelledError,
    CollectionError,
    ErrorType,
)
from src.taxsale.collectors.sample_data import generate_sample_records
from src.taxsale.enrichers.geocoder import PropertyLocator
from src.taxsale.models.collection import (
    CollectionResult,
    CollectionStatus,
    SourceValidation,
)
from src.taxsale.models.source import Source, SourceType
from src.taxsale.storage.snapshots import RawSnapshotStore
from src.taxsale.transformers.address_standardizer import AddressStandardizer
from src.taxsale.utils.cancellation import CancellationToken
from src.taxsale.utils.logger import get_logger
from src.taxsale.utils.rate_limiter import RateLimiter
from src.taxsale.utils.retry import RetryPolicy

logger = get_logger(__name__)

ACCOUNT_KEYS = ('Tax Acct#', 'Account Number', 'Tax Account')
OWNER_KEYS = ('Owner', 'Owner Name', 'sdat_owner_name')
ADDRESS_KEYS = ('Address', 'Property Address', 'sdat_premises_address')
AMOUNT_KEYS = ('Amount Due', 'Sale Amount')
DESCRIPTION_KEYS = ('Property Type', 'Description', 'Property Description', 'sdat_legal_description', 'Zoning')


def first_present(record: Dict[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        value = record.get(key)
        if value not in (None, ''):
            return value
    return None


def extract_currency(text: Optional[str]) -> Optional[float]:
    """First "$1,234"-style amount in text, without cents."""
    if not text:
        return None
    match = re.search(r'\$?([\d,]+)', text)
    if not match:
        return None
    digits = match.group(1).replace(',', '')
    return float(digits) if digits else None


def extract_area_unit(area: Optional[str]) -> Optional[str]:
    if not area:
        return None
    match = re.search(r'[\d.,]+\s+([A-Za-z]+)', str(area))
    return match.group(1).upper() if match else 'SQFT'


def sdat_account_parts(account: str) -> Optional[Tuple[str, str]]:
    """
    Split a tax account into SDAT (district, account number).

    The district is the first two digits; the account number is the last
    six remaining digits, zero padded.
    """
    digits = re.sub(r'\D', '', account or '')
    if len(digits) < 3:
        return None
    return digits[:2], digits[2:][-6:].zfill(6)


class StMarysCountyCollector(BaseCollector):
    """
    Collector for St. Mary's County, Maryland tax sale listings.

    Every HTTP request goes through one RateLimiter; SDAT lookups are wrapped
    in a RetryPolicy and a record whose lookup keeps failing is kept without
    enrichment.
    """

    collector_id = "stmarys-county-collector"
    name = "St. Mary's County Tax Sale Collector"
    description = "Collects tax sale listings from St. Mary's County, MD with SDAT enrichment"
    supported_source_types = (SourceType.COUNTY_WEBSITE,)
    requires_authentication = False

    STATE = "MD"
    COUNTY = "St. Mary's"

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        rate_limiter: Optional[RateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        snapshot_store: Optional[RawSnapshotStore] = None,
        locator: Optional[PropertyLocator] = None,
        allow_sample_data: Optional[bool] = None,
        sdat_base_url: Optional[str] = None,
        sdat_county_code: Optional[str] = None,
    ):
        """
        Initialize collector.

        Args:
            session: HTTP session (defaults to a new requests.Session)
            rate_limiter: Shared limiter for listing and SDAT requests
            retry_policy: Policy wrapping SDAT lookups
            snapshot_store: Raw snapshot archive
            locator: Geocoder with fallback coordinates
            allow_sample_data: Fall back to synthetic rows when the listing is
                unavailable (default from settings.allow_sample_data)
            sdat_base_url: SDAT detail page URL
            sdat_county_code: SDAT county code for St. Mary's
        """
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': settings.http_user_agent})
        self.rate_limiter = rate_limiter or RateLimiter(
            window_ms=settings.rate_limit_window_ms,
            max_requests_per_window=settings.rate_limit_overrides.get(
                self.collector_id, settings.rate_limit_max_requests
            ),
            name=self.collector_id,
        )
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            delay_seconds=settings.retry_delay_seconds,
        )
        self.snapshot_store = snapshot_store or RawSnapshotStore(settings.raw_data_path)
        self.locator = locator or PropertyLocator()
        self.allow_sample_data = (
            settings.allow_sample_data if allow_sample_data is None else allow_sample_data
        )
        self.sdat_base_url = sdat_base_url or settings.sdat_base_url
        self.sdat_county_code = sdat_county_code or settings.sdat_county_code
        self.addresses = AddressStandardizer()

        logger.info(
            "stmarys_collector_initialized",
            allow_sample_data=self.allow_sample_data,
            max_requests_per_window=self.rate_limiter.max_requests_per_window,
        )

    def validate_source(self, source: Source) -> SourceValidation:
        validation = super().validate_source(source)
        if source.region.state != self.STATE:
            validation.errors.append(f"Source state must be {self.STATE}, got {source.region.state}")
        if (source.region.county or '').lower() != self.COUNTY.lower():
            validation.errors.append(f"Source county must be {self.COUNTY}, got {source.region.county}")
        validation.valid = not validation.errors
        return validation

    async def execute(
        self,
        source: Source,
        cancel_token: Optional[CancellationToken] = None,
    ) -> CollectionResult:
        validation = self.validate_source(source)
        if not validation.valid:
            return CollectionResult.failure(
                self.collector_id,
                f"Invalid source: {'; '.join(validation.errors)}",
                source_id=source.id,
            )

        logger.info("stmarys_collection_started", source_id=source.id, url=source.url)

        rows: List[Dict[str, Any]] = []
        fetch_error: Optional[str] = None
        try:
            html = await self._fetch(source.url, cancel_token)
            rows = self.extract_table_data(html)
        except CollectionCancelledError:
            raise
        except (requests.RequestException, CollectionError) as e:
            fetch_error = str(e)
            logger.warning("stmarys_listing_fetch_failed", source_id=source.id, error=fetch_error)

        allow_sample = bool(source.setting('allow_sample_data', self.allow_sample_data))
        used_sample_data = False
        notes: List[str] = []

        if not rows:
            if allow_sample:
                rows = generate_sample_records()
                used_sample_data = True
                reason = fetch_error or "listing table was empty"
                notes.append(f"Sample data used: {reason}")
                logger.warning(
                    "stmarys_sample_data_used",
                    source_id=source.id,
                    reason=reason,
                    record_count=len(rows),
                )
            elif fetch_error:
                return CollectionResult.failure(
                    self.collector_id,
                    f"Failed to fetch tax sale listing: {fetch_error}",
                    source_id=source.id,
                    used_sample_data=False,
                )
            else:
                logger.info("stmarys_no_listings", source_id=source.id)
                return CollectionResult(
                    source_id=source.id,
                    collector_name=self.collector_id,
                    success=True,
                    message="No tax sale listings found",
                    metadata={'used_sample_data': False},
                )

        year = str(source.setting('year', date.today().year))
        version = str(source.setting('version', '1.0'))
        state = source.region.state
        county = source.region.county or self.COUNTY

        raw_path = await asyncio.to_thread(
            self.snapshot_store.save, rows, state, county, year, version
        )

        enrichment_failures = 0
        enrich = bool(source.setting('enrich_with_sdat', settings.enrich_with_sdat))
        if enrich and not used_sample_data:
            rows, enrichment_failures = await self.enrich_with_sdat(rows, cancel_token)
            await asyncio.to_thread(
                self.snapshot_store.save, rows, state, county, year, version, "_enriched"
            )
            if enrichment_failures:
                notes.append(f"{enrichment_failures} records kept without SDAT enrichment")

        status = CollectionStatus.PARTIAL if enrichment_failures else CollectionStatus.SUCCESS
        message = f"Successfully collected {len(rows)} properties"
        if notes:
            message = f"{message} ({'; '.join(notes)})"

        logger.info(
            "stmarys_collection_completed",
            source_id=source.id,
            record_count=len(rows),
            used_sample_data=used_sample_data,
            enrichment_failures=enrichment_failures,
        )

        result = CollectionResult(
            source_id=source.id,
            collector_name=self.collector_id,
            success=True,
            status=status,
            message=message,
            record_count=len(rows),
            records=rows,
            raw_data_path=str(raw_path),
            metadata={
                'used_sample_data': used_sample_data,
                'enrichment_failures': enrichment_failures,
            },
        )
        result.stats.enrichment_failed = enrichment_failures
        return result

    async def _fetch(self, url: str, cancel_token: Optional[CancellationToken] = None) -> str:
        await self.rate_limiter.acquire(cancel_token)
        response = await asyncio.to_thread(
            self.session.get, url, timeout=settings.http_timeout_seconds
        )
        response.raise_for_status()
        return response.text

    def extract_table_data(self, html: str) -> List[Dict[str, str]]:
        """
        Read the first table on the page into header-keyed rows.

        Raises:
            CollectionError: If the HTML cannot be parsed
        """
        try:
            soup = BeautifulSoup(html, "html.parser")
        except Exception as e:
            raise CollectionError(
                f"Failed to parse listing page: {e}",
                source=self.collector_id,
                error_type=ErrorType.PARSING,
            ) from e

        table = soup.find("table")
        if table is None:
            logger.warning("stmarys_no_table_found")
            return []

        headers = [th.get_text(strip=True) for th in table.find_all("th")]
        rows = []
        for tr in table.find_all("tr")[1:]:
            cells = tr.find_all("td")
            row = {
                headers[i]: cell.get_text(strip=True)
                for i, cell in enumerate(cells)
                if i < len(headers)
            }
            if row:
                rows.append(row)

        logger.info("stmarys_table_extracted", headers=headers, row_count=len(rows))
        return rows

    def sdat_url(self, account: str) -> Optional[str]:
        parts = sdat_account_parts(account)
        if parts is None:
            return None
        district, account_number = parts
        return (
            f"{self.sdat_base_url}?County={self.sdat_county_code}&SearchType=ACCT"
            f"&District={district}&AccountNumber={account_number}"
        )

    async def enrich_with_sdat(
        self,
        rows: List[Dict[str, Any]],
        cancel_token: Optional[CancellationToken] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        Merge SDAT assessment fields into each row.

        Returns:
            (enriched rows, number of rows kept without enrichment)
        """
        enriched = []
        failures = 0

        for row in rows:
            account = first_present(row, ACCOUNT_KEYS)
            url = self.sdat_url(str(account)) if account else None
            if url is None:
                logger.warning("sdat_account_missing", row_keys=list(row.keys()))
                enriched.append(row)
                continue

            try:
                html = await self.retry_policy.run(self._fetch, url, cancel_token=cancel_token)
            except CollectionCancelledError:
                raise
            except Exception as e:
                failures += 1
                logger.error(
                    "sdat_enrichment_failed",
                    account=account,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                enriched.append(row)
                continue

            sdat_fields = {
                key: value for key, value in self.extract_sdat_data(html).items()
                if value not in (None, '')
            }
            enriched.append({**row, **sdat_fields})

        logger.info("sdat_enrichment_completed", total=len(rows), failures=failures)
        return enriched, failures

    def extract_sdat_data(self, html: str) -> Dict[str, Any]:
        """Pull assessment fields out of an SDAT detail page; {} if unparseable."""
        try:
            soup = BeautifulSoup(html, "html.parser")
        except Exception as e:
            logger.error("sdat_parse_failed", error=str(e))
            return {}

        def value_after(css_class: str, label: str) -> str:
            for element in soup.find_all(class_=css_class):
                if label in element.get_text():
                    sibling = element.find_next_sibling()
                    return sibling.get_text(strip=True) if sibling else ''
            return ''

        def sibling_text(label: str) -> str:
            for element in soup.find_all(class_="SDAT_Label"):
                if label in element.get_text():
                    return ' '.join(
                        s.get_text(strip=True) for s in element.find_next_siblings()
                    )
            return ''

        def repeater_value(label: str) -> str:
            for element in soup.find_all(class_="SDAT_DataRepeater"):
                if label in element.get_text():
                    value = element.find(class_="SDAT_Value")
                    return value.get_text(strip=True) if value else ''
            return ''

        return {
            'sdat_premises_address': value_after("SDAT_Value", "Premise Address"),
            'sdat_legal_description': value_after("SDAT_Value", "Legal Description"),
            'sdat_land_value': extract_currency(sibling_text("Land:")),
            'sdat_improvement_value': extract_currency(sibling_text("Improvements:")),
            'sdat_total_value': extract_currency(sibling_text("Total:")),
            'sdat_year_built': repeater_value("Year Built"),
            'sdat_land_area': repeater_value("Land Area"),
            'sdat_zoning': repeater_value("Zoning"),
            'sdat_owner_name': value_after("SDAT_Value", "Owner Name"),
        }

    def standardize_record(self, raw: Dict[str, Any], source: Source) -> Dict[str, Any]:
        """
        Map a listing row (optionally SDAT-enriched) to a property draft.

        Numeric fields are left as scraped; the transformation pipeline parses them.
        """
        account = first_present(raw, ACCOUNT_KEYS)
        account = str(account).strip() if account is not None else None
        address = first_present(raw, ADDRESS_KEYS)
        parts = self.addresses.split_one_line(address)
        amount = first_present(raw, AMOUNT_KEYS)
        land_area = raw.get('sdat_land_area') or raw.get('Acreage')

        draft = {
            'parcel_id': account,
            'tax_account_number': account,
            'owner_name': first_present(raw, OWNER_KEYS),
            'property_address': address,
            'city': parts.city,
            'state': source.region.state,
            'county': source.region.county,
            'zip_code': parts.zip_code,
            'property_type': self.determine_property_type(raw),
            'legal_description': raw.get('sdat_legal_description'),
            'property_details': {
                'land_area': land_area,
                'land_area_unit': extract_area_unit(land_area),
                'year_built': raw.get('sdat_year_built'),
                'zoning': raw.get('sdat_zoning') or raw.get('Zoning'),
            },
            'tax_info': {
                'assessed_value': first_present(raw, ('sdat_total_value', 'Total Value')),
                'land_value': first_present(raw, ('sdat_land_value', 'Land Value')),
                'improvement_value': first_present(raw, ('sdat_improvement_value', 'Improvement Value')),
                'tax_year': raw.get('Tax Year') or date.today().year,
                'tax_status': self.determine_tax_status(raw),
                'tax_due': amount,
            },
            'sale_info': {
                'sale_type': 'Tax Lien',
                'sale_status': 'Pending',
                'sale_amount': amount,
            },
            'source_id': source.id,
            'raw_data': dict(raw),
        }

        if address and self.locator is not None:
            draft['location'] = self.locator.locate(address, parts.city, source.region.state)

        return draft

    @staticmethod
    def determine_property_type(raw: Dict[str, Any]) -> Optional[str]:
        description = str(first_present(raw, DESCRIPTION_KEYS) or '').lower()
        if 'vacant' in description or 'land' in description:
            return 'Vacant Land'
        if 'commercial' in description:
            return 'Commercial'
        if 'residential' in description:
            return 'Residential'
        if 'agricultural' in description:
            return 'Agricultural'
        return None

    @staticmethod
    def determine_tax_status(raw: Dict[str, Any]) -> str:
        status = str(raw.get('Status') or '').lower()
        if 'delinquent' in status:
            return 'Delinquent'
        if 'foreclosure' in status:
            return 'Foreclosure'
        if raw.get('Amount Due'):
            return 'Delinquent'
        return 'Unknown'
