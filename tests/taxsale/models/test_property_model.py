"""
Tests for TaxSaleProperty and record identity.
"""
import pytest
from pydantic import ValidationError

from src.taxsale.models.property import TaxSaleProperty, build_record_key


class TestTaxSaleProperty:
    """Tests for TaxSaleProperty"""

    def test_requires_an_identity(self):
        with pytest.raises(ValidationError):
            TaxSaleProperty(state="MD", county="St. Mary's")

    def test_requires_state_and_county(self):
        with pytest.raises(ValidationError):
            TaxSaleProperty(parcel_id="08-1", county="St. Mary's")

    def test_upsert_key_prefers_parcel_id(self):
        prop = TaxSaleProperty(
            parcel_id="08-012083",
            tax_account_number="A-1",
            property_address="1 MAIN STREET",
            state="MD",
            county="St. Mary's",
        )
        assert prop.upsert_key() == "MD|ST. MARY'S|parcel:08-012083"

    def test_upsert_key_falls_back_to_account_then_address(self):
        by_account = TaxSaleProperty(tax_account_number="A-1", state="md", county="Calvert")
        by_address = TaxSaleProperty(property_address="1 Main Street", state="MD", county="Calvert")

        assert by_account.upsert_key() == "MD|CALVERT|account:A-1"
        assert by_address.upsert_key() == "MD|CALVERT|address:1 MAIN STREET"

    def test_accepts_camel_case_input(self):
        prop = TaxSaleProperty.model_validate({
            "parcelId": "08-1",
            "state": "MD",
            "county": "St. Mary's",
            "saleInfo": {"saleAmount": 1200.5},
        })
        assert prop.parcel_id == "08-1"
        assert prop.sale_info.sale_amount == 1200.5

    def test_api_dict_uses_camel_case(self):
        prop = TaxSaleProperty(
            parcel_id="08-1",
            property_address="1 MAIN STREET",
            state="MD",
            county="St. Mary's",
            raw_data={"Owner": "Jane"},
        )
        payload = prop.to_api_dict()

        assert payload["parcelId"] == "08-1"
        assert payload["propertyAddress"] == "1 MAIN STREET"
        assert "saleAmount" in payload["saleInfo"]
        assert "rawData" not in payload

    def test_rejects_out_of_range_coordinates(self):
        with pytest.raises(ValidationError):
            TaxSaleProperty(parcel_id="1", state="MD", county="X", location={"latitude": 120})

    def test_build_record_key_without_identity(self):
        with pytest.raises(ValueError):
            build_record_key("MD", "Calvert")
