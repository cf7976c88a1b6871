"""
Tax Sale Property Models

Canonical, typed representation of a normalized tax sale property.
Serialized externally with camelCase keys (parcelId, saleInfo.saleAmount, ...).
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class PropertyType(str, Enum):
    SINGLE_FAMILY = "SINGLE_FAMILY"
    TOWNHOME = "TOWNHOME"
    CONDOMINIUM = "CONDOMINIUM"
    MULTI_FAMILY = "MULTI_FAMILY"
    VACANT_LAND = "VACANT_LAND"
    COMMERCIAL = "COMMERCIAL"
    AGRICULTURAL = "AGRICULTURAL"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class PropertyDetails(_CamelModel):
    land_area: Optional[float] = Field(None, ge=0)
    land_area_unit: Optional[str] = None
    building_area: Optional[float] = Field(None, ge=0)
    building_area_unit: Optional[str] = None
    year_built: Optional[int] = None
    zoning: Optional[str] = None


class TaxInfo(_CamelModel):
    assessed_value: Optional[float] = None
    market_value: Optional[float] = None
    land_value: Optional[float] = None
    improvement_value: Optional[float] = None
    tax_year: Optional[int] = None
    tax_due: Optional[float] = None
    tax_status: Optional[str] = None


class SaleInfo(_CamelModel):
    sale_type: Optional[str] = None
    sale_amount: Optional[float] = None
    sale_status: Optional[str] = None
    sale_date: Optional[str] = None


class Location(_CamelModel):
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class TaxSaleProperty(_CamelModel):
    """
    Normalized tax sale property.

    A property is identified by its parcel ID, else its tax account number,
    else its address, always scoped to state and county.
    """

    parcel_id: Optional[str] = None
    tax_account_number: Optional[str] = None
    owner_name: Optional[str] = None
    property_address: Optional[str] = None
    city: Optional[str] = None
    state: str
    county: str
    zip_code: Optional[str] = None
    property_type: Optional[str] = None
    legal_description: Optional[str] = None
    property_details: PropertyDetails = Field(default_factory=PropertyDetails)
    tax_info: TaxInfo = Field(default_factory=TaxInfo)
    sale_info: SaleInfo = Field(default_factory=SaleInfo)
    location: Location = Field(default_factory=Location)
    source_id: Optional[str] = None
    raw_data: Dict[str, Any] = Field(default_factory=dict)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def require_identity(self) -> "TaxSaleProperty":
        if not self.state.strip() or not self.county.strip():
            raise ValueError("state and county are required")
        if not (self.parcel_id or self.tax_account_number or self.property_address):
            raise ValueError(
                "one of parcel_id, tax_account_number or property_address is required"
            )
        return self

    def upsert_key(self) -> str:
        """Identity used to deduplicate stored properties."""
        return build_record_key(
            self.state,
            self.county,
            parcel_id=self.parcel_id,
            tax_account_number=self.tax_account_number,
            property_address=self.property_address,
        )

    def to_api_dict(self) -> Dict[str, Any]:
        """camelCase JSON-compatible representation."""
        return self.model_dump(by_alias=True, mode="json", exclude={"raw_data"})


def build_record_key(
    state: str,
    county: str,
    parcel_id: Optional[str] = None,
    tax_account_number: Optional[str] = None,
    property_address: Optional[str] = None,
) -> str:
    """
    Build the STATE|COUNTY|kind:value identity for a property.

    Raises:
        ValueError: If no identifying field is present
    """
    scope = f"{state.strip().upper()}|{county.strip().upper()}"
    if parcel_id:
        return f"{scope}|parcel:{parcel_id.strip()}"
    if tax_account_number:
        return f"{scope}|account:{tax_account_number.strip()}"
    if property_address:
        return f"{scope}|address:{property_address.strip().upper()}"
    raise ValueError("property has no identifying field")
