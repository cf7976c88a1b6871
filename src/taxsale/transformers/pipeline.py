"""
Transformation Pipeline

Converts a property draft produced by a collector into the canonical schema
through four fixed stages: required-field validation, address normalization,
numeric extraction and property type standardization.
"""
import copy
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from src.taxsale.models.property import PropertyType, TaxSaleProperty
from src.taxsale.transformers.address_standardizer import AddressStandardizer
from src.taxsale.utils.logger import get_logger

logger = get_logger(__name__)


class TransformationValidationError(ValueError):
    """Raised when a record lacks fields required to identify it."""

    def __init__(self, missing_fields: List[str]):
        self.missing_fields = missing_fields
        super().__init__(f"Missing required fields: {', '.join(missing_fields)}")


# (section, field) pairs parsed as currency
CURRENCY_FIELDS: Tuple[Tuple[str, str], ...] = (
    ('sale_info', 'sale_amount'),
    ('tax_info', 'assessed_value'),
    ('tax_info', 'market_value'),
    ('tax_info', 'land_value'),
    ('tax_info', 'improvement_value'),
    ('tax_info', 'tax_due'),
)

AREA_FIELDS: Tuple[Tuple[str, str], ...] = (
    ('property_details', 'land_area'),
    ('property_details', 'building_area'),
)

INTEGER_FIELDS: Tuple[Tuple[str, str], ...] = (
    ('property_details', 'year_built'),
    ('tax_info', 'tax_year'),
)

# Checked in order; the first substring found wins
PROPERTY_TYPE_TABLE: Tuple[Tuple[str, PropertyType], ...] = (
    ('SINGLE FAMILY', PropertyType.SINGLE_FAMILY),
    ('SINGLE FAMILY HOME', PropertyType.SINGLE_FAMILY),
    ('SINGLE-FAMILY', PropertyType.SINGLE_FAMILY),
    ('RESIDENTIAL', PropertyType.SINGLE_FAMILY),
    ('DETACHED', PropertyType.SINGLE_FAMILY),

    ('TOWNHOUSE', PropertyType.TOWNHOME),
    ('TOWN HOME', PropertyType.TOWNHOME),
    ('TOWN HOUSE', PropertyType.TOWNHOME),
    ('ATTACHED', PropertyType.TOWNHOME),

    ('CONDO', PropertyType.CONDOMINIUM),
    ('APARTMENT', PropertyType.CONDOMINIUM),
    ('FLAT', PropertyType.CONDOMINIUM),

    ('MULTI FAMILY', PropertyType.MULTI_FAMILY),
    ('MULTI-FAMILY', PropertyType.MULTI_FAMILY),
    ('DUPLEX', PropertyType.MULTI_FAMILY),
    ('TRIPLEX', PropertyType.MULTI_FAMILY),
    ('QUADPLEX', PropertyType.MULTI_FAMILY),

    ('VACANT', PropertyType.VACANT_LAND),
    ('VACANT LOT', PropertyType.VACANT_LAND),
    ('LAND', PropertyType.VACANT_LAND),
    ('UNDEVELOPED', PropertyType.VACANT_LAND),

    ('COMMERCIAL', PropertyType.COMMERCIAL),
    ('BUSINESS', PropertyType.COMMERCIAL),
    ('RETAIL', PropertyType.COMMERCIAL),
    ('OFFICE', PropertyType.COMMERCIAL),

    ('FARM', PropertyType.AGRICULTURAL),
    ('AGRICULTURAL', PropertyType.AGRICULTURAL),
    ('RANCH', PropertyType.AGRICULTURAL),
)

_CANONICAL_TYPES = {member.value for member in PropertyType}
_NUMBER_TOKEN = re.compile(r'[\d,]*\.?\d+')
_CURRENCY_TOKEN = re.compile(r'-?[\d,]*\.?\d+')


def parse_currency(value: Any) -> Optional[float]:
    """'$1,200.50 USD' -> 1200.5 using the leading number; unparseable text -> None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _CURRENCY_TOKEN.match(re.sub(r'[$\s]', '', str(value)))
    if not match:
        return None
    return float(match.group(0).replace(',', ''))


def parse_area(value: Any) -> Optional[float]:
    """'2,500 sq ft' -> 2500.0 using the first numeric token."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _NUMBER_TOKEN.search(str(value))
    if not match:
        return None
    try:
        return float(match.group(0).replace(',', ''))
    except ValueError:
        return None


def parse_integer(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    match = re.search(r'-?\d+', str(value))
    return int(match.group(0)) if match else None


class TransformationPipeline:
    """
    Ordered, deterministic normalization of property drafts.

    process() never mutates its argument and is idempotent:
    process(process(x)) == process(x).
    """

    REQUIRED_FIELDS = ('property_address', 'county', 'state')

    def __init__(self, address_standardizer: Optional[AddressStandardizer] = None):
        self.addresses = address_standardizer or AddressStandardizer()
        self.stages: List[Tuple[str, Callable[[Dict[str, Any]], None]]] = [
            ('validate_required_fields', self.validate_required_fields),
            ('normalize_address', self.normalize_address),
            ('extract_numeric_values', self.extract_numeric_values),
            ('standardize_property_type', self.standardize_property_type),
        ]

    def process(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run every stage over a deep copy of record.

        Args:
            record: Property draft (snake_case keys)

        Returns:
            Normalized copy

        Raises:
            TransformationValidationError: If a required field is missing
        """
        result = copy.deepcopy(record)
        for name, stage in self.stages:
            stage(result)
        logger.debug(
            "record_transformed",
            parcel_id=result.get('parcel_id'),
            property_address=result.get('property_address'),
        )
        return result

    def to_property(self, record: Dict[str, Any]) -> TaxSaleProperty:
        """
        Process a draft and validate it into a TaxSaleProperty.

        Raises:
            TransformationValidationError: If a required field is missing
            pydantic.ValidationError: If the normalized record violates the model
        """
        return TaxSaleProperty.model_validate(self.process(record))

    def validate_required_fields(self, record: Dict[str, Any]) -> None:
        missing = [
            field for field in self.REQUIRED_FIELDS
            if record.get(field) is None or not str(record.get(field)).strip()
        ]
        if missing:
            raise TransformationValidationError(missing)

    def normalize_address(self, record: Dict[str, Any]) -> None:
        record['property_address'] = self.addresses.normalize_street(record.get('property_address'))
        if record.get('city') is not None:
            record['city'] = self.addresses.normalize_city(record['city'])
        if record.get('state') is not None:
            record['state'] = self.addresses.normalize_state(record['state'])
        if record.get('zip_code') is not None:
            record['zip_code'] = self.addresses.normalize_zip(record['zip_code'])

    def extract_numeric_values(self, record: Dict[str, Any]) -> None:
        for fields, parser in (
            (CURRENCY_FIELDS, parse_currency),
            (AREA_FIELDS, parse_area),
            (INTEGER_FIELDS, parse_integer),
        ):
            for section, field in fields:
                values = record.get(section)
                if not isinstance(values, dict) or field not in values:
                    continue
                values[field] = parser(values[field])

    def standardize_property_type(self, record: Dict[str, Any]) -> None:
        property_type = record.get('property_type')
        if not property_type:
            return
        if isinstance(property_type, PropertyType):
            record['property_type'] = property_type.value
            return
        if property_type in _CANONICAL_TYPES:
            return

        upper = str(property_type).upper()
        for needle, mapped in PROPERTY_TYPE_TABLE:
            if needle in upper:
                record['property_type'] = mapped.value
                return
