"""
Address Standardization Transformer

Normalizes property addresses, cities, states and ZIP codes to the stored form
(uppercase, street suffixes spelled out, two-letter states, 5-digit ZIPs).
"""
import re
from dataclasses import dataclass
from typing import Any, Optional

from src.taxsale.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class AddressParts:
    """
    Components split from a one-line "<street>, <city>, <ST> <zip>" address.

    Attributes:
        street: Street line
        city: City name
        state: State abbreviation
        zip_code: ZIP code as written
    """
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None


class AddressStandardizer:
    """
    Standardizes addresses to a consistent format across data sources.

    Every operation is idempotent: applying it to its own output is a no-op.
    """

    # Suffix abbreviations expanded to the full word
    STREET_SUFFIXES = {
        'ST': 'STREET',
        'RD': 'ROAD',
        'AVE': 'AVENUE',
        'BLVD': 'BOULEVARD',
        'LN': 'LANE',
        'CT': 'COURT',
        'DR': 'DRIVE',
        'CIR': 'CIRCLE',
    }

    # Full state names mapped to postal codes
    STATE_NAMES = {
        'MARYLAND': 'MD',
        'VIRGINIA': 'VA',
        'DELAWARE': 'DE',
        'PENNSYLVANIA': 'PA',
        'WEST VIRGINIA': 'WV',
        'DISTRICT OF COLUMBIA': 'DC',
    }

    _SUFFIX_PATTERNS = [
        (re.compile(rf'\b{abbr}\b'), full) for abbr, full in STREET_SUFFIXES.items()
    ]

    # "<street>, <city>, <ST> <zip>"
    _ONE_LINE_PATTERN = re.compile(
        r'^\s*(?P<street>[^,]+?)\s*,\s*(?P<city>[^,]+?)\s*,\s*'
        r'(?P<state>[A-Za-z]{2})\s+(?P<zip>\d{5}(?:-\d{4})?)\s*$'
    )

    def normalize_street(self, address: Optional[str]) -> Optional[str]:
        """
        Uppercase, trim and expand street suffix abbreviations.

        Args:
            address: Raw street or one-line address

        Returns:
            Normalized address or None for empty input
        """
        if address is None:
            return None
        normalized = ' '.join(str(address).upper().split())
        if not normalized:
            return None
        for pattern, full in self._SUFFIX_PATTERNS:
            normalized = pattern.sub(full, normalized)
        return normalized

    @staticmethod
    def normalize_city(city: Optional[str]) -> Optional[str]:
        if city is None:
            return None
        normalized = ' '.join(str(city).upper().split())
        return normalized or None

    def normalize_state(self, state: Optional[str]) -> Optional[str]:
        """Uppercase a state and map known full names to two-letter codes."""
        if state is None:
            return None
        normalized = ' '.join(str(state).upper().split())
        if len(normalized) > 2:
            return self.STATE_NAMES.get(normalized, normalized)
        return normalized

    @staticmethod
    def normalize_zip(zip_code: Any) -> Optional[str]:
        """
        Truncate a ZIP code to its first five digits.

        Args:
            zip_code: Raw ZIP code (string or int)

        Returns:
            5-digit ZIP, the trimmed input when it has fewer digits, or None
        """
        if zip_code is None:
            return None
        value = str(zip_code).strip()
        if not value:
            return None
        digits = re.sub(r'\D', '', value)
        if len(digits) >= 5:
            return digits[:5]
        return value[:5]

    def split_one_line(self, address: Optional[str]) -> AddressParts:
        """
        Split "<street>, <city>, <ST> <zip>" into parts.

        Addresses that do not follow the pattern come back as street only.
        """
        if not address:
            return AddressParts()
        match = self._ONE_LINE_PATTERN.match(address)
        if not match:
            logger.debug("address_not_one_line", address=address[:50])
            return AddressParts(street=address.strip())
        return AddressParts(
            street=match.group('street'),
            city=match.group('city'),
            state=match.group('state').upper(),
            zip_code=match.group('zip'),
        )
