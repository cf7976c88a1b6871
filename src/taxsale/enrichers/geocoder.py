"""
Property Geocoding

Resolves property addresses to coordinates. Lookups that fail or miss fall
back to configured sentinel coordinates and are logged as warnings.
"""
from typing import Dict, Optional, Protocol, Tuple

from config.settings import settings
from src.taxsale.utils.logger import get_logger

logger = get_logger(__name__)

Coordinates = Tuple[float, float]


class Geocoder(Protocol):
    """Anything that can turn an address into (latitude, longitude)."""

    def geocode(self, address: str, city: Optional[str], state: Optional[str]) -> Optional[Coordinates]:
        ...


class StaticGeocoder:
    """
    Lookup-table geocoder.

    Known addresses resolve from the table (keys are uppercase
    "ADDRESS|CITY|STATE"); anything else returns None.
    """

    def __init__(self, known: Optional[Dict[str, Coordinates]] = None):
        self.known = {key.upper(): value for key, value in (known or {}).items()}

    @staticmethod
    def key(address: str, city: Optional[str], state: Optional[str]) -> str:
        return "|".join(part.strip().upper() for part in (address, city or "", state or ""))

    def geocode(self, address: str, city: Optional[str], state: Optional[str]) -> Optional[Coordinates]:
        return self.known.get(self.key(address, city, state))


class PropertyLocator:
    """
    Geocodes with a fallback.

    Attributes:
        geocoder: Underlying Geocoder
        fallback: Coordinates used when geocoding fails or misses
    """

    def __init__(self, geocoder: Optional[Geocoder] = None, fallback: Optional[Coordinates] = None):
        self.geocoder = geocoder or StaticGeocoder()
        self.fallback = fallback or (
            settings.geocode_fallback_latitude,
            settings.geocode_fallback_longitude,
        )

    def locate(self, address: Optional[str], city: Optional[str], state: Optional[str]) -> Dict[str, float]:
        """
        Returns:
            {"latitude": ..., "longitude": ...}, using the fallback on failure
        """
        coordinates = None
        if address:
            try:
                coordinates = self.geocoder.geocode(address, city, state)
            except Exception as e:
                logger.warning(
                    "geocoding_failed",
                    address=address[:50],
                    error=str(e),
                    error_type=type(e).__name__
                )

        if coordinates is None:
            logger.warning(
                "geocoding_fallback_used",
                address=address[:50] if address else None,
                latitude=self.fallback[0],
                longitude=self.fallback[1]
            )
            coordinates = self.fallback

        return {"latitude": coordinates[0], "longitude": coordinates[1]}
