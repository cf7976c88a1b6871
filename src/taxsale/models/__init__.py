"""
Models Package

Pydantic models for sources, canonical tax sale properties and collection results.
"""
from src.taxsale.models.source import (
    Source,
    SourceRegion,
    SourceSchedule,
    SourceStatus,
    SourceType,
    ScheduleFrequency,
)
from src.taxsale.models.property import (
    TaxSaleProperty,
    PropertyType,
    PropertyDetails,
    TaxInfo,
    SaleInfo,
    Location,
)
from src.taxsale.models.collection import (
    CollectionResult,
    CollectionStats,
    CollectionStatus,
    ErrorLogEntry,
    HealthIssue,
    HealthCheckResult,
    SourceValidation,
)

__all__ = [
    "Source",
    "SourceRegion",
    "SourceSchedule",
    "SourceStatus",
    "SourceType",
    "ScheduleFrequency",
    "TaxSaleProperty",
    "PropertyType",
    "PropertyDetails",
    "TaxInfo",
    "SaleInfo",
    "Location",
    "CollectionResult",
    "CollectionStats",
    "CollectionStatus",
    "ErrorLogEntry",
    "HealthIssue",
    "HealthCheckResult",
    "SourceValidation",
]
