"""
Data Source Models

Configured external sources that collectors pull tax sale listings from.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class SourceType(str, Enum):
    COUNTY_WEBSITE = "county-website"
    STATE_RECORDS = "state-records"
    TAX_DATABASE = "tax-database"
    API = "api"
    PDF = "pdf"


class SourceStatus(str, Enum):
    ACTIVE = "active"
    WARNING = "warning"
    ERROR = "error"
    INACTIVE = "inactive"


class ScheduleFrequency(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    MANUAL = "manual"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )


class SourceRegion(_CamelModel):
    """Geographic coverage of a source."""

    state: str = Field(..., description="Two-letter state code")
    county: Optional[str] = Field(None, description="County name")

    @field_validator("state")
    @classmethod
    def upper_state(cls, v: str) -> str:
        return v.strip().upper()


class SourceSchedule(_CamelModel):
    """
    Collection cadence.

    Attributes:
        frequency: hourly, daily, weekly, monthly or manual
        day_of_week: 0 (Sunday) to 6, used by weekly schedules
        day_of_month: 1 to 31, used by monthly schedules
    """

    frequency: ScheduleFrequency = ScheduleFrequency.MANUAL
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    day_of_month: Optional[int] = Field(None, ge=1, le=31)


class Source(_CamelModel):
    """
    External data source bound to a collector type.

    Attributes:
        id: Stable source identifier
        name: Display name
        source_type: Kind of source (county website, API, ...)
        url: Listing URL
        region: State and county covered
        collector_type: Registered collector name that handles this source
        schedule: Collection cadence
        metadata: Free-form settings; errorMessage/warningMessage written by the manager
        status: active, warning, error or inactive
        last_collected: When the last collection finished
        next_scheduled_run: When the schedule next makes the source due
    """

    id: str
    name: str
    source_type: SourceType = Field(SourceType.COUNTY_WEBSITE, alias="type")
    url: str
    region: SourceRegion
    collector_type: str
    schedule: SourceSchedule = Field(default_factory=SourceSchedule)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    status: SourceStatus = SourceStatus.ACTIVE
    last_collected: Optional[datetime] = None
    next_scheduled_run: Optional[datetime] = None

    def is_active(self) -> bool:
        return self.status != SourceStatus.INACTIVE

    def setting(self, key: str, default: Any = None) -> Any:
        """Read a per-source option from metadata."""
        return self.metadata.get(key, default)
