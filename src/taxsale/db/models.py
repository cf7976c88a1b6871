"""
SQLAlchemy ORM Models

Persistent sources, normalized properties and collection run history.
Properties are deduplicated through the unique record_key column.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.taxsale.db.base import Base, JSONType, TimestampMixin


class DataSource(Base, TimestampMixin):
    """Configured external source bound to a collector type."""
    __tablename__ = "data_sources"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    source_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="county-website, state-records, tax-database, api, pdf"
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    state: Mapped[str] = mapped_column(String(2), nullable=False)
    county: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    collector_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Registered collector name"
    )
    schedule: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    # "metadata" is reserved on declarative classes
    source_metadata: Mapped[dict] = mapped_column(
        "metadata",
        JSONType,
        nullable=False,
        default=dict
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
        comment="active, warning, error, inactive"
    )
    last_collected: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    next_scheduled_run: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_data_sources_status", "status"),
        Index("idx_data_sources_collector_type", "collector_type"),
    )

    def __repr__(self) -> str:
        return f"<DataSource(id='{self.id}', status='{self.status}')>"


class Property(Base, TimestampMixin):
    """
    Normalized tax sale property.

    One row per STATE|COUNTY|identity key.
    """
    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    record_key: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
        unique=True,
        comment="STATE|COUNTY|parcel:/account:/address: identity"
    )

    parcel_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    tax_account_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    owner_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    property_address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    state: Mapped[str] = mapped_column(String(2), nullable=False)
    county: Mapped[str] = mapped_column(String(100), nullable=False)
    zip_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    property_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    legal_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    property_details: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    tax_info: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    sale_info: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    source_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    raw_data: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_properties_parcel_id", "parcel_id"),
        Index("idx_properties_state_county", "state", "county"),
        Index("idx_properties_source_id", "source_id"),
    )

    def __repr__(self) -> str:
        return f"<Property(record_key='{self.record_key}')>"


class CollectionRun(Base, TimestampMixin):
    """Immutable record of one collection attempt."""
    __tablename__ = "collection_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    collector_name: Mapped[str] = mapped_column(String(100), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="success, partial, error"
    )
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    stats: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    error_log: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    property_keys: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    raw_data_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    used_sample_data: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("idx_collection_runs_timestamp", "timestamp"),
        Index("idx_collection_runs_source_id", "source_id"),
    )

    def __repr__(self) -> str:
        return f"<CollectionRun(id={self.id}, source_id='{self.source_id}', status='{self.status}')>"
