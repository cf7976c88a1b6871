"""
Repository Pattern for Data Access

CRUD operations and domain queries for sources, properties and collection runs.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from sqlalchemy import desc, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from src.taxsale.db.models import CollectionRun, DataSource, Property
from src.taxsale.models.collection import CollectionResult
from src.taxsale.models.source import (
    Source,
    SourceRegion,
    SourceSchedule,
    SourceStatus,
)
from src.taxsale.utils.clock import ensure_utc
from src.taxsale.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar('T')

PROPERTY_UPDATE_COLUMNS = (
    'parcel_id',
    'tax_account_number',
    'owner_name',
    'property_address',
    'city',
    'state',
    'county',
    'zip_code',
    'property_type',
    'legal_description',
    'property_details',
    'tax_info',
    'sale_info',
    'latitude',
    'longitude',
    'source_id',
    'raw_data',
    'last_updated',
)


class BaseRepository:
    """
    Base repository with common CRUD operations.
    """

    def __init__(self, model: Type[T]):
        self.model = model

    def get_by_id(self, session: Session, id_value: Any) -> Optional[T]:
        return session.get(self.model, id_value)

    def count(self, session: Session) -> int:
        return session.execute(select(func.count()).select_from(self.model)).scalar_one()


class PropertyRepository(BaseRepository):
    """Repository for normalized properties keyed by record_key."""

    def __init__(self):
        super().__init__(Property)

    def get_by_key(self, session: Session, record_key: str) -> Optional[Property]:
        stmt = (
            select(Property)
            .where(Property.record_key == record_key)
            .execution_options(populate_existing=True)
        )
        return session.execute(stmt).scalar_one_or_none()

    def upsert(self, session: Session, property_data: Dict[str, Any]) -> Tuple[Property, bool]:
        """
        Insert or update a property by record_key.

        Args:
            session: Database session
            property_data: Column values (must include record_key)

        Returns:
            (Property instance, True if the row was created)
        """
        record_key = property_data.get('record_key')
        if not record_key:
            raise ValueError("record_key is required for upsert")

        existed = session.execute(
            select(Property.id).where(Property.record_key == record_key)
        ).first() is not None

        dialect = session.get_bind().dialect.name
        if dialect == 'postgresql':
            insert = postgresql.insert
        elif dialect == 'sqlite':
            insert = sqlite.insert
        else:
            return self._upsert_orm(session, property_data, existed)

        stmt = insert(Property).values(**property_data)
        set_ = {
            column: getattr(stmt.excluded, column)
            for column in PROPERTY_UPDATE_COLUMNS
            if column in property_data
        }
        set_['updated_at'] = func.now()
        stmt = stmt.on_conflict_do_update(index_elements=['record_key'], set_=set_)

        session.execute(stmt)
        session.flush()

        logger.debug("property_upserted", record_key=record_key, created=not existed)
        return self.get_by_key(session, record_key), not existed

    def _upsert_orm(
        self,
        session: Session,
        property_data: Dict[str, Any],
        existed: bool
    ) -> Tuple[Property, bool]:
        if existed:
            instance = self.get_by_key(session, property_data['record_key'])
            for column, value in property_data.items():
                setattr(instance, column, value)
        else:
            instance = Property(**property_data)
            session.add(instance)
        session.flush()
        return instance, not existed

    def list_by_source(self, session: Session, source_id: str) -> List[Property]:
        stmt = select(Property).where(Property.source_id == source_id).order_by(Property.id)
        return list(session.execute(stmt).scalars().all())


class SourceRepository(BaseRepository):
    """Repository for configured data sources."""

    def __init__(self):
        super().__init__(DataSource)

    @staticmethod
    def to_domain(row: DataSource) -> Source:
        return Source(
            id=row.id,
            name=row.name,
            source_type=row.source_type,
            url=row.url,
            region=SourceRegion(state=row.state, county=row.county),
            collector_type=row.collector_type,
            schedule=SourceSchedule.model_validate(row.schedule or {}),
            metadata=dict(row.source_metadata or {}),
            status=row.status,
            last_collected=ensure_utc(row.last_collected),
            next_scheduled_run=ensure_utc(row.next_scheduled_run),
        )

    def get(self, session: Session, source_id: str) -> Optional[Source]:
        row = self.get_by_id(session, source_id)
        return self.to_domain(row) if row else None

    def list_all(self, session: Session) -> List[Source]:
        rows = session.execute(select(DataSource).order_by(DataSource.id)).scalars().all()
        return [self.to_domain(row) for row in rows]

    def list_active(self, session: Session) -> List[Source]:
        stmt = (
            select(DataSource)
            .where(DataSource.status != SourceStatus.INACTIVE.value)
            .order_by(DataSource.id)
        )
        return [self.to_domain(row) for row in session.execute(stmt).scalars().all()]

    def list_by_collector(self, session: Session, collector_type: str) -> List[Source]:
        stmt = (
            select(DataSource)
            .where(DataSource.collector_type == collector_type)
            .order_by(DataSource.id)
        )
        return [self.to_domain(row) for row in session.execute(stmt).scalars().all()]

    def save(self, session: Session, source: Source) -> Source:
        """Create or replace a source definition."""
        row = self.get_by_id(session, source.id)
        if row is None:
            row = DataSource(id=source.id)
            session.add(row)

        row.name = source.name
        row.source_type = source.source_type.value
        row.url = source.url
        row.state = source.region.state
        row.county = source.region.county
        row.collector_type = source.collector_type
        row.schedule = source.schedule.model_dump(mode="json")
        row.source_metadata = dict(source.metadata)
        row.status = source.status.value
        row.last_collected = source.last_collected
        row.next_scheduled_run = source.next_scheduled_run
        session.flush()

        logger.info("source_saved", source_id=source.id, collector_type=source.collector_type)
        return self.to_domain(row)

    def record_collection(
        self,
        session: Session,
        source_id: str,
        status: SourceStatus,
        collected_at: datetime,
        next_scheduled_run: Optional[datetime] = None,
        error_message: Optional[str] = None,
        warning_message: Optional[str] = None,
    ) -> Optional[Source]:
        """
        Update a source after a collection.

        errorMessage / warningMessage in metadata reflect the latest run only.
        """
        row = self.get_by_id(session, source_id)
        if row is None:
            return None

        metadata = dict(row.source_metadata or {})
        metadata.pop('errorMessage', None)
        metadata.pop('warningMessage', None)
        if error_message:
            metadata['errorMessage'] = error_message
        if warning_message:
            metadata['warningMessage'] = warning_message

        row.status = status.value
        row.last_collected = collected_at
        row.next_scheduled_run = next_scheduled_run
        row.source_metadata = metadata
        session.flush()

        logger.debug("source_collection_recorded", source_id=source_id, status=status.value)
        return self.to_domain(row)


class CollectionRunRepository(BaseRepository):
    """Repository for collection run history."""

    def __init__(self):
        super().__init__(CollectionRun)

    def create_from_result(self, session: Session, result: CollectionResult) -> CollectionRun:
        run = CollectionRun(
            source_id=result.source_id,
            collector_name=result.collector_name,
            timestamp=result.timestamp,
            status=result.status.value,
            message=result.message,
            stats=result.stats.model_dump(),
            error_log=[entry.model_dump(mode="json") for entry in result.error_log],
            property_keys=list(result.data),
            raw_data_path=result.raw_data_path,
            used_sample_data=result.used_sample_data,
        )
        session.add(run)
        session.flush()

        logger.info(
            "collection_run_recorded",
            run_id=run.id,
            source_id=result.source_id,
            status=run.status
        )
        return run

    def get_recent_runs(self, session: Session, since: datetime) -> List[CollectionRun]:
        stmt = (
            select(CollectionRun)
            .where(CollectionRun.timestamp >= since)
            .order_by(desc(CollectionRun.timestamp))
        )
        return list(session.execute(stmt).scalars().all())

    def get_runs_for_source(self, session: Session, source_id: str, limit: int = 10) -> List[CollectionRun]:
        stmt = (
            select(CollectionRun)
            .where(CollectionRun.source_id == source_id)
            .order_by(desc(CollectionRun.timestamp))
            .limit(limit)
        )
        return list(session.execute(stmt).scalars().all())
