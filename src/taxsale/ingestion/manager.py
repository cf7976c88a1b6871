"""
Collector Manager

Owns the collector registry and orchestrates collections: single runs, runs
across every collector, concurrency-bounded batches across sources and
scheduled runs. Collected records are standardized, normalized and upserted,
and every run is recorded for health aggregation.

Usage:
    manager = CollectorManager()
    manager.register_collector("stmarys-county-collector", StMarysCountyCollector())
    result = await manager.run_collection("stmarys-county-collector")
"""
import asyncio
import time
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from config.settings import settings
from src.taxsale.collectors.base import BaseCollector
from src.taxsale.collectors.errors import (
    CollectionCancelledError,
    CollectionError,
    CollectorConfigurationError,
)
from src.taxsale.db.repository import (
    CollectionRunRepository,
    PropertyRepository,
    SourceRepository,
)
from src.taxsale.db.session import (
    SessionFactory,
    get_db_session,
    get_session_factory,
    health_check,
)
from src.taxsale.ingestion.scheduling import is_due_for_collection, next_run_after
from src.taxsale.models.collection import (
    CollectionResult,
    CollectionStatus,
    HealthCheckResult,
)
from src.taxsale.models.property import TaxSaleProperty
from src.taxsale.models.source import Source, SourceStatus
from src.taxsale.monitoring.health import RunRecord, evaluate_health, lookback_start
from src.taxsale.transformers.pipeline import (
    TransformationPipeline,
    TransformationValidationError,
)
from src.taxsale.utils.cancellation import CancellationToken
from src.taxsale.utils.clock import utcnow
from src.taxsale.utils.logger import (
    bind_collection_context,
    clear_collection_context,
    get_logger,
)

logger = get_logger(__name__)

# error_log keeps the first entries of a run; the rest are only counted
MAX_ERROR_LOG_ENTRIES = 50


def property_row(prop: TaxSaleProperty) -> Dict[str, Any]:
    """Column values for PropertyRepository.upsert."""
    return {
        'record_key': prop.upsert_key(),
        'parcel_id': prop.parcel_id,
        'tax_account_number': prop.tax_account_number,
        'owner_name': prop.owner_name,
        'property_address': prop.property_address,
        'city': prop.city,
        'state': prop.state,
        'county': prop.county,
        'zip_code': prop.zip_code,
        'property_type': prop.property_type,
        'legal_description': prop.legal_description,
        'property_details': prop.property_details.model_dump(mode="json"),
        'tax_info': prop.tax_info.model_dump(mode="json"),
        'sale_info': prop.sale_info.model_dump(mode="json"),
        'latitude': prop.location.latitude,
        'longitude': prop.location.longitude,
        'source_id': prop.source_id,
        'raw_data': prop.raw_data,
        'last_updated': prop.last_updated,
    }


def cancelled_result(source_id: Optional[str], collector_name: str, reason: str) -> CollectionResult:
    return CollectionResult.failure(
        collector_name,
        f"Collection cancelled: {reason}",
        source_id=source_id,
        cancelled=True,
    )


class CollectorManager:
    """
    Registry of collectors plus collection orchestration.

    Blocking work (SQLAlchemy sessions) runs in worker threads via
    asyncio.to_thread so collections for different sources overlap.
    """

    def __init__(
        self,
        session_factory: Optional[SessionFactory] = None,
        pipeline: Optional[TransformationPipeline] = None,
        concurrency_limit: Optional[int] = None,
    ):
        """
        Initialize manager.

        Args:
            session_factory: Session factory for persistence (defaults to the
                settings-configured database)
            pipeline: Transformation pipeline applied to every record
            concurrency_limit: Default batch size for parallel collections
        """
        self.session_factory = session_factory or get_session_factory()
        self.pipeline = pipeline or TransformationPipeline()
        self.concurrency_limit = concurrency_limit or settings.collection_concurrency_limit

        self._collectors: Dict[str, BaseCollector] = {}
        self.properties = PropertyRepository()
        self.sources = SourceRepository()
        self.runs = CollectionRunRepository()

        logger.info("collector_manager_initialized", concurrency_limit=self.concurrency_limit)

    # Registry

    def register_collector(self, name: str, collector: BaseCollector) -> None:
        """
        Register a collector under name.

        Raises:
            ValueError: If name is already registered
        """
        if name in self._collectors:
            raise ValueError(f"Collector already registered: {name}")
        self._collectors[name] = collector
        logger.info("collector_registered", collector=name, collector_id=collector.collector_id)

    def get_collector(self, name: str) -> Optional[BaseCollector]:
        return self._collectors.get(name)

    @property
    def collectors(self) -> List[str]:
        return list(self._collectors)

    # Sources

    async def add_source(self, source: Source) -> Source:
        """Create or replace a source definition."""
        return await asyncio.to_thread(self._save_source, source)

    async def get_source(self, source_id: str) -> Optional[Source]:
        return await asyncio.to_thread(self._load_source, source_id)

    async def get_sources(self, active_only: bool = False) -> List[Source]:
        return await asyncio.to_thread(self._load_sources, active_only)

    def _save_source(self, source: Source) -> Source:
        with get_db_session(self.session_factory) as session:
            return self.sources.save(session, source)

    def _load_source(self, source_id: str) -> Optional[Source]:
        with get_db_session(self.session_factory) as session:
            return self.sources.get(session, source_id)

    def _load_sources(self, active_only: bool) -> List[Source]:
        with get_db_session(self.session_factory) as session:
            if active_only:
                return self.sources.list_active(session)
            return self.sources.list_all(session)

    def _first_source_for(self, collector_name: str) -> Optional[Source]:
        with get_db_session(self.session_factory) as session:
            for source in self.sources.list_by_collector(session, collector_name):
                if source.is_active():
                    return source
        return None

    # Collection

    async def run_collection(
        self,
        collector_name: str,
        source_id: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> CollectionResult:
        """
        Run one collector against one source and persist the results.

        Args:
            collector_name: Registered collector name
            source_id: Source to collect (defaults to the first active source
                bound to collector_name)
            cancel_token: Token that stops the run at its next suspension point

        Returns:
            CollectionResult with persistence stats

        Raises:
            CollectorConfigurationError: Unknown collector or source
            CollectionCancelledError: If cancel_token is cancelled mid-run
        """
        collector = self._collectors.get(collector_name)
        if collector is None:
            raise CollectorConfigurationError(f"Collector not found: {collector_name}")

        if source_id is None:
            source = await asyncio.to_thread(self._first_source_for, collector_name)
            if source is None:
                raise CollectorConfigurationError(
                    f"No active source configured for collector: {collector_name}"
                )
        else:
            source = await self.get_source(source_id)
            if source is None:
                raise CollectorConfigurationError(f"Source not found: {source_id}")

        return await self._collect(collector_name, collector, source, cancel_token)

    async def _collect(
        self,
        collector_name: str,
        collector: BaseCollector,
        source: Source,
        cancel_token: Optional[CancellationToken] = None,
    ) -> CollectionResult:
        started = time.monotonic()
        bind_collection_context(source_id=source.id, collector=collector_name)
        logger.info("collection_started", source_url=source.url)

        try:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            if collector.requires_authentication and not await collector.authenticate():
                result = CollectionResult.failure(
                    collector_name,
                    f"Authentication failed for collector {collector_name}",
                    source_id=source.id,
                )
            else:
                result = await collector.execute(source, cancel_token=cancel_token)

            result.source_id = result.source_id or source.id
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            if result.success and result.records:
                await asyncio.to_thread(self._persist_records, collector, source, result)
        except CollectionCancelledError:
            logger.warning("collection_cancelled", source_id=source.id)
            raise
        except CollectionError as e:
            logger.error("collection_failed", error=e.message, error_type=e.error_type.value)
            result = CollectionResult.failure(
                collector_name, e.message, source_id=source.id, error_type=e.error_type.value
            )
        except Exception as e:
            logger.exception("collection_failed", error=str(e), error_type=type(e).__name__)
            result = CollectionResult.failure(
                collector_name, f"Collection failed: {e}", source_id=source.id
            )
        finally:
            clear_collection_context("source_id", "collector")

        result.stats.duration_ms = int((time.monotonic() - started) * 1000)
        self._settle_status(result)
        await asyncio.to_thread(self._record_run, source, result)

        logger.info(
            "collection_completed",
            source_id=source.id,
            collector=collector_name,
            status=result.status.value,
            fetched=result.stats.fetched,
            new=result.stats.new,
            updated=result.stats.updated,
            duration_ms=result.stats.duration_ms,
        )
        return result

    def _persist_records(
        self,
        collector: BaseCollector,
        source: Source,
        result: CollectionResult,
    ) -> None:
        """
        Standardize, transform and upsert each record in its own transaction.

        A record that fails validation or persistence is counted and logged;
        its siblings are still processed.
        """
        stats = result.stats
        stats.fetched = len(result.records)

        for index, raw in enumerate(result.records):
            try:
                draft = collector.standardize_record(raw, source)
                prop = self.pipeline.to_property(draft)
            except (TransformationValidationError, ValidationError, ValueError) as e:
                stats.validation_failed += 1
                logger.warning("record_validation_failed", record_index=index, error=str(e))
                self._log_record_error(result, f"Record {index} failed validation: {e}")
                continue
            except Exception as e:
                stats.validation_failed += 1
                logger.warning(
                    "record_transformation_failed",
                    record_index=index,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                self._log_record_error(result, f"Record {index} could not be transformed: {e!r}")
                continue

            stats.transformed += 1
            try:
                with get_db_session(self.session_factory) as session:
                    _, created = self.properties.upsert(session, property_row(prop))
            except SQLAlchemyError as e:
                stats.persistence_failed += 1
                logger.error(
                    "record_persistence_failed",
                    record_index=index,
                    record_key=prop.upsert_key(),
                    error=str(e),
                )
                self._log_record_error(result, f"Record {index} could not be saved: {e}")
                continue

            stats.saved += 1
            if created:
                stats.new += 1
            else:
                stats.updated += 1
            result.data.append(prop.upsert_key())

    @staticmethod
    def _log_record_error(result: CollectionResult, message: str) -> None:
        if len(result.error_log) < MAX_ERROR_LOG_ENTRIES:
            result.log_error(message)

    @staticmethod
    def _settle_status(result: CollectionResult) -> None:
        stats = result.stats
        if not result.success:
            result.status = CollectionStatus.ERROR
            return
        if stats.fetched and stats.saved == 0:
            result.success = False
            result.status = CollectionStatus.ERROR
            result.message = f"{result.message}; no records could be saved"
            return
        if stats.validation_failed or stats.persistence_failed or stats.enrichment_failed:
            result.status = CollectionStatus.PARTIAL
            failed = stats.validation_failed + stats.persistence_failed
            if failed:
                result.message = f"{result.message}; {failed} records rejected"

    def _record_run(self, source: Source, result: CollectionResult) -> None:
        """Store the CollectionRun and move the source to its new status."""
        if result.status == CollectionStatus.ERROR:
            status, error_message, warning_message = SourceStatus.ERROR, result.message, None
        elif result.status == CollectionStatus.PARTIAL or result.used_sample_data:
            status, error_message, warning_message = SourceStatus.WARNING, None, result.message
        else:
            status, error_message, warning_message = SourceStatus.ACTIVE, None, None
        if source.status == SourceStatus.INACTIVE:
            status = SourceStatus.INACTIVE

        collected_at = utcnow()
        try:
            with get_db_session(self.session_factory) as session:
                self.runs.create_from_result(session, result)
                self.sources.record_collection(
                    session,
                    source.id,
                    status=status,
                    collected_at=collected_at,
                    next_scheduled_run=next_run_after(collected_at, source.schedule),
                    error_message=error_message,
                    warning_message=warning_message,
                )
        except SQLAlchemyError as e:
            logger.error("collection_run_not_recorded", source_id=source.id, error=str(e))
            result.log_error(f"Collection run could not be recorded: {e}")

    async def run_all_collectors(
        self,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Dict[str, CollectionResult]:
        """
        Run every registered collector in turn; one failing does not stop the rest.

        Returns:
            Mapping of collector name to result
        """
        results: Dict[str, CollectionResult] = {}
        names = self.collectors

        for position, name in enumerate(names):
            try:
                results[name] = await self.run_collection(name, cancel_token=cancel_token)
            except CollectionCancelledError as e:
                for remaining in names[position:]:
                    results[remaining] = cancelled_result(None, remaining, e.reason)
                break
            except CollectorConfigurationError as e:
                logger.error("collector_run_skipped", collector=name, error=str(e))
                results[name] = CollectionResult.failure(name, str(e))
            except Exception as e:
                logger.exception("collector_run_failed", collector=name, error=str(e))
                results[name] = CollectionResult.failure(name, f"Collection failed: {e}")

        return results

    async def execute_parallel_collections(
        self,
        source_ids: Optional[Iterable[str]] = None,
        concurrency_limit: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Dict[str, CollectionResult]:
        """
        Collect many sources in batches of concurrency_limit.

        Each batch runs concurrently and must settle before the next starts.

        Args:
            source_ids: Sources to collect (defaults to every active source)
            concurrency_limit: Batch size (defaults to the manager's limit)
            cancel_token: Cancelling stops further batches; unstarted and
                interrupted sources get cancelled results

        Returns:
            Mapping of source id to result
        """
        limit = self.concurrency_limit if concurrency_limit is None else concurrency_limit
        if limit < 1:
            raise ValueError("concurrency_limit must be at least 1")

        if source_ids is None:
            ids = [source.id for source in await self.get_sources(active_only=True)]
        else:
            ids = list(dict.fromkeys(source_ids))

        logger.info("parallel_collection_started", source_count=len(ids), concurrency_limit=limit)
        results: Dict[str, CollectionResult] = {}

        for start in range(0, len(ids), limit):
            if cancel_token is not None and cancel_token.cancelled:
                reason = cancel_token.reason or "collection cancelled"
                for source_id in ids[start:]:
                    results[source_id] = cancelled_result(source_id, "unknown", reason)
                break

            batch = ids[start:start + limit]
            outcomes = await asyncio.gather(
                *(self._collect_source(source_id, cancel_token) for source_id in batch),
                return_exceptions=True,
            )
            for source_id, outcome in zip(batch, outcomes):
                results[source_id] = self._outcome_to_result(source_id, outcome)

        logger.info(
            "parallel_collection_completed",
            source_count=len(ids),
            failed=sum(1 for r in results.values() if not r.success),
        )
        return results

    async def _collect_source(
        self,
        source_id: str,
        cancel_token: Optional[CancellationToken],
    ) -> CollectionResult:
        source = await self.get_source(source_id)
        if source is None:
            logger.error("parallel_collection_unknown_source", source_id=source_id)
            return CollectionResult.failure("unknown", f"Source not found: {source_id}", source_id=source_id)

        collector = self._collectors.get(source.collector_type)
        if collector is None:
            logger.error(
                "parallel_collection_unknown_collector",
                source_id=source_id,
                collector_type=source.collector_type,
            )
            return CollectionResult.failure(
                source.collector_type,
                f"Collector not found: {source.collector_type}",
                source_id=source_id,
            )

        return await self._collect(source.collector_type, collector, source, cancel_token)

    @staticmethod
    def _outcome_to_result(source_id: str, outcome: Any) -> CollectionResult:
        if isinstance(outcome, CollectionResult):
            return outcome
        if isinstance(outcome, CollectionCancelledError):
            return cancelled_result(source_id, "unknown", outcome.reason)
        if isinstance(outcome, asyncio.CancelledError):
            return cancelled_result(source_id, "unknown", "task cancelled")
        logger.error("parallel_collection_failed", source_id=source_id, error=str(outcome))
        return CollectionResult.failure("unknown", f"Collection failed: {outcome}", source_id=source_id)

    async def run_scheduled_collections(
        self,
        now: Optional[datetime] = None,
        concurrency_limit: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Dict[str, CollectionResult]:
        """Collect every active source whose schedule makes it due at `now`."""
        sources = await self.get_sources(active_only=True)
        due = [source.id for source in sources if is_due_for_collection(source, now)]
        logger.info("scheduled_sources_due", due=len(due), active=len(sources))
        if not due:
            return {}
        return await self.execute_parallel_collections(
            due, concurrency_limit=concurrency_limit, cancel_token=cancel_token
        )

    # Health

    async def check_health(
        self,
        lookback_hours: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> HealthCheckResult:
        """
        Aggregate source state and recent runs into a health report.

        Args:
            lookback_hours: Window of runs considered (default from settings)
            now: Evaluation time (defaults to now, UTC)
        """
        now = now or utcnow()
        hours = lookback_hours if lookback_hours is not None else settings.health_lookback_hours
        sources, runs, system_errors = await asyncio.to_thread(
            self._load_health_inputs, lookback_start(now, hours)
        )
        return evaluate_health(
            sources,
            runs,
            self.collectors,
            now=now,
            stale_after_days=settings.health_stale_after_days,
            warning_ratio=settings.health_warning_ratio,
            system_errors=system_errors,
        )

    def _load_health_inputs(self, since: datetime) -> Tuple[List[Source], List[RunRecord], List[str]]:
        if not health_check(self.session_factory):
            return [], [], ["Collection store unavailable: database connection failed"]
        try:
            with get_db_session(self.session_factory) as session:
                sources = self.sources.list_all(session)
                runs = [RunRecord.from_run(run) for run in self.runs.get_recent_runs(session, since)]
            return sources, runs, []
        except SQLAlchemyError as e:
            logger.error("health_inputs_unavailable", error=str(e))
            return [], [], [f"Collection store unavailable: {e}"]
