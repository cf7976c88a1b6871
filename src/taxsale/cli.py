"""
Command-line entry point for running collections and checking health.

    taxsale init-db --seed-sources
    taxsale run stmarys-county-collector --source stmarys-md
    taxsale parallel --concurrency 2
    taxsale health --lookback-hours 48
"""
import argparse
import asyncio
import json
import sys
from typing import Any, Dict, List, Optional

from config.settings import settings
from src.taxsale.collectors.errors import CollectionCancelledError, CollectorConfigurationError
from src.taxsale.collectors.st_marys import StMarysCountyCollector
from src.taxsale.db.session import close_connections, create_all_tables
from src.taxsale.ingestion.manager import CollectorManager
from src.taxsale.models.collection import CollectionResult
from src.taxsale.models.source import (
    ScheduleFrequency,
    Source,
    SourceRegion,
    SourceSchedule,
    SourceType,
)
from src.taxsale.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def default_sources() -> List[Source]:
    """Sources created by `init-db --seed-sources`."""
    return [
        Source(
            id="stmarys-md",
            name="St. Mary's County Tax Sale",
            source_type=SourceType.COUNTY_WEBSITE,
            url=settings.stmarys_tax_sale_url,
            region=SourceRegion(state="MD", county="St. Mary's"),
            collector_type=StMarysCountyCollector.collector_id,
            schedule=SourceSchedule(frequency=ScheduleFrequency.WEEKLY, day_of_week=1),
            metadata={"enrich_with_sdat": settings.enrich_with_sdat},
        )
    ]


def build_manager() -> CollectorManager:
    manager = CollectorManager()
    manager.register_collector(StMarysCountyCollector.collector_id, StMarysCountyCollector())
    return manager


def _dump(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _results_payload(results: Dict[str, CollectionResult]) -> Dict[str, Any]:
    return {key: result.model_dump(by_alias=True, mode="json") for key, result in results.items()}


async def _run(args: argparse.Namespace) -> int:
    manager = build_manager()

    if args.command == "init-db":
        create_all_tables()
        if args.seed_sources:
            for source in default_sources():
                await manager.add_source(source)
        return 0

    if args.command == "run":
        result = await manager.run_collection(args.collector, source_id=args.source)
        _dump(result.model_dump(by_alias=True, mode="json"))
        return 0 if result.success else 1

    if args.command == "run-all":
        results = await manager.run_all_collectors()
        _dump(_results_payload(results))
        return 0 if all(r.success for r in results.values()) else 1

    if args.command == "parallel":
        results = await manager.execute_parallel_collections(
            source_ids=args.sources, concurrency_limit=args.concurrency
        )
        _dump(_results_payload(results))
        return 0 if all(r.success for r in results.values()) else 1

    if args.command == "scheduled":
        results = await manager.run_scheduled_collections(concurrency_limit=args.concurrency)
        _dump(_results_payload(results))
        return 0 if all(r.success for r in results.values()) else 1

    if args.command == "health":
        health = await manager.check_health(lookback_hours=args.lookback_hours)
        _dump(health.model_dump(by_alias=True, mode="json"))
        return 0 if health.status != "unhealthy" else 1

    raise ValueError(f"Unknown command: {args.command}")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Tax sale collection pipeline")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_db = subparsers.add_parser("init-db", help="Create tables")
    init_db.add_argument("--seed-sources", action="store_true", help="Insert the default sources")

    run = subparsers.add_parser("run", help="Run one collector")
    run.add_argument("collector", help="Registered collector name")
    run.add_argument("--source", default=None, help="Source id (defaults to the collector's first active source)")

    subparsers.add_parser("run-all", help="Run every registered collector")

    parallel = subparsers.add_parser("parallel", help="Collect sources in concurrent batches")
    parallel.add_argument("--sources", nargs="+", default=None, help="Source ids (defaults to all active)")
    parallel.add_argument("--concurrency", type=int, default=None, help="Batch size")

    scheduled = subparsers.add_parser("scheduled", help="Collect sources that are due")
    scheduled.add_argument("--concurrency", type=int, default=None, help="Batch size")

    health = subparsers.add_parser("health", help="Print the health report")
    health.add_argument("--lookback-hours", type=int, default=None, help="Run history window")

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    setup_logging()
    args = parse_args(argv)
    try:
        return asyncio.run(_run(args))
    except CollectorConfigurationError as e:
        logger.error("cli_configuration_error", error=str(e))
        return 2
    except CollectionCancelledError as e:
        logger.warning("cli_collection_cancelled", reason=e.reason)
        return 130
    finally:
        close_connections()


if __name__ == "__main__":
    sys.exit(main())
