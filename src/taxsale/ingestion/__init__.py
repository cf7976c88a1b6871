"""
Ingestion Package

Collector registry and orchestration of collection runs across sources.
"""
from src.taxsale.ingestion.manager import CollectorManager
from src.taxsale.ingestion.scheduling import is_due_for_collection, next_run_after

__all__ = ["CollectorManager", "is_due_for_collection", "next_run_after"]
