"""
Collector Capability

Contract every source-specific collector implements. The manager only sees
this interface.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence

from src.taxsale.models.collection import CollectionResult, SourceValidation
from src.taxsale.models.source import Source, SourceType
from src.taxsale.utils.cancellation import CancellationToken


class BaseCollector(ABC):
    """
    Abstract collector.

    Attributes:
        collector_id: Stable identifier (also the default registry name)
        name: Display name
        description: What the collector fetches
        supported_source_types: Source types this collector can handle
        requires_authentication: Whether authenticate() must succeed before execute()
    """

    collector_id: str = ""
    name: str = ""
    description: str = ""
    supported_source_types: Sequence[SourceType] = ()
    requires_authentication: bool = False

    async def authenticate(self) -> bool:
        return True

    @abstractmethod
    async def execute(
        self,
        source: Source,
        cancel_token: Optional[CancellationToken] = None,
    ) -> CollectionResult:
        """
        Fetch raw records for source.

        Failures the collector can describe are returned as an unsuccessful
        result; CollectionCancelledError propagates.
        """

    def validate_source(self, source: Source) -> SourceValidation:
        errors = []
        if self.supported_source_types and source.source_type not in self.supported_source_types:
            errors.append(
                f"Source type {source.source_type.value} is not supported by {self.collector_id}"
            )
        return SourceValidation(valid=not errors, errors=errors)

    def standardize_record(self, raw: Dict[str, Any], source: Source) -> Dict[str, Any]:
        """
        Map one raw record to a property draft for the transformation pipeline.

        The default passes snake_case keys through and fills region and source.
        """
        draft = dict(raw)
        draft.setdefault('state', source.region.state)
        draft.setdefault('county', source.region.county)
        draft['source_id'] = source.id
        draft.setdefault('raw_data', dict(raw))
        return draft
