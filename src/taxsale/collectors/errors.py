"""
Collection Errors

Error taxonomy raised by collectors and the collector manager.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorType(str, Enum):
    """Category of a collection failure."""

    CONNECTION = "connection"
    PARSING = "parsing"
    VALIDATION = "validation"
    TRANSFORMATION = "transformation"
    STORAGE = "storage"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    UNKNOWN = "unknown"


class CollectionError(Exception):
    """
    Failure raised while collecting from a source.

    Attributes:
        message: Human readable description
        source: Source identifier (or collector name when no source is known)
        error_type: ErrorType category
        details: Structured context for logs and error_log entries
        timestamp: When the error was raised (UTC)
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        error_type: ErrorType = ErrorType.UNKNOWN,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.source = source
        self.error_type = error_type
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)


class CollectorConfigurationError(Exception):
    """Raised when a collector or source is unknown or misconfigured."""


class CollectionCancelledError(Exception):
    """Raised at a suspension point after a collection was cancelled."""

    def __init__(self, reason: str = "collection cancelled"):
        super().__init__(reason)
        self.reason = reason
