"""Custom exception hierarchy for miujsag.

Every public operation either returns a value or raises one of these, with the
underlying cause chained, so callers can tell "no matches" apart from
"search failed" and decide on retries themselves.
"""

from __future__ import annotations

from typing import Optional


class MiujsagError(Exception):
    """Base class for all miujsag exceptions."""


class ConfigError(MiujsagError):
    """Raised when configuration loading or validation fails."""


class ConnectivityError(MiujsagError):
    """Raised when the search engine cannot be reached."""


class EngineTimeoutError(ConnectivityError):
    """Raised when a call to the search engine times out."""


class EngineError(MiujsagError):
    """Raised when the search engine answers a request with an error."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        error_type: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_type = error_type
        self.reason = reason


class SchemaError(MiujsagError):
    """Raised when index or mapping creation fails."""


class IndexingError(MiujsagError):
    """Raised when checking for or writing a single document fails."""

    def __init__(self, message: str, *, document_id: Optional[str]) -> None:
        super().__init__(message)
        self.document_id = document_id


class QueryError(MiujsagError):
    """Raised for malformed search requests or engine-rejected queries."""
