"""Abstract interface of the full-text engine the core delegates to.

The contract follows the Elasticsearch REST surface: index bodies are mapping
documents and `query` takes a `_search` request body and returns the raw
`_search` response (`hits.total`, `hits.hits[]._source`, `hits.hits[].highlight`).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from types import TracebackType
from typing import Any, Dict, Optional, Type


class BaseEngine(ABC):
    """Abstract interface for search engine backends.

    Implementations raise `ConnectivityError` when the engine cannot be reached
    and `EngineError` when it answers with an error.
    """

    @abstractmethod
    async def exists(self, index: str) -> bool:
        """Return True if the index exists."""

    @abstractmethod
    async def create_index(self, index: str, schema: Dict[str, Any]) -> None:
        """Create the index with the given settings/mappings body."""

    @abstractmethod
    async def delete_index(self, index: str, *, ignore_missing: bool = True) -> None:
        """Delete the index and all of its documents."""

    @abstractmethod
    async def upsert(self, index: str, doc_id: str, body: Dict[str, Any]) -> None:
        """Insert or replace the document stored under `doc_id`."""

    @abstractmethod
    async def query(self, index: str, dsl: Dict[str, Any]) -> Dict[str, Any]:
        """Execute a search request body and return the raw response."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release any held resources."""

    async def __aenter__(self) -> BaseEngine:
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.close()
