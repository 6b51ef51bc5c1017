"""Deduplicating article indexer and fuzzy search over an Elasticsearch-compatible engine."""

from miujsag.exceptions import (
    ConnectivityError,
    EngineError,
    EngineTimeoutError,
    IndexingError,
    MiujsagError,
    QueryError,
    SchemaError,
)
from miujsag.models import (
    Article,
    ArticleSummary,
    Category,
    IndexOutcome,
    SearchRequest,
    SearchResult,
    Site,
    SortMode,
)
from miujsag.service import SearchService, create_search_client, setup

__all__ = [
    "Article",
    "ArticleSummary",
    "Category",
    "ConnectivityError",
    "EngineError",
    "EngineTimeoutError",
    "IndexOutcome",
    "IndexingError",
    "MiujsagError",
    "QueryError",
    "SchemaError",
    "SearchRequest",
    "SearchResult",
    "SearchService",
    "Site",
    "SortMode",
    "create_search_client",
    "setup",
]
