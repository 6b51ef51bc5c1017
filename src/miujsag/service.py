"""Public entry points of the indexing and search core.

Typical use:

    async with SearchService.from_settings(load_settings()) as service:
        await service.ensure_index()
        await service.index_document(article, site, category)
        result = await service.search({"query": "concurrency", "sites": [1]})
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any, Mapping, Optional, Type, Union

from pydantic import ValidationError

from miujsag.config import SearchConfig, Settings, load_settings
from miujsag.engine import BaseEngine, create_engine
from miujsag.exceptions import EngineError, QueryError
from miujsag.indexing import indexer, schema
from miujsag.indexing.normalizer import ArticleLike, CategoryLike, SiteLike
from miujsag.indexing.schema import DEFAULT_INDEX
from miujsag.models import IndexOutcome, SearchRequest, SearchResult
from miujsag.search.formatter import format_result
from miujsag.search.query_builder import build_query

logger = logging.getLogger(__name__)

RequestLike = Union[SearchRequest, Mapping[str, Any]]


class SearchService:
    """Binds an engine and an index name to the four public operations."""

    def __init__(
        self,
        engine: BaseEngine,
        *,
        index_name: str = DEFAULT_INDEX,
        search_config: Optional[SearchConfig] = None,
    ) -> None:
        self.engine = engine
        self.index_name = index_name
        self.search_config = search_config or SearchConfig()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> SearchService:
        settings = settings or load_settings()
        return cls(
            create_engine(settings.engine),
            index_name=settings.index.name,
            search_config=settings.search,
        )

    async def ensure_index(self) -> None:
        await schema.ensure_index(self.engine, self.index_name)

    async def reset_index(self) -> None:
        await schema.reset_index(self.engine, self.index_name)

    async def index_document(
        self, document: ArticleLike, site: SiteLike, category: CategoryLike
    ) -> IndexOutcome:
        return await indexer.index_document(
            self.engine, document, site, category, index_name=self.index_name
        )

    async def search(self, request: RequestLike) -> SearchResult:
        """Run a search and return one page of results.

        Raises `QueryError` for invalid requests or queries the engine rejects;
        `ConnectivityError` propagates as is. A failed search never comes back
        as an empty result.
        """
        try:
            req = request if isinstance(request, SearchRequest) else SearchRequest.model_validate(request)
        except ValidationError as exc:
            raise QueryError(f"Invalid search request: {exc}") from exc

        dsl = build_query(req, config=self.search_config)
        try:
            raw = await self.engine.query(self.index_name, dsl)
        except EngineError as exc:
            raise QueryError(f"Search rejected by engine: {exc}") from exc

        result = format_result(raw)
        logger.debug(
            "Search %r returned %d of %d matches", req.query, len(result.articles), result.total
        )
        return result

    async def close(self) -> None:
        await self.engine.close()

    async def __aenter__(self) -> SearchService:
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.close()


def create_search_client(settings: Optional[Settings] = None) -> BaseEngine:
    """Build the configured engine client."""
    settings = settings or load_settings()
    return create_engine(settings.engine)


async def setup(engine: BaseEngine, index_name: str = DEFAULT_INDEX) -> BaseEngine:
    """Make sure the index exists and hand the engine back for chaining."""
    await schema.ensure_index(engine, index_name)
    return engine
