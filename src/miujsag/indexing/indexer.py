"""Insert-if-absent indexing keyed on the article url.

The url is the article's external identity: upstream ingestion may hand over
the same article twice under different ids. The existence check and the write
are two separate engine calls, so two concurrent submissions of one url can
both pass the check; at most "eventually one wins" is guaranteed.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from pydantic import ValidationError

from miujsag.engine.base import BaseEngine
from miujsag.exceptions import ConnectivityError, EngineError, IndexingError
from miujsag.indexing.normalizer import ArticleLike, CategoryLike, SiteLike, as_model, normalize
from miujsag.indexing.schema import DEFAULT_INDEX
from miujsag.models import Article, IndexOutcome

logger = logging.getLogger(__name__)


def url_lookup_query(url: str) -> Dict[str, Any]:
    """Search body that finds any document stored with exactly this url."""
    return {
        "size": 1,
        "_source": False,
        "query": {"bool": {"filter": [{"term": {"url.keyword": url}}]}},
    }


def _hit_count(raw: Dict[str, Any]) -> int:
    hits = raw.get("hits") if isinstance(raw, dict) else None
    items = hits.get("hits") if isinstance(hits, dict) else None
    return len(items) if isinstance(items, list) else 0


async def index_document(
    engine: BaseEngine,
    document: ArticleLike,
    site: SiteLike,
    category: CategoryLike,
    *,
    index_name: str = DEFAULT_INDEX,
) -> IndexOutcome:
    """Index `document` unless a document with the same url is already stored.

    Returns `IndexOutcome.inserted()` or `IndexOutcome.skipped()`. Engine
    failures in either step are raised as `IndexingError` with the document id.
    """
    try:
        article: Article = as_model(Article, document)
    except ValidationError as exc:
        raw_id = document.get("id") if isinstance(document, Mapping) else None
        document_id = None if raw_id is None else str(raw_id)
        raise IndexingError(
            f"Invalid document {document_id}: {exc}", document_id=document_id
        ) from exc

    try:
        existing = await engine.query(index_name, url_lookup_query(article.url))
    except (ConnectivityError, EngineError) as exc:
        raise IndexingError(
            f"Existence check failed for document {article.id}: {exc}", document_id=article.id
        ) from exc

    if _hit_count(existing) > 0:
        logger.debug("Skipping document %s: url %s already indexed", article.id, article.url)
        return IndexOutcome.skipped()

    try:
        body = normalize(article, site, category).to_body()
    except ValidationError as exc:
        raise IndexingError(
            f"Invalid taxonomy for document {article.id}: {exc}", document_id=article.id
        ) from exc
    try:
        await engine.upsert(index_name, article.id, body)
    except (ConnectivityError, EngineError) as exc:
        raise IndexingError(
            f"Write failed for document {article.id}: {exc}", document_id=article.id
        ) from exc

    logger.info("Indexed document %s (%s)", article.id, article.url)
    return IndexOutcome.inserted()
