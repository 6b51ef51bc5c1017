"""Index lifecycle: field mapping plus idempotent create and destructive reset."""

from __future__ import annotations

import logging
from typing import Any, Dict

from miujsag.engine.base import BaseEngine
from miujsag.exceptions import EngineError, SchemaError

logger = logging.getLogger(__name__)

DEFAULT_INDEX = "miujsag"

# `url.keyword` backs exact-url lookups for deduplication; the text field keeps url searchable
INDEX_SCHEMA: Dict[str, Any] = {
    "mappings": {
        "properties": {
            "title": {"type": "text"},
            "url": {"type": "text", "fields": {"keyword": {"type": "keyword", "ignore_above": 2048}}},
            "description": {"type": "text"},
            "content": {"type": "text"},
            "published_at": {"type": "date"},
            "estimated_read_time": {"type": "integer"},
            "image": {"type": "keyword", "index": False},
            "site": {
                "properties": {
                    "id": {"type": "integer"},
                    "name": {"type": "keyword"},
                    "slug": {"type": "keyword"},
                }
            },
            "category": {
                "properties": {
                    "id": {"type": "integer"},
                    "name": {"type": "keyword"},
                }
            },
        }
    }
}

_ALREADY_EXISTS = "resource_already_exists_exception"


async def _create(engine: BaseEngine, index_name: str) -> bool:
    """Create the index; returns False if another caller created it first."""
    try:
        await engine.create_index(index_name, INDEX_SCHEMA)
    except EngineError as exc:
        if exc.error_type == _ALREADY_EXISTS:
            return False
        raise SchemaError(f"Could not create index '{index_name}': {exc}") from exc
    return True


async def ensure_index(engine: BaseEngine, index_name: str = DEFAULT_INDEX) -> None:
    """Create the index with `INDEX_SCHEMA` unless it already exists.

    Connectivity failures propagate unchanged; any other engine failure is
    raised as `SchemaError`.
    """
    try:
        exists = await engine.exists(index_name)
    except EngineError as exc:
        raise SchemaError(f"Could not check index '{index_name}': {exc}") from exc
    if exists:
        logger.debug("Index %s already present", index_name)
        return
    if await _create(engine, index_name):
        logger.info("Created index %s", index_name)
    else:
        logger.info("Index %s was created concurrently", index_name)


async def reset_index(engine: BaseEngine, index_name: str = DEFAULT_INDEX) -> None:
    """Drop the index with all its documents and recreate it empty.

    Only meant for full rebuilds; a missing index is not an error.
    """
    try:
        await engine.delete_index(index_name, ignore_missing=True)
    except EngineError as exc:
        raise SchemaError(f"Could not delete index '{index_name}': {exc}") from exc
    if await _create(engine, index_name):
        logger.info("Recreated index %s", index_name)
    else:
        logger.info("Index %s was recreated concurrently", index_name)
