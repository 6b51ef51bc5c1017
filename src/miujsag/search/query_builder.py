"""Translates a `SearchRequest` into an Elasticsearch `_search` request body."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from miujsag.config import SearchConfig
from miujsag.exceptions import QueryError
from miujsag.models import SearchRequest, SortMode

SEARCH_FIELDS = ["title", "description", "content"]

_SORT_KEYS = {
    SortMode.RELEVANCE: "_score",
    SortMode.DATE: "published_at",
}


def resolve_window(
    request: SearchRequest,
    *,
    now: Optional[datetime] = None,
    window_days: int = 7,
) -> Tuple[datetime, datetime]:
    """Return the (from, until) pair, filling unset bounds at call time.

    `until` defaults to now, `from` to `window_days` before `until`.
    """
    until = request.until or now or datetime.now(timezone.utc)
    if until.tzinfo is None:
        until = until.replace(tzinfo=timezone.utc)
    since = request.from_ or until - timedelta(days=window_days)
    if since > until:
        raise QueryError(f"Date range start {since.isoformat()} is after its end {until.isoformat()}")
    return since, until


def _terms_filter(field: str, ids: Iterable[int]) -> Optional[Dict[str, Any]]:
    # An empty terms filter matches nothing, so "no selection" must mean "no filter"
    values = sorted(ids)
    if not values:
        return None
    return {"terms": {field: values}}


def build_query(
    request: SearchRequest,
    *,
    now: Optional[datetime] = None,
    config: Optional[SearchConfig] = None,
) -> Dict[str, Any]:
    """Build the search body: fuzzy multi-field match, taxonomy filters,
    publication window, paging, content highlight and sort order.

    Pure apart from reading the clock when neither `now` nor `request.until`
    is given.
    """
    cfg = config or SearchConfig()
    try:
        sort_key = _SORT_KEYS[SortMode(request.sort)]
    except (KeyError, ValueError) as exc:
        raise QueryError(f"Unknown sort mode: {request.sort!r}") from exc
    since, until = resolve_window(request, now=now, window_days=cfg.window_days)

    must: List[Dict[str, Any]] = [
        {
            "multi_match": {
                "query": request.query,
                "fields": list(SEARCH_FIELDS),
                "fuzziness": cfg.fuzziness,
                "prefix_length": cfg.prefix_length,
            }
        }
    ]
    for clause in (
        _terms_filter("site.id", request.sites),
        _terms_filter("category.id", request.categories),
    ):
        if clause is not None:
            must.append(clause)

    return {
        "from": request.skip,
        "size": cfg.page_size,
        "query": {
            "bool": {
                "must": must,
                "filter": [
                    {"range": {"published_at": {"lte": until.isoformat()}}},
                    {"range": {"published_at": {"gte": since.isoformat()}}},
                ],
            }
        },
        "highlight": {
            "fields": {"content": {}},
            "number_of_fragments": cfg.fragments,
        },
        "_source": {"excludes": ["content"]},
        "sort": [{sort_key: {"order": "desc"}}],
    }
