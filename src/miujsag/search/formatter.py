"""Maps a raw `_search` response onto `SearchResult`."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import TypeAdapter, ValidationError

from miujsag.models import ArticleSummary, SearchResult, SiteSummary

_DATETIME = TypeAdapter(datetime)


def _total(hits: Dict[str, Any], fallback: int) -> int:
    # Engines report either a bare integer or {"value": n, "relation": "eq"|"gte"}
    total = hits.get("total")
    if isinstance(total, dict):
        total = total.get("value")
    if isinstance(total, bool) or not isinstance(total, int):
        return fallback
    return total


def _single(value: Any) -> Any:
    # Any source field may hold an array; the first element stands for it
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _text(value: Any) -> Optional[str]:
    value = _single(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _integer(value: Any) -> Optional[int]:
    value = _single(value)
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    return None


def _datetime(value: Any) -> Optional[datetime]:
    value = _single(value)
    if value is None:
        return None
    try:
        return _DATETIME.validate_python(value)
    except ValidationError:
        return None


def _first_fragment(hit: Dict[str, Any]) -> Optional[str]:
    highlight = hit.get("highlight")
    if not isinstance(highlight, dict):
        return None
    fragments = highlight.get("content")
    if isinstance(fragments, list):
        return next((f for f in fragments if isinstance(f, str) and f), None)
    if isinstance(fragments, str) and fragments:
        return fragments
    return None


def format_hit(hit: Dict[str, Any]) -> ArticleSummary:
    """Summarize one hit; values of the wrong shape come out as None."""
    source = hit.get("_source") if isinstance(hit.get("_source"), dict) else {}
    site = _single(source.get("site"))
    if not isinstance(site, dict):
        site = {}
    return ArticleSummary(
        title=_text(source.get("title")),
        url=_text(source.get("url")),
        description=_text(source.get("description")),
        estimated_read_time=_integer(source.get("estimated_read_time")),
        published_at=_datetime(source.get("published_at")),
        image=_text(source.get("image")),
        site=SiteSummary(name=_text(site.get("name")), slug=_text(site.get("slug"))),
        highlight=_first_fragment(hit),
    )


def format_result(raw: Any) -> SearchResult:
    """Build a `SearchResult`; a response without hits yields an empty result.

    `total` is the engine's count of all matches, which exceeds the number of
    articles when results are paginated.
    """
    hits = raw.get("hits") if isinstance(raw, dict) else None
    if not isinstance(hits, dict) or not isinstance(hits.get("hits"), list):
        return SearchResult()
    items = [h for h in hits["hits"] if isinstance(h, dict)]
    return SearchResult(
        total=_total(hits, fallback=len(items)),
        articles=[format_hit(h) for h in items],
    )
