from datetime import datetime, timezone
from typing import Any, Dict

import pytest

from miujsag.search.formatter import format_result


def make_hit(**overrides: Any) -> Dict[str, Any]:
    hit: Dict[str, Any] = {
        "_id": "1",
        "_score": 1.3,
        "_source": {
            "title": "Go concurrency patterns",
            "url": "http://x/a",
            "description": "Channels",
            "estimated_read_time": 4,
            "published_at": "2026-10-18T12:00:00Z",
            "image": "http://x/a.png",
            "site": {"id": 1, "name": "Eng", "slug": "eng"},
            "category": {"id": 5, "name": "Backend"},
        },
        "highlight": {"content": ["<em>concurrency</em> in practice", "second"]},
    }
    hit.update(overrides)
    return hit


@pytest.mark.parametrize(
    "raw",
    [{}, {"took": 3}, {"hits": {}}, {"hits": {"total": 4}}, None, [], {"hits": "broken"}],
)
def test_response_without_hits_is_empty_result(raw: Any) -> None:
    result = format_result(raw)
    assert result.total == 0
    assert result.articles == []
    assert result.to_dict() == {"total": 0, "articles": []}


def test_maps_hit_to_summary() -> None:
    result = format_result({"hits": {"total": 1, "hits": [make_hit()]}})
    assert result.total == 1
    article = result.articles[0]
    assert article.title == "Go concurrency patterns"
    assert article.url == "http://x/a"
    assert article.description == "Channels"
    assert article.estimated_read_time == 4
    assert article.published_at == datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
    assert article.image == "http://x/a.png"
    assert article.site.name == "Eng"
    assert article.site.slug == "eng"
    assert article.highlight == "<em>concurrency</em> in practice"


def test_serialized_summary_nests_site_and_has_no_content() -> None:
    out = format_result({"hits": {"total": 1, "hits": [make_hit()]}}).to_dict()
    article = out["articles"][0]
    assert article["Site"] == {"name": "Eng", "slug": "eng"}
    assert "content" not in article
    assert "category" not in article


def test_missing_highlight_is_absent_not_placeholder() -> None:
    hit = make_hit()
    del hit["highlight"]
    result = format_result({"hits": {"total": 1, "hits": [hit, make_hit(highlight={"content": []})]}})
    assert [a.highlight for a in result.articles] == [None, None]
    assert "highlight" not in result.to_dict()["articles"][0]


def test_total_accepts_object_form_and_exceeds_page() -> None:
    raw = {"hits": {"total": {"value": 57, "relation": "eq"}, "hits": [make_hit(), make_hit()]}}
    result = format_result(raw)
    assert result.total == 57
    assert len(result.articles) == 2


def test_total_falls_back_to_hit_count() -> None:
    result = format_result({"hits": {"hits": [make_hit()]}})
    assert result.total == 1


def test_hit_without_source_or_site() -> None:
    result = format_result({"hits": {"total": 1, "hits": [{"_id": "9"}]}})
    article = result.articles[0]
    assert article.title is None
    assert article.site.name is None
    assert article.highlight is None


def test_array_valued_fields_take_first_element() -> None:
    source = {
        "title": ["a", "b"],
        "url": ["http://x/a"],
        "estimated_read_time": [7, 8],
        "published_at": ["2026-10-18T12:00:00Z"],
        "site": [{"name": "x", "slug": ["s"]}],
    }
    result = format_result({"hits": {"total": 1, "hits": [{"_source": source}]}})
    article = result.articles[0]
    assert article.title == "a"
    assert article.url == "http://x/a"
    assert article.estimated_read_time == 7
    assert article.published_at == datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
    assert article.site.name == "x"
    assert article.site.slug == "s"


@pytest.mark.parametrize(
    "source",
    [
        {"published_at": "last tuesday"},
        {"published_at": {"date": "2026"}},
        {"estimated_read_time": "five"},
        {"estimated_read_time": 2.5},
        {"title": {"en": "t"}, "image": [], "description": True},
        {"site": "eng"},
        {"site": {"name": ["x", "y"], "slug": {"v": 1}}},
    ],
)
def test_unusable_values_are_dropped(source: Dict[str, Any]) -> None:
    result = format_result({"hits": {"total": 1, "hits": [{"_source": source}]}})
    assert result.total == 1
    dumped = result.to_dict()["articles"][0]
    assert "published_at" not in dumped
    assert "estimated_read_time" not in dumped
    assert "title" not in dumped
    assert "image" not in dumped
    assert "description" not in dumped


def test_numeric_text_fields_are_stringified() -> None:
    result = format_result({"hits": {"hits": [{"_source": {"title": 2026, "estimated_read_time": "12"}}]}})
    assert result.articles[0].title == "2026"
    assert result.articles[0].estimated_read_time == 12
