import json
from typing import Any, Dict, List

import httpx
import pytest

from miujsag.config import EngineConfig
from miujsag.engine import create_engine
from miujsag.engine.elasticsearch import ElasticsearchEngine
from miujsag.exceptions import ConnectivityError, EngineError, EngineTimeoutError
from miujsag.indexing.indexer import index_document
from miujsag.indexing.schema import INDEX_SCHEMA, ensure_index
from miujsag.models import IndexStatus

BASE_URL = "http://es.example:9200"

# ---------- Helpers ----------


def make_engine(responder: Any, **kwargs: Any) -> ElasticsearchEngine:
    return use_transport(ElasticsearchEngine(base_url=BASE_URL, **kwargs), responder)


def use_transport(engine: ElasticsearchEngine, responder: Any) -> ElasticsearchEngine:
    # Patch the private _client factory to return an AsyncClient with MockTransport
    def _client() -> httpx.AsyncClient:  # type: ignore[override]
        return httpx.AsyncClient(
            transport=httpx.MockTransport(responder),
            base_url=BASE_URL,
            headers={"Accept": "application/json", "Content-Type": "application/json"},
        )

    setattr(engine, "_client", _client)
    return engine


def es_error(status: int, error_type: str, reason: str) -> httpx.Response:
    return httpx.Response(
        status,
        json={"error": {"type": error_type, "reason": reason, "root_cause": []}, "status": status},
    )


# ---------- exists / create / delete ----------


@pytest.mark.asyncio
async def test_exists_maps_status_codes() -> None:
    def responder(request: httpx.Request) -> httpx.Response:
        assert request.method == "HEAD"
        return httpx.Response(200 if request.url.path == "/miujsag" else 404)

    engine = make_engine(responder)
    assert await engine.exists("miujsag") is True
    assert await engine.exists("other") is False


@pytest.mark.asyncio
async def test_create_index_sends_schema() -> None:
    seen: List[Any] = []

    def responder(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"acknowledged": True, "index": "miujsag"})

    await make_engine(responder).create_index("miujsag", INDEX_SCHEMA)
    assert seen == [("PUT", "/miujsag", INDEX_SCHEMA)]


@pytest.mark.asyncio
async def test_create_index_error_carries_engine_details() -> None:
    def responder(request: httpx.Request) -> httpx.Response:
        return es_error(400, "resource_already_exists_exception", "index [miujsag] already exists")

    with pytest.raises(EngineError) as info:
        await make_engine(responder).create_index("miujsag", INDEX_SCHEMA)
    assert info.value.status_code == 400
    assert info.value.error_type == "resource_already_exists_exception"
    assert "already exists" in str(info.value)


@pytest.mark.asyncio
async def test_delete_missing_index_is_ignored_by_default() -> None:
    def responder(request: httpx.Request) -> httpx.Response:
        assert request.method == "DELETE"
        return es_error(404, "index_not_found_exception", "no such index [miujsag]")

    engine = make_engine(responder)
    await engine.delete_index("miujsag")
    with pytest.raises(EngineError) as info:
        await engine.delete_index("miujsag", ignore_missing=False)
    assert info.value.status_code == 404


@pytest.mark.asyncio
async def test_ensure_index_creates_when_absent() -> None:
    calls: List[str] = []

    def responder(request: httpx.Request) -> httpx.Response:
        calls.append(request.method)
        if request.method == "HEAD":
            return httpx.Response(404)
        return httpx.Response(200, json={"acknowledged": True})

    await ensure_index(make_engine(responder), "miujsag")
    assert calls == ["HEAD", "PUT"]


# ---------- upsert / query ----------


@pytest.mark.asyncio
async def test_upsert_puts_document_with_refresh_param() -> None:
    seen: List[httpx.Request] = []

    def responder(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"result": "created"})

    engine = make_engine(responder, refresh="wait_for")
    await engine.upsert("miujsag", "a/1", {"title": "t"})
    request = seen[0]
    assert request.method == "PUT"
    assert request.url.raw_path.startswith(b"/miujsag/_doc/a%2F1")
    assert request.url.params["refresh"] == "wait_for"
    assert json.loads(request.content) == {"title": "t"}


@pytest.mark.asyncio
async def test_query_returns_raw_response() -> None:
    payload = {"hits": {"total": {"value": 1, "relation": "eq"}, "hits": [{"_id": "1"}]}}

    def responder(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST" and request.url.path == "/miujsag/_search"
        assert json.loads(request.content) == {"size": 1}
        return httpx.Response(200, json=payload)

    assert await make_engine(responder).query("miujsag", {"size": 1}) == payload


@pytest.mark.asyncio
async def test_query_parse_failure_is_engine_error() -> None:
    def responder(request: httpx.Request) -> httpx.Response:
        return es_error(400, "parsing_exception", "unknown query [mutli_match]")

    with pytest.raises(EngineError) as info:
        await make_engine(responder).query("miujsag", {})
    assert info.value.error_type == "parsing_exception"
    assert info.value.reason == "unknown query [mutli_match]"


# ---------- Transport failures ----------


@pytest.mark.asyncio
async def test_connect_error_is_connectivity_error() -> None:
    def responder(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ConnectivityError):
        await make_engine(responder).exists("miujsag")


@pytest.mark.asyncio
async def test_timeout_is_engine_timeout_error() -> None:
    def responder(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    with pytest.raises(EngineTimeoutError):
        await make_engine(responder).query("miujsag", {})


@pytest.mark.asyncio
async def test_non_json_error_body() -> None:
    def responder(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="Bad Gateway")

    with pytest.raises(EngineError) as info:
        await make_engine(responder).upsert("miujsag", "1", {})
    assert info.value.status_code == 502
    assert info.value.error_type is None


# ---------- Deduplication through the REST adapter ----------


class NearRealTimeIndex:
    """Serves `_doc` writes and url lookups; a write only becomes searchable
    once refreshed, as in Elasticsearch."""

    def __init__(self) -> None:
        self.searchable: Dict[str, Dict[str, Any]] = {}
        self.pending: Dict[str, Dict[str, Any]] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "PUT" and "/_doc/" in request.url.path:
            doc_id = request.url.path.rsplit("/", 1)[-1]
            body = json.loads(request.content)
            if request.url.params.get("refresh") in ("true", "wait_for"):
                self.searchable[doc_id] = body
            else:
                self.pending[doc_id] = body
            return httpx.Response(201, json={"_id": doc_id, "result": "created"})
        if request.method == "POST" and request.url.path.endswith("/_search"):
            term = json.loads(request.content)["query"]["bool"]["filter"][0]["term"]
            hits = [
                {"_id": doc_id}
                for doc_id, doc in self.searchable.items()
                if doc.get("url") == term["url.keyword"]
            ]
            return httpx.Response(
                200, json={"hits": {"total": {"value": len(hits), "relation": "eq"}, "hits": hits}}
            )
        return httpx.Response(400, json={"error": {"type": "unexpected", "reason": request.url.path}})

    @property
    def stored(self) -> int:
        return len(self.searchable) + len(self.pending)


def test_default_engine_config_waits_for_refresh() -> None:
    engine = create_engine(EngineConfig())
    assert isinstance(engine, ElasticsearchEngine)
    assert engine.refresh == "wait_for"


@pytest.mark.asyncio
async def test_back_to_back_same_url_is_skipped_with_default_config() -> None:
    index = NearRealTimeIndex()
    engine = create_engine(EngineConfig())
    assert isinstance(engine, ElasticsearchEngine)
    use_transport(engine, index)
    site = {"id": 1, "name": "Eng", "slug": "eng"}
    category = {"id": 5, "name": "Backend"}

    first = await index_document(engine, {"id": "1", "url": "http://x/a", "title": "A"}, site, category)
    second = await index_document(engine, {"id": "2", "url": "http://x/a", "title": "A again"}, site, category)

    assert first.status is IndexStatus.INSERTED
    assert second.status is IndexStatus.SKIPPED
    assert index.stored == 1


@pytest.mark.asyncio
async def test_unrefreshed_writes_are_invisible_to_the_url_lookup() -> None:
    index = NearRealTimeIndex()
    engine = make_engine(index, refresh="false")
    site = {"id": 1, "name": "Eng", "slug": "eng"}
    category = {"id": 5, "name": "Backend"}

    await index_document(engine, {"id": "1", "url": "http://x/a"}, site, category)
    again = await index_document(engine, {"id": "2", "url": "http://x/a"}, site, category)

    assert again.status is IndexStatus.INSERTED
    assert index.stored == 2
