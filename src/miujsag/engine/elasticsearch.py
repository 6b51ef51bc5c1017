"""Elasticsearch engine adapter.

Talks to the Elasticsearch/OpenSearch REST API via httpx. Auth: optional basic
auth (username + password).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from miujsag.engine.base import BaseEngine
from miujsag.exceptions import ConnectivityError, EngineError, EngineTimeoutError

logger = logging.getLogger(__name__)


class ElasticsearchEngine(BaseEngine):
    def __init__(
        self,
        *,
        base_url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        verify_ssl: bool = True,
        timeout: float = 30.0,
        refresh: str = "wait_for",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.password = password
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self.refresh = refresh

    def _client(self) -> httpx.AsyncClient:
        auth = (self.username, self.password or "") if self.username else None
        return httpx.AsyncClient(
            base_url=self.base_url,
            auth=auth,
            timeout=self.timeout,
            verify=self.verify_ssl,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        try:
            async with self._client() as client:
                return await client.request(method, path, json=json, params=params)
        except httpx.TimeoutException as exc:
            raise EngineTimeoutError(
                f"{method} {path} timed out after {self.timeout}s"
            ) from exc
        except httpx.TransportError as exc:
            raise ConnectivityError(
                f"Cannot reach search engine at {self.base_url}: {exc}"
            ) from exc

    @staticmethod
    def _error(resp: httpx.Response, action: str) -> EngineError:
        error_type: Optional[str] = None
        reason: Optional[str] = None
        try:
            data = resp.json()
        except ValueError:
            data = None
        err = data.get("error") if isinstance(data, dict) else None
        if isinstance(err, dict):
            error_type = err.get("type")
            reason = err.get("reason")
        elif isinstance(err, str):
            reason = err
        return EngineError(
            f"{action} failed with HTTP {resp.status_code}: {reason or error_type or resp.reason_phrase}",
            status_code=resp.status_code,
            error_type=error_type,
            reason=reason,
        )

    async def exists(self, index: str) -> bool:
        resp = await self._request("HEAD", f"/{quote(index)}")
        if resp.status_code == 404:
            return False
        if resp.is_success:
            return True
        raise self._error(resp, f"exists({index})")

    async def create_index(self, index: str, schema: Dict[str, Any]) -> None:
        resp = await self._request("PUT", f"/{quote(index)}", json=schema)
        if not resp.is_success:
            raise self._error(resp, f"create_index({index})")
        logger.debug("Created index %s", index)

    async def delete_index(self, index: str, *, ignore_missing: bool = True) -> None:
        resp = await self._request("DELETE", f"/{quote(index)}")
        if resp.status_code == 404 and ignore_missing:
            return
        if not resp.is_success:
            raise self._error(resp, f"delete_index({index})")
        logger.debug("Deleted index %s", index)

    async def upsert(self, index: str, doc_id: str, body: Dict[str, Any]) -> None:
        path = f"/{quote(index)}/_doc/{quote(str(doc_id), safe='')}"
        resp = await self._request("PUT", path, json=body, params={"refresh": self.refresh})
        if not resp.is_success:
            raise self._error(resp, f"upsert({index}, {doc_id})")

    async def query(self, index: str, dsl: Dict[str, Any]) -> Dict[str, Any]:
        resp = await self._request("POST", f"/{quote(index)}/_search", json=dsl)
        if not resp.is_success:
            raise self._error(resp, f"query({index})")
        data = resp.json()
        return data if isinstance(data, dict) else {}
