from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from brandintel.errors import ProviderRequestFailed, ResourceQuotaExceeded

CONTENT_SOURCES = ["twitter", "facebook", "instagram", "youtube", "news", "blogs", "forums"]
QUOTA_MARKER = "Query limit reached"


def _records(data: Any) -> list[dict[str, Any]]:
    """List payloads arrive under ``results`` or ``data`` depending on the endpoint."""
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    if not isinstance(data, dict):
        return []
    records = data.get("results") or data.get("data") or []
    return [item for item in records if isinstance(item, dict)]


class BrandwatchClient:
    """Thin HTTP client for the Brandwatch project query and mention endpoints.

    Transport errors and non-2xx statuses become ``ProviderRequestFailed``;
    a 403 whose body says the query limit is reached becomes
    ``ResourceQuotaExceeded`` so the caller can reuse an existing query.
    """

    def __init__(
        self,
        *,
        token: str,
        project_id: int,
        base_url: str = "https://api.brandwatch.com",
        page_size: int = 1000,
        timeout: float = 30.0,
    ):
        self.token = token
        self.project_id = project_id
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self.timeout = timeout

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }

    def _url(self, path: str) -> str:
        return f"{self.base_url}/projects/{self.project_id}{path}"

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                send = getattr(client, method)
                return await send(self._url(path), headers=self._headers, **kwargs)
        except httpx.HTTPError as exc:
            raise ProviderRequestFailed(f"Brandwatch {method.upper()} {path} failed: {exc}") from exc

    @staticmethod
    def _check(response: httpx.Response, action: str) -> None:
        if response.status_code >= 400:
            raise ProviderRequestFailed(
                f"Brandwatch {action} returned HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text[:500],
            )

    async def create_query(
        self,
        name: str,
        boolean_query: str,
        *,
        start_date: str,
        highlight_terms: list[str],
    ) -> dict[str, Any]:
        response = await self._send(
            "post",
            "/queries",
            json={
                "name": name,
                "booleanQuery": boolean_query,
                "type": "monitor",
                "languages": ["en"],
                "contentSources": CONTENT_SOURCES,
                "startDate": start_date,
                "highlightTerms": highlight_terms,
            },
        )
        if response.status_code == 403 and QUOTA_MARKER in response.text:
            raise ResourceQuotaExceeded(f"Brandwatch query quota exhausted for project {self.project_id}")
        self._check(response, "create query")
        query = response.json()
        logger.info(f"Created Brandwatch query '{query.get('name')}' (id={query.get('id')})")
        return query

    async def list_queries(self) -> list[dict[str, Any]]:
        response = await self._send("get", "/queries")
        self._check(response, "list queries")
        return _records(response.json())

    async def fetch_mentions(self, query_id: int | str, *, start_date: str, end_date: str) -> list[dict[str, Any]]:
        response = await self._send(
            "get",
            "/data/mentions",
            params={
                "queryId": str(query_id),
                "startDate": start_date,
                "endDate": end_date,
                "pageSize": str(self.page_size),
                "orderBy": "date",
                "orderDirection": "desc",
            },
        )
        self._check(response, "fetch mentions")
        mentions = _records(response.json())
        logger.info(f"Retrieved {len(mentions)} mentions for query {query_id} ({start_date} to {end_date})")
        return mentions

    async def delete_query(self, query_id: int | str) -> None:
        response = await self._send("delete", f"/queries/{query_id}")
        self._check(response, "delete query")
        logger.info(f"Deleted Brandwatch query {query_id}")
