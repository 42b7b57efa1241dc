from __future__ import annotations

import httpx
import pytest

from brandintel.errors import ProviderRequestFailed, ResourceQuotaExceeded
from brandintel.tools.brandwatch import BrandwatchClient


def _response(method: str, url: str, status_code: int = 200, **kwargs) -> httpx.Response:
    return httpx.Response(status_code, request=httpx.Request(method.upper(), url), **kwargs)


@pytest.fixture
def client() -> BrandwatchClient:
    return BrandwatchClient(token="bw-token", project_id=42, base_url="https://bw.test/")


@pytest.mark.asyncio
async def test_create_query_posts_monitor_definition(monkeypatch, client):
    captured: dict = {}

    async def fake_post(self, url: str, **kwargs):  # noqa: ARG001
        captured["url"] = url
        captured.update(kwargs)
        return _response("post", url, json={"id": 7, "name": "TEMP_Acme_2026-10-18T09-00-00"})

    monkeypatch.setattr(httpx.AsyncClient, "post", fake_post)

    query = await client.create_query(
        "TEMP_Acme_2026-10-18T09-00-00",
        '("Acme") AND NOT (spam)',
        start_date="2026-07-18",
        highlight_terms=["Acme"],
    )

    assert query["id"] == 7
    assert captured["url"] == "https://bw.test/projects/42/queries"
    assert captured["headers"]["Authorization"] == "Bearer bw-token"
    body = captured["json"]
    assert body["type"] == "monitor"
    assert body["booleanQuery"] == '("Acme") AND NOT (spam)'
    assert body["startDate"] == "2026-07-18"
    assert body["languages"] == ["en"]


@pytest.mark.asyncio
async def test_quota_rejection_is_a_distinct_error(monkeypatch, client):
    async def fake_post(self, url: str, **kwargs):  # noqa: ARG001
        return _response("post", url, 403, text='{"errors": [{"message": "Query limit reached"}]}')

    monkeypatch.setattr(httpx.AsyncClient, "post", fake_post)

    with pytest.raises(ResourceQuotaExceeded):
        await client.create_query("TEMP_x", "x", start_date="2026-01-01", highlight_terms=[])


@pytest.mark.asyncio
async def test_other_forbidden_responses_are_request_failures(monkeypatch, client):
    async def fake_post(self, url: str, **kwargs):  # noqa: ARG001
        return _response("post", url, 403, text="Forbidden")

    monkeypatch.setattr(httpx.AsyncClient, "post", fake_post)

    with pytest.raises(ProviderRequestFailed) as exc_info:
        await client.create_query("TEMP_x", "x", start_date="2026-01-01", highlight_terms=[])
    assert exc_info.value.status_code == 403


@pytest.mark.asyncio
async def test_fetch_mentions_sends_window_and_reads_results(monkeypatch, client):
    captured: dict = {}

    async def fake_get(self, url: str, **kwargs):  # noqa: ARG001
        captured["url"] = url
        captured["params"] = kwargs["params"]
        return _response("get", url, json={"results": [{"id": 1, "sentiment": "positive"}, "junk"]})

    monkeypatch.setattr(httpx.AsyncClient, "get", fake_get)

    mentions = await client.fetch_mentions(7, start_date="2026-07-18", end_date="2026-10-18")

    assert mentions == [{"id": 1, "sentiment": "positive"}]
    assert captured["url"] == "https://bw.test/projects/42/data/mentions"
    assert captured["params"]["queryId"] == "7"
    assert captured["params"]["pageSize"] == "1000"
    assert captured["params"]["orderDirection"] == "desc"


@pytest.mark.asyncio
async def test_list_queries_accepts_data_envelope(monkeypatch, client):
    async def fake_get(self, url: str, **kwargs):  # noqa: ARG001
        return _response("get", url, json={"data": [{"id": 3, "name": "Brand monitor"}]})

    monkeypatch.setattr(httpx.AsyncClient, "get", fake_get)

    assert await client.list_queries() == [{"id": 3, "name": "Brand monitor"}]


@pytest.mark.asyncio
async def test_delete_and_transport_errors(monkeypatch, client):
    deleted: list[str] = []

    async def fake_delete(self, url: str, **kwargs):  # noqa: ARG001
        deleted.append(url)
        return _response("delete", url, 204)

    monkeypatch.setattr(httpx.AsyncClient, "delete", fake_delete)
    await client.delete_query(7)
    assert deleted == ["https://bw.test/projects/42/queries/7"]

    async def broken_delete(self, url: str, **kwargs):  # noqa: ARG001
        raise httpx.ConnectError("unreachable")

    monkeypatch.setattr(httpx.AsyncClient, "delete", broken_delete)
    with pytest.raises(ProviderRequestFailed):
        await client.delete_query(7)
