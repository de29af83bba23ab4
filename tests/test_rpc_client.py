"""Tests for the remote-procedure client."""

import json

import httpx
import pytest

from darkroom.rpc.client import RpcClient, RpcTransportError


def _client(handler) -> RpcClient:
    return RpcClient(
        "https://db.example.test/",
        service_key="service-key",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_call_posts_named_params():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers["authorization"]
        seen["apikey"] = request.headers["apikey"]
        return httpx.Response(200, json=[{"deleted": 5}])

    client = _client(handler)
    result = await client.call("cleanup_old_chat_data", {"retention_days": 90})
    await client.aclose()

    assert result.ok
    assert result.data == [{"deleted": 5}]
    assert seen["url"] == "https://db.example.test/rest/v1/rpc/cleanup_old_chat_data"
    assert seen["body"] == {"retention_days": 90}
    assert seen["auth"] == "Bearer service-key"
    assert seen["apikey"] == "service-key"


@pytest.mark.asyncio
async def test_empty_response_body_is_none():
    client = _client(lambda request: httpx.Response(204))
    result = await client.call("refresh_search")
    await client.aclose()
    assert result.ok
    assert result.data is None


@pytest.mark.asyncio
async def test_procedure_error_is_returned_not_raised():
    def handler(request):
        return httpx.Response(
            404,
            json={
                "code": "PGRST202",
                "message": "Could not find the function public.prune(days)",
                "hint": "Perhaps you meant to call public.prune(p_days)",
            },
        )

    client = _client(handler)
    result = await client.call("prune", {"days": 3})
    await client.aclose()

    assert not result.ok
    assert result.error.message == "Could not find the function public.prune(days)"
    assert result.error.code == "PGRST202"
    assert result.error.details == "Perhaps you meant to call public.prune(p_days)"
    assert result.error.status_code == 404


@pytest.mark.asyncio
async def test_error_without_json_body_gets_generic_message():
    client = _client(lambda request: httpx.Response(502, text="Bad Gateway"))
    result = await client.call("refresh_search")
    await client.aclose()
    assert result.error.message == "refresh_search failed with HTTP 502"


@pytest.mark.asyncio
async def test_transport_failure_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)
    with pytest.raises(RpcTransportError, match="refresh_search"):
        await client.call("refresh_search")
    await client.aclose()


@pytest.mark.asyncio
async def test_non_json_success_raises():
    client = _client(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
    with pytest.raises(RpcTransportError, match="not JSON"):
        await client.call("refresh_search")
    await client.aclose()
