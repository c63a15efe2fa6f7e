import httpx
import pytest

from market.services.http_client import GatewayHttpClient


def _client(handler) -> GatewayHttpClient:
    return GatewayHttpClient(base_url="https://api.test", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_json_success_carries_debug_id():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": "ORDER-1"}, headers={"paypal-debug-id": "dbg-1"})

    client = _client(handler)
    result = await client.request_json(method="GET", path="/v2/checkout/orders/ORDER-1")
    await client.aclose()

    assert result.ok
    assert result.status_code == 200
    assert result.detail == {"id": "ORDER-1"}
    assert result.debug_id == "dbg-1"


@pytest.mark.asyncio
async def test_error_status_is_not_ok():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"name": "UNPROCESSABLE_ENTITY"})

    client = _client(handler)
    result = await client.request_json(method="POST", path="/v2/checkout/orders/ORDER-1/capture", json_body={})
    await client.aclose()

    assert not result.ok
    assert result.error_code == "HTTP_422"
    assert result.detail == {"name": "UNPROCESSABLE_ENTITY"}


@pytest.mark.asyncio
async def test_non_json_body_is_kept_raw():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>bad gateway</html>", headers={"content-type": "text/html"})

    client = _client(handler)
    result = await client.request_json(method="GET", path="/")
    await client.aclose()

    assert not result.ok
    assert result.detail["raw"] == "<html>bad gateway</html>"
    assert result.detail["content_type"] == "text/html"


@pytest.mark.asyncio
async def test_transport_error_has_no_status():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = _client(handler)
    result = await client.request_json(method="GET", path="/")
    await client.aclose()

    assert not result.ok
    assert result.status_code is None
    assert result.error_code == "REQUEST_ERROR"
