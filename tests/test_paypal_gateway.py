import base64
import json
from decimal import Decimal

import httpx
import pytest

from market.core.config import settings
from market.gateways.base import PaymentGateway
from market.gateways.paypal import ORDER_DESCRIPTION, PayPalGateway, format_amount
from market.services.errors import GatewayError


def _gateway(handler) -> PayPalGateway:
    return PayPalGateway(
        client_id="cid",
        client_secret="csecret",
        base_url="https://api-m.sandbox.paypal.com",
        brand_name="Local Support Market",
        transport=httpx.MockTransport(handler),
    )


def _token_response(request: httpx.Request) -> httpx.Response | None:
    if request.url.path == "/v1/oauth2/token":
        return httpx.Response(200, json={"access_token": "A21-token", "token_type": "Bearer"})
    return None


def test_format_amount():
    assert format_amount(Decimal("0.10")) == "0.10"
    assert format_amount(Decimal("25.00")) == "25.00"
    assert format_amount("16.00") == "16.00"


def test_from_settings_uses_sandbox_by_default():
    gw = PayPalGateway.from_settings(settings)
    assert isinstance(gw, PaymentGateway)
    assert settings.paypal_base_url == "https://api-m.sandbox.paypal.com"


@pytest.mark.asyncio
async def test_token_request_uses_basic_auth_and_form():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["authorization"]
        seen["body"] = request.content.decode()
        seen["content_type"] = request.headers["content-type"]
        return httpx.Response(200, json={"access_token": "A21-token"})

    gw = _gateway(handler)
    assert await gw.get_access_token() == "A21-token"
    await gw.aclose()

    assert seen["auth"] == "Basic " + base64.b64encode(b"cid:csecret").decode()
    assert seen["body"] == "grant_type=client_credentials"
    assert seen["content_type"] == "application/x-www-form-urlencoded"


@pytest.mark.asyncio
async def test_token_failure_raises():
    gw = _gateway(lambda request: httpx.Response(401, json={"error": "invalid_client"}))

    with pytest.raises(GatewayError) as exc:
        await gw.get_access_token()

    assert exc.value.status_code == 401
    assert exc.value.detail == {"error": "invalid_client"}


@pytest.mark.asyncio
async def test_create_order_body():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        token = _token_response(request)
        if token:
            return token
        seen["auth"] = request.headers["authorization"]
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"id": "5O190127TN364715T", "status": "CREATED"})

    gw = _gateway(handler)
    order_id = await gw.create_order(listing_id="lst_1", amount=Decimal("10.00"), currency="EUR")

    assert order_id == "5O190127TN364715T"
    assert seen["auth"] == "Bearer A21-token"
    assert seen["path"] == "/v2/checkout/orders"
    body = seen["body"]
    assert body["intent"] == "CAPTURE"
    assert body["purchase_units"] == [
        {
            "reference_id": "lst_1",
            "amount": {"currency_code": "EUR", "value": "10.00"},
            "description": ORDER_DESCRIPTION,
        }
    ]
    assert body["application_context"]["user_action"] == "PAY_NOW"
    assert body["application_context"]["shipping_preference"] == "NO_SHIPPING"


@pytest.mark.asyncio
async def test_create_order_without_id_raises_with_provider_payload():
    error = {"name": "INVALID_REQUEST", "details": [{"issue": "CURRENCY_NOT_SUPPORTED"}]}

    def handler(request: httpx.Request) -> httpx.Response:
        return _token_response(request) or httpx.Response(400, json=error)

    with pytest.raises(GatewayError) as exc:
        await _gateway(handler).create_order(listing_id="lst_1", amount=Decimal("0.10"), currency="XXX")

    assert exc.value.detail == error
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_capture_and_get_return_raw_payloads():
    captured = {"id": "O-1", "status": "COMPLETED"}
    already = {"name": "UNPROCESSABLE_ENTITY", "details": [{"issue": "ORDER_ALREADY_CAPTURED"}]}
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        token = _token_response(request)
        if token:
            return token
        calls.append((request.method, request.url.path))
        if request.method == "GET":
            return httpx.Response(200, json=captured)
        return httpx.Response(422, json=already)

    gw = _gateway(handler)

    assert await gw.get_order("O-1") == captured
    assert await gw.capture_order("O-1") == already
    assert calls == [("GET", "/v2/checkout/orders/O-1"), ("POST", "/v2/checkout/orders/O-1/capture")]


@pytest.mark.asyncio
async def test_timeout_surfaces_as_gateway_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(GatewayError) as exc:
        await _gateway(handler).get_order("O-1")

    assert "TIMEOUT" in str(exc.value)
