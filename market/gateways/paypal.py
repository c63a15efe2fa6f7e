from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

import httpx

from market.core.config import Settings
from market.gateways.base import PaymentGateway
from market.services.errors import GatewayError
from market.services.http_client import GatewayHttpClient, HttpResult


log = logging.getLogger(__name__)

TOKEN_PATH = "/v1/oauth2/token"
ORDERS_PATH = "/v2/checkout/orders"

ORDER_DESCRIPTION = "Digital Service Listing Payment"


def format_amount(amount: Decimal | str) -> str:
    # no rounding here; plan prices are already at currency precision
    if isinstance(amount, Decimal):
        return format(amount, "f")
    return str(amount)


class PayPalGateway(PaymentGateway):
    """
    PayPal Orders v2 client.

    A fresh client-credentials token is fetched for every operation; PayPal
    tokens are cheap and this keeps the client stateless between requests.
    """

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        base_url: str,
        brand_name: str,
        timeout_seconds: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._brand_name = brand_name
        self._http = GatewayHttpClient(base_url=base_url, timeout_seconds=timeout_seconds, transport=transport)

    @classmethod
    def from_settings(cls, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> "PayPalGateway":
        return cls(
            client_id=settings.paypal_client_id.get_secret_value(),
            client_secret=settings.paypal_client_secret.get_secret_value(),
            base_url=settings.paypal_base_url,
            brand_name=settings.paypal_brand_name,
            timeout_seconds=settings.paypal_timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def get_access_token(self) -> str:
        res = await self._http.request_json(
            method="POST",
            path=TOKEN_PATH,
            form={"grant_type": "client_credentials"},
            # httpx sends this as base64 "id:secret" basic auth
            auth=(self._client_id, self._client_secret),
        )
        self._raise_for_transport(res, "token")
        if not res.ok:
            log.error("PayPal access token error: %s", res.detail)
            raise GatewayError("Failed to get PayPal access token", detail=res.detail, status_code=res.status_code)

        token = res.detail.get("access_token")
        if not token:
            raise GatewayError("PayPal token response had no access_token", detail=res.detail, status_code=res.status_code)
        return token

    async def create_order(self, *, listing_id: str, amount: Decimal, currency: str) -> str:
        body = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": listing_id,
                    "amount": {"currency_code": currency, "value": format_amount(amount)},
                    "description": ORDER_DESCRIPTION,
                }
            ],
            "application_context": {
                "brand_name": self._brand_name,
                "landing_page": "NO_PREFERENCE",
                "user_action": "PAY_NOW",
                "shipping_preference": "NO_SHIPPING",
            },
        }
        res = await self._authorized("POST", ORDERS_PATH, json_body=body)
        self._raise_for_transport(res, "create order")

        order_id = res.detail.get("id")
        if not order_id:
            log.error("PayPal order creation failed: %s", res.detail)
            raise GatewayError("PayPal did not issue an order id", detail=res.detail, status_code=res.status_code)
        return order_id

    async def get_order(self, order_id: str) -> dict[str, Any]:
        res = await self._authorized("GET", f"{ORDERS_PATH}/{order_id}")
        self._raise_for_transport(res, "get order")
        return res.detail

    async def capture_order(self, order_id: str) -> dict[str, Any]:
        res = await self._authorized(
            "POST",
            f"{ORDERS_PATH}/{order_id}/capture",
            headers={"Content-Type": "application/json"},
        )
        self._raise_for_transport(res, "capture order")
        return res.detail

    # helpers
    async def _authorized(
        self,
        method,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> HttpResult:
        token = await self.get_access_token()
        h = {"Authorization": f"Bearer {token}"}
        h.update(headers or {})
        return await self._http.request_json(method=method, path=path, headers=h, json_body=json_body)

    @staticmethod
    def _raise_for_transport(res: HttpResult, op: str) -> None:
        # no status code means we never got an answer (timeout, DNS, TLS, ...)
        if res.status_code is None:
            raise GatewayError(
                f"PayPal {op} failed: {res.error_code}: {res.error_message}",
                detail=res.detail,
            )
