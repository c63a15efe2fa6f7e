"""Test doubles and seed data shared across the test modules."""
from decimal import Decimal
from typing import Any

from market.services.errors import GatewayError


OWNER_ID = "usr_owner"
OTHER_OWNER_ID = "usr_other"

FIXED_NOW = 1_700_000_000_000


def completed_order(order_id: str, amount: str = "0.10", *, listing_id: str, captured: bool = True) -> dict[str, Any]:
    unit: dict[str, Any] = {"reference_id": listing_id, "amount": {"currency_code": "EUR", "value": amount}}
    if captured:
        unit["payments"] = {"captures": [{"id": f"cap_{order_id}", "status": "COMPLETED", "amount": {"currency_code": "EUR", "value": amount}}]}
    return {"id": order_id, "status": "COMPLETED", "purchase_units": [unit]}


class FakeGateway:
    """In-memory PaymentGateway; tests script order and capture payloads per order id."""

    def __init__(self):
        self.created: list[dict[str, Any]] = []
        self.orders: dict[str, dict[str, Any]] = {}
        self.captures: dict[str, dict[str, Any]] = {}
        self.capture_calls: list[str] = []
        self.create_error: Exception | None = None
        self.capture_error: Exception | None = None
        self._seq = 0

    async def create_order(self, *, listing_id: str, amount: Decimal, currency: str) -> str:
        if self.create_error is not None:
            raise self.create_error
        self._seq += 1
        order_id = f"ORDER-{self._seq}"
        self.created.append({"order_id": order_id, "listing_id": listing_id, "amount": amount, "currency": currency})
        self.orders[order_id] = {"id": order_id, "status": "CREATED", "purchase_units": [{"reference_id": listing_id}]}
        return order_id

    async def get_order(self, order_id: str) -> dict[str, Any]:
        return self.orders.get(order_id, {"id": order_id, "status": "CREATED"})

    async def capture_order(self, order_id: str) -> dict[str, Any]:
        self.capture_calls.append(order_id)
        if self.capture_error is not None:
            raise self.capture_error
        if order_id in self.captures:
            return self.captures[order_id]
        return completed_order(order_id, listing_id=self._reference(order_id))

    def _reference(self, order_id: str) -> str:
        units = self.orders.get(order_id, {}).get("purchase_units") or [{}]
        return units[0].get("reference_id", "")

    async def aclose(self) -> None:
        return None


class FakeSweeper:
    def __init__(self):
        self.scheduled: list[str] = []
        self.cancelled: list[str] = []

    async def schedule(self, listing_id: str) -> None:
        self.scheduled.append(listing_id)

    async def cancel(self, listing_id: str) -> bool:
        self.cancelled.append(listing_id)
        return True

    async def aclose(self) -> None:
        return None


def draft_fields(**overrides: Any) -> dict[str, Any]:
    fields = {
        "name": "Math tutoring",
        "category": "education",
        "location_city": "Skopje",
        "location_extra": "Centar",
        "description": "High school math, evenings and weekends.",
        "contact": "070 123 456",
        "offer_min": "10",
        "offer_max": "20",
        "offer_currency": "EUR",
        "tags": "math, tutoring",
    }
    fields.update(overrides)
    return fields


def draft_body(**overrides: Any) -> dict[str, Any]:
    body = {
        "name": "Math tutoring",
        "category": "education",
        "locationCity": "Skopje",
        "locationExtra": "Centar",
        "description": "High school math, evenings and weekends.",
        "contact": "070 123 456",
        "offerMin": "10",
        "offerMax": "20",
        "offerCurrency": "EUR",
    }
    body.update(overrides)
    return body


def gateway_error(message: str = "boom", **detail: Any) -> GatewayError:
    return GatewayError(message, detail=detail or None, status_code=400)
