from __future__ import annotations

from decimal import Decimal
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class PaymentGateway(Protocol):
    """
    Order lifecycle calls against an external payment provider.

    `get_order` and `capture_order` return the provider's raw payload;
    interpreting it is the lifecycle layer's job.
    """

    async def create_order(self, *, listing_id: str, amount: Decimal, currency: str) -> str:
        """Returns the provider order id. Raises GatewayError when none is issued."""
        ...

    async def get_order(self, order_id: str) -> dict[str, Any]:
        ...

    async def capture_order(self, order_id: str) -> dict[str, Any]:
        ...

    async def aclose(self) -> None:
        ...
