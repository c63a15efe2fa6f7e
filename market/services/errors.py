from __future__ import annotations

from typing import Any


class MarketError(Exception):
    """Base class for listing lifecycle failures."""


class ListingNotFound(MarketError):
    def __init__(self, listing_id: str):
        super().__init__(f"listing {listing_id} not found")
        self.listing_id = listing_id


class NotListingOwner(MarketError):
    def __init__(self, listing_id: str):
        super().__init__(f"not the owner of listing {listing_id}")
        self.listing_id = listing_id


class InvalidTransition(MarketError):
    def __init__(self, listing_id: str, status: str, action: str):
        super().__init__(f"cannot {action} listing {listing_id} while it is {status}")
        self.listing_id = listing_id
        self.status = status
        self.action = action


class DraftInvalid(MarketError):
    """Required fields missing or contact is not a plausible phone number."""

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


class AmountMismatch(MarketError):
    def __init__(self, *, plan: str, expected: Any, got: Any):
        super().__init__(f"amount {got} does not match plan {plan} price {expected}")
        self.plan = plan
        self.expected = expected
        self.got = got


class GatewayError(MarketError):
    """
    The payment provider refused a call or could not be reached.
    `detail` carries the provider payload when there is one.
    """

    def __init__(self, message: str, *, detail: dict[str, Any] | None = None, status_code: int | None = None):
        super().__init__(message)
        self.detail = detail or {}
        self.status_code = status_code


class PaymentFailed(MarketError):
    """
    A capture or order creation did not succeed. The listing has already
    been compensated (expired) where that applied.
    `error` is what the HTTP layer reports back: the provider payload when
    the provider answered, else a short message.
    """

    def __init__(self, error: Any):
        super().__init__(str(error))
        self.error = error


class OrderAlreadyApplied(MarketError):
    """The gateway order was recorded against a listing before."""

    def __init__(self, order_id: str, listing_id: str):
        super().__init__(f"order {order_id} was already applied to listing {listing_id}")
        self.order_id = order_id
        self.listing_id = listing_id


class FeedbackInvalid(MarketError):
    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors
