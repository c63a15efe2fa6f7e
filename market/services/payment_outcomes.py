"""
Interpretation of raw PayPal order payloads.

Kept free of I/O so every rule here can be checked against fixture payloads.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable


COMPLETED = "COMPLETED"

# Lifecycle status strings reported back to the client
ALREADY_COMPLETED = "ALREADY_COMPLETED"
ALREADY_CAPTURED = "ALREADY_CAPTURED"

# (error name, issue code) -> outcome status. These provider "errors" mean
# an earlier request already did the work.
ALREADY_SUCCEEDED_ISSUES: dict[tuple[str, str], str] = {
    ("UNPROCESSABLE_ENTITY", "ORDER_ALREADY_CAPTURED"): ALREADY_CAPTURED,
}


def _first_unit(payload: dict[str, Any]) -> dict[str, Any]:
    units = payload.get("purchase_units") or []
    if units and isinstance(units[0], dict):
        return units[0]
    return {}


def _capture_amount(payload: dict[str, Any]) -> Any:
    captures = ((_first_unit(payload).get("payments") or {}).get("captures")) or []
    if captures and isinstance(captures[0], dict):
        return (captures[0].get("amount") or {}).get("value")
    return None


def _unit_amount(payload: dict[str, Any]) -> Any:
    return (_first_unit(payload).get("amount") or {}).get("value")


# most specific first
AMOUNT_STRATEGIES: tuple[Callable[[dict[str, Any]], Any], ...] = (
    _capture_amount,
    _unit_amount,
)


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def extract_captured_amount(payload: dict[str, Any]) -> Decimal:
    """Captured amount from an order or capture payload; Decimal("0") when none is present."""
    for strategy in AMOUNT_STRATEGIES:
        amount = _to_decimal(strategy(payload))
        if amount is not None:
            return amount
    return Decimal("0")


@dataclass(frozen=True)
class Captured:
    status: str
    amount: Decimal


@dataclass(frozen=True)
class AlreadySucceeded:
    status: str


@dataclass(frozen=True)
class CaptureRejected:
    payload: dict[str, Any]


CaptureOutcome = Captured | AlreadySucceeded | CaptureRejected


def already_succeeded_status(payload: dict[str, Any]) -> str | None:
    name = payload.get("name")
    details = payload.get("details") or []
    issue = details[0].get("issue") if details and isinstance(details[0], dict) else None
    if not name or not issue:
        return None
    return ALREADY_SUCCEEDED_ISSUES.get((name, issue))


def classify_capture(payload: dict[str, Any]) -> CaptureOutcome:
    already = already_succeeded_status(payload)
    if already:
        return AlreadySucceeded(status=already)
    if payload.get("status") != COMPLETED:
        return CaptureRejected(payload=payload)
    return Captured(status=COMPLETED, amount=extract_captured_amount(payload))


def order_is_completed(payload: dict[str, Any]) -> bool:
    return payload.get("status") == COMPLETED


def order_reference(payload: dict[str, Any]) -> str | None:
    """The listing id the order was created for (purchase_units[0].reference_id)."""
    return _first_unit(payload).get("reference_id")
