from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping

from market.services.phone import is_plausible_phone, normalize_phone


_DANGEROUS = re.compile(r"[<>]")

# snake_case draft field -> stored payload key
DISPLAY_FIELDS = {
    "name": "name",
    "category": "category",
    "location_city": "locationCity",
    "location_extra": "locationExtra",
    "location_data": "locationData",
    "description": "description",
    "contact": "contact",
    "offer_min": "offerMin",
    "offer_max": "offerMax",
    "offer_currency": "offerCurrency",
    "tags": "tags",
    "social_link": "socialLink",
    "image_preview": "imagePreview",
}


@dataclass(frozen=True)
class DraftResult:
    ok: bool
    payload: dict[str, Any] | None
    errors: list[str]


def strip_dangerous(value: str | None) -> str:
    return _DANGEROUS.sub("", value or "")


def build_location_string(city: str | None, extra: str | None) -> str:
    c = (city or "").strip()
    e = (extra or "").strip()
    if c and e:
        return f"{c} - {e}"
    return c or e


def format_offer_price(min_value: str | None, max_value: str | None, currency: str | None) -> str:
    lo = (min_value or "").strip()
    hi = (max_value or "").strip()
    cur = currency or "EUR"
    if lo and hi:
        return f"{lo} - {hi} {cur}"
    if lo:
        return f"from {lo} {cur}"
    if hi:
        return f"up to {hi} {cur}"
    return ""


def payload_to_fields(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Stored payload back to draft fields, for edits."""
    return {field: payload.get(key) for field, key in DISPLAY_FIELDS.items() if key in payload}


def prepare_listing_payload(fields: Mapping[str, Any], *, account_phone: str | None = None) -> DraftResult:
    """
    Validate draft fields and build the stored display payload.

    Required: name, category, a resolvable location, description and a
    contact that normalizes to a plausible phone number. The account phone,
    when the owner has one, wins over a typed contact.
    """
    location = build_location_string(fields.get("location_city"), fields.get("location_extra"))
    contact_raw = account_phone or fields.get("contact")

    errors: list[str] = []
    for field in ("name", "category", "description"):
        if not (fields.get(field) or "").strip():
            errors.append(f"{field} is required")
    if not location:
        errors.append("location is required")
    if not contact_raw:
        errors.append("contact is required")

    contact = normalize_phone(contact_raw) if contact_raw else None
    if contact_raw and not is_plausible_phone(contact):
        errors.append("contact is not a valid phone number")

    if errors:
        return DraftResult(ok=False, payload=None, errors=errors)

    payload = {
        "name": strip_dangerous(fields.get("name")),
        "category": fields.get("category"),
        "location": location,
        "locationCity": fields.get("location_city") or "",
        "locationExtra": fields.get("location_extra") or "",
        "locationData": fields.get("location_data"),
        "description": strip_dangerous(fields.get("description")),
        "contact": contact,
        "offerMin": fields.get("offer_min") or "",
        "offerMax": fields.get("offer_max") or "",
        "offerCurrency": fields.get("offer_currency") or "EUR",
        "offerprice": format_offer_price(fields.get("offer_min"), fields.get("offer_max"), fields.get("offer_currency")),
        "tags": strip_dangerous(fields.get("tags")),
        "socialLink": strip_dangerous(fields.get("social_link")),
        "imagePreview": fields.get("image_preview"),
    }
    return DraftResult(ok=True, payload=payload, errors=[])
