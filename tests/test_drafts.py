from market.services.drafts import (
    build_location_string,
    format_offer_price,
    payload_to_fields,
    prepare_listing_payload,
)
from market.services.phone import is_plausible_phone, normalize_phone

from fixtures_seed import draft_fields


def test_normalize_phone():
    assert normalize_phone("+389 70 123 456") == "+38970123456"
    assert normalize_phone("0038970123456") == "+38970123456"
    assert normalize_phone("38970123456") == "+38970123456"
    assert normalize_phone("49 151 1234567") == "+491511234567"
    assert normalize_phone("70 123 456") == "+38970123456"
    assert normalize_phone("") == ""
    assert normalize_phone(None) is None


def test_plausible_phone_bounds():
    assert is_plausible_phone("+38970123456")
    assert not is_plausible_phone("+3891")
    assert not is_plausible_phone("+12345678901234567")
    assert not is_plausible_phone(None)


def test_location_and_offer_formatting():
    assert build_location_string("Skopje", "Centar") == "Skopje - Centar"
    assert build_location_string("", " Bitola ") == "Bitola"
    assert format_offer_price("10", "20", "EUR") == "10 - 20 EUR"
    assert format_offer_price("10", "", None) == "from 10 EUR"
    assert format_offer_price("", "20", "MKD") == "up to 20 MKD"
    assert format_offer_price(None, None, None) == ""


def test_prepare_payload_builds_display_record():
    result = prepare_listing_payload(draft_fields(name="<b>Math</b> tutoring"))

    assert result.ok
    assert result.errors == []
    payload = result.payload
    assert payload["name"] == "bMath/b tutoring"
    assert payload["location"] == "Skopje - Centar"
    assert payload["contact"] == "+389070123456"
    assert payload["offerprice"] == "10 - 20 EUR"
    assert payload["offerCurrency"] == "EUR"


def test_prepare_payload_reports_missing_fields():
    result = prepare_listing_payload(
        draft_fields(name=" ", location_city="", location_extra="", contact=None)
    )

    assert not result.ok
    assert result.payload is None
    assert "name is required" in result.errors
    assert "location is required" in result.errors
    assert "contact is required" in result.errors


def test_prepare_payload_rejects_implausible_contact():
    result = prepare_listing_payload(draft_fields(contact="12"))
    assert not result.ok
    assert result.errors == ["contact is not a valid phone number"]


def test_account_phone_wins_over_typed_contact():
    result = prepare_listing_payload(draft_fields(contact="070 000 000"), account_phone="+49 151 1234567")
    assert result.ok
    assert result.payload["contact"] == "+491511234567"


def test_payload_round_trips_to_fields_for_edits():
    payload = prepare_listing_payload(draft_fields()).payload
    fields = payload_to_fields(payload)
    assert fields["location_city"] == "Skopje"
    assert fields["offer_min"] == "10"
    assert "location" not in fields
