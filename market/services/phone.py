from __future__ import annotations

import re


DEFAULT_COUNTRY_CODE = "389"

# dialing prefixes recognised without a leading "+"
KNOWN_COUNTRY_CODES = ("389", "355", "383", "381", "30", "359", "90", "49", "1")

_NON_DIGITS = re.compile(r"\D")
_WHITESPACE = re.compile(r"\s+")


def normalize_phone(raw: str | None) -> str | None:
    """
    Normalize a phone number before storing it on a listing.

    - "+..." keeps the plus and drops whitespace
    - "00..." becomes "+..."
    - digits starting with a known country code get a "+"
    - anything else is treated as a local (North Macedonia) number
    """
    if not raw:
        return raw
    trimmed = raw.strip()
    if trimmed.startswith("+"):
        return _WHITESPACE.sub("", trimmed)

    digits = _NON_DIGITS.sub("", trimmed)
    if not digits:
        return trimmed
    if len(digits) > 8 and digits.startswith("00"):
        return "+" + digits[2:]
    for code in KNOWN_COUNTRY_CODES:
        if digits.startswith(code):
            return "+" + digits
    return "+" + DEFAULT_COUNTRY_CODE + digits


def is_plausible_phone(value: str | None) -> bool:
    if not value:
        return False
    return 8 <= len(_NON_DIGITS.sub("", value)) <= 16
