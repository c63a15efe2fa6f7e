from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Literal

from market.models.listing import VERIFIED, Listing
from market.services.feedback import NO_FEEDBACK, FeedbackStats
from market.services.plans import DAY_MS


SortOrder = Literal["topRated", "newest", "expiring", "az"]
OwnerSortOrder = Literal["newest", "oldest", "expiring", "az"]
OwnerStatusFilter = Literal["all", "verified", "pending"]
ExpiryFilter = Literal["all", "expiring", "expired", "active"]

EXPIRING_SOON_DAYS = 7


def is_publicly_visible(listing: Listing, *, now: int) -> bool:
    if listing.status != VERIFIED:
        return False
    return listing.expires_at is None or listing.expires_at > now


def _field(listing: Listing, key: str) -> str:
    return str((listing.payload or {}).get(key) or "")


def _matches_text(listing: Listing, term: str, keys: tuple[str, ...] = ("name", "description")) -> bool:
    return any(term in _field(listing, key).lower() for key in keys)


def _name_key(listing: Listing) -> str:
    return _field(listing, "name").casefold()


def _top_rated_key(listing: Listing, ratings: Mapping[str, FeedbackStats]):
    stats = ratings.get(listing.id, NO_FEEDBACK)
    # unrated listings rank below any rating
    average = stats.average if stats.average is not None else -1
    return (-average, -stats.count, -(listing.created_at or 0))


def browse_set(
    listings: Iterable[Listing],
    *,
    now: int,
    q: str | None = None,
    category: str | None = None,
    location: str | None = None,
    sort: SortOrder | None = None,
    ratings: Mapping[str, FeedbackStats] | None = None,
) -> list[Listing]:
    """Verified, unexpired listings narrowed by the browse filters."""
    result = [item for item in listings if is_publicly_visible(item, now=now)]

    term = (q or "").strip().lower()
    if term:
        result = [item for item in result if _matches_text(item, term)]
    if category:
        result = [item for item in result if (item.payload or {}).get("category") == category]
    if location:
        result = [item for item in result if (item.payload or {}).get("location") == location]

    if sort == "topRated":
        result.sort(key=lambda item: _top_rated_key(item, ratings or {}))
    elif sort == "newest":
        result.sort(key=lambda item: item.created_at or 0, reverse=True)
    elif sort == "expiring":
        result.sort(key=lambda item: item.expires_at or 0)
    elif sort == "az":
        result.sort(key=_name_key)
    return result


def browse_locations(listings: Iterable[Listing], *, now: int) -> list[str]:
    seen: dict[str, None] = {}
    for item in listings:
        if not is_publicly_visible(item, now=now):
            continue
        loc = str((item.payload or {}).get("location") or "").strip()
        if loc:
            seen.setdefault(loc, None)
    return list(seen)


def days_until_expiry(expires_at: int | None, *, now: int) -> int | None:
    """Whole days left, rounded up; zero or less once lapsed."""
    if not expires_at:
        return None
    return -((now - expires_at) // DAY_MS)


def _matches_expiry(listing: Listing, expiry: ExpiryFilter, *, now: int) -> bool:
    days = days_until_expiry(listing.expires_at, now=now)
    if expiry == "expiring":
        return days is not None and 0 < days <= EXPIRING_SOON_DAYS
    if expiry == "expired":
        return days is not None and days <= 0
    if expiry == "active":
        return days is None or days > EXPIRING_SOON_DAYS
    return True


def filter_owner_listings(
    listings: Iterable[Listing],
    *,
    now: int,
    status: OwnerStatusFilter = "all",
    expiry: ExpiryFilter = "all",
    q: str | None = None,
    sort: OwnerSortOrder = "newest",
) -> list[Listing]:
    """The owner's dashboard view. Unlike browse, every status is included."""
    result = list(listings)

    if status == "verified":
        result = [item for item in result if item.status == VERIFIED]
    elif status == "pending":
        # anything not yet live: awaiting payment or expired
        result = [item for item in result if item.status != VERIFIED]

    if expiry != "all":
        result = [item for item in result if _matches_expiry(item, expiry, now=now)]

    term = (q or "").strip().lower()
    if term:
        keys = ("name", "description", "location", "category")
        result = [item for item in result if _matches_text(item, term, keys)]

    if sort == "newest":
        result.sort(key=lambda item: item.created_at or 0, reverse=True)
    elif sort == "oldest":
        result.sort(key=lambda item: item.created_at or 0)
    elif sort == "expiring":
        # listings without an expiry go last
        def _expiring_key(item: Listing):
            days = days_until_expiry(item.expires_at, now=now)
            return (days is None, days or 0)

        result.sort(key=_expiring_key)
    elif sort == "az":
        result.sort(key=_name_key)
    return result
