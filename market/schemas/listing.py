from typing import Any, Literal

from pydantic import ConfigDict, Field

from market.models.feedback import ListingFeedback
from market.models.listing import Listing
from market.schemas.common import CamelModel, Money
from market.services.feedback import FeedbackStats


class ListingDraftIn(CamelModel):
    name: str | None = Field(default=None, max_length=200)
    category: str | None = Field(default=None, max_length=60)
    location_city: str | None = Field(default=None, max_length=120)
    location_extra: str | None = Field(default=None, max_length=200)
    location_data: dict[str, Any] | None = None
    description: str | None = Field(default=None, max_length=5000)
    contact: str | None = Field(default=None, max_length=40)
    offer_min: str | None = Field(default=None, max_length=40)
    offer_max: str | None = Field(default=None, max_length=40)
    offer_currency: str | None = Field(default=None, max_length=8)
    tags: str | None = Field(default=None, max_length=500)
    social_link: str | None = Field(default=None, max_length=500)
    image_preview: str | None = None


class ListingCreateIn(ListingDraftIn):
    plan: str = "1"


class ListingEditIn(ListingDraftIn):
    pass


class ExtendIn(CamelModel):
    plan: str | None = None


class PaymentFlowOut(CamelModel):
    listing_id: str
    order_id: str = Field(alias="orderID")
    action: Literal["create_listing", "extend"]
    amount: Money
    plan: str


class ListingOut(CamelModel):
    """Lifecycle fields plus the display attributes, flattened like the stored record."""

    model_config = ConfigDict(extra="allow")

    id: str
    status: str
    plan: str
    price: Money
    price_paid: Money
    created_at: int
    expires_at: int | None
    owner_id: str
    last_extend_plan: str | None = None

    rating_average: float | None = None
    rating_count: int = 0


def listing_out(listing: Listing, stats: FeedbackStats | None = None) -> ListingOut:
    rating = {"rating_average": stats.average, "rating_count": stats.count} if stats is not None else {}
    return ListingOut.model_validate(
        {
            **(listing.payload or {}),
            "id": listing.id,
            "status": listing.status,
            "plan": listing.plan,
            "price": listing.price,
            "price_paid": listing.price_paid,
            "created_at": listing.created_at,
            "expires_at": listing.expires_at,
            "owner_id": listing.owner_id,
            "last_extend_plan": listing.last_extend_plan,
            **rating,
        }
    )


class FeedbackIn(CamelModel):
    rating: float | str | None = 4
    comment: str = Field(default="", max_length=2000)


class FeedbackEntryOut(CamelModel):
    id: str
    rating: int
    comment: str
    created_at: int
    user_id: str | None = None
    author: str | None = None


class FeedbackListOut(CamelModel):
    entries: list[FeedbackEntryOut]
    count: int
    average: float | None


def feedback_entry_out(entry: ListingFeedback) -> FeedbackEntryOut:
    return FeedbackEntryOut(
        id=entry.id,
        rating=entry.rating,
        comment=entry.comment,
        created_at=entry.created_at,
        user_id=entry.user_id,
        author=entry.author,
    )
