from decimal import Decimal

from sqlalchemy import BigInteger, CheckConstraint, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from market.core.ids import gen_id

from market.models.base import Base, JsonType, UpdatedAtMixin


PENDING_PAYMENT = "pending_payment"
VERIFIED = "verified"
EXPIRED = "expired"

LISTING_STATUSES = (PENDING_PAYMENT, VERIFIED, EXPIRED)


class Listing(UpdatedAtMixin, Base):
    __tablename__ = "listings"
    # fetch updated_at on write so detached records stay fully loaded
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending_payment', 'verified', 'expired')",
            name="ck_listing_status",
        ),
        Index("ix_listings_status_expires_at", "status", "expires_at"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("lst"))

    # "pending_payment" | "verified" | "expired"
    status: Mapped[str] = mapped_column(String(30), nullable=False, default=PENDING_PAYMENT)

    # plan code in months: "1" | "3" | "6" | "12"
    plan: Mapped[str] = mapped_column(String(4), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    price_paid: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))

    # epoch milliseconds
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    expires_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    owner_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    last_extend_plan: Mapped[str | None] = mapped_column(String(4), nullable=True)
    # most recent applied order; the full trail lives in listing_payments
    last_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # display attributes (name, description, category, location, contact, ...)
    payload: Mapped[dict] = mapped_column(JsonType, nullable=False, default=dict)
