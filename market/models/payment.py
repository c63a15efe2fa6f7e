from decimal import Decimal

from sqlalchemy import BigInteger, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from market.models.base import Base


class ListingPayment(Base):
    """One row per gateway order applied to a listing. An order is applied at most once."""

    __tablename__ = "listing_payments"

    order_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    # no foreign key: the payment trail outlives swept or deleted listings
    listing_id: Mapped[str] = mapped_column(String, nullable=False, index=True)

    # "create_listing" | "extend"
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    plan: Mapped[str] = mapped_column(String(4), nullable=False)

    # None when the provider only reported "already captured"
    amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    # epoch milliseconds
    applied_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
