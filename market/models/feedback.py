from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from market.core.ids import gen_id

from market.models.base import Base


class ListingFeedback(Base):
    __tablename__ = "listing_feedback"
    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_feedback_rating"),
        Index("ix_listing_feedback_listing_created", "listing_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("fb"))
    listing_id: Mapped[str] = mapped_column(String, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False)

    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False)

    # epoch milliseconds
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    user_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    # what other visitors see as the reviewer (account phone when known)
    author: Mapped[str | None] = mapped_column(String(120), nullable=True)
