"""
Visitor feedback on listings: a 1-5 star rating plus a comment.

Only the newest FEEDBACK_WINDOW entries per listing are shown or counted;
older rows stay in the table but no longer move the average.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from market.models.feedback import ListingFeedback
from market.services.errors import FeedbackInvalid


log = logging.getLogger(__name__)

FEEDBACK_WINDOW = 50
MIN_RATING = 1
MAX_RATING = 5


@dataclass(frozen=True)
class FeedbackDraft:
    rating: int
    comment: str


@dataclass(frozen=True)
class FeedbackStats:
    count: int
    average: float | None  # one decimal, None without entries


NO_FEEDBACK = FeedbackStats(count=0, average=None)


def prepare_feedback(rating: Any, comment: Any) -> FeedbackDraft:
    """Clamp the rating into range; the comment is required."""
    try:
        value = int(float(rating))
    except (TypeError, ValueError, OverflowError):
        value = 0
    value = min(max(value, MIN_RATING), MAX_RATING)

    text = str(comment or "").strip()
    if not text:
        raise FeedbackInvalid(["comment is required"])
    return FeedbackDraft(rating=value, comment=text)


def _average(total: int, count: int) -> float | None:
    if not count:
        return None
    return float((Decimal(total) / Decimal(count)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class FeedbackStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def add(self, entry: ListingFeedback) -> ListingFeedback:
        async with self._session_factory() as db:
            db.add(entry)
            await db.commit()
        log.info("feedback %s stored for listing %s (rating %s)", entry.id, entry.listing_id, entry.rating)
        return entry

    async def recent(self, listing_id: str, *, limit: int = FEEDBACK_WINDOW) -> list[ListingFeedback]:
        """Newest first."""
        async with self._session_factory() as db:
            stmt = (
                select(ListingFeedback)
                .where(ListingFeedback.listing_id == listing_id)
                .order_by(ListingFeedback.created_at.desc(), ListingFeedback.id.desc())
                .limit(min(limit, FEEDBACK_WINDOW))
            )
            return list((await db.execute(stmt)).scalars().all())

    async def stats(self, listing_ids: Iterable[str] | None = None) -> dict[str, FeedbackStats]:
        """Count and average over each listing's newest FEEDBACK_WINDOW entries."""
        ranked = select(
            ListingFeedback.listing_id,
            ListingFeedback.rating,
            func.row_number()
            .over(
                partition_by=ListingFeedback.listing_id,
                order_by=[ListingFeedback.created_at.desc(), ListingFeedback.id.desc()],
            )
            .label("rn"),
        )
        if listing_ids is not None:
            ranked = ranked.where(ListingFeedback.listing_id.in_(list(listing_ids)))
        window = ranked.subquery()

        stmt = (
            select(window.c.listing_id, func.count(), func.sum(window.c.rating))
            .where(window.c.rn <= FEEDBACK_WINDOW)
            .group_by(window.c.listing_id)
        )
        async with self._session_factory() as db:
            rows = (await db.execute(stmt)).all()

        return {
            listing_id: FeedbackStats(count=count, average=_average(int(total or 0), count))
            for listing_id, count, total in rows
        }

    async def stats_for(self, listing_id: str) -> FeedbackStats:
        return (await self.stats([listing_id])).get(listing_id, NO_FEEDBACK)
