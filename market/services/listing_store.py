from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from market.models.listing import Listing
from market.models.payment import ListingPayment
from market.services.errors import OrderAlreadyApplied


log = logging.getLogger(__name__)

ChangeKind = Literal["put", "update", "delete"]


@dataclass(frozen=True)
class ListingChange:
    kind: ChangeKind
    listing_id: str
    listing: Listing | None  # None for deletes


Subscriber = Callable[[ListingChange], None]


class ListingStore:
    """
    Key-value persistence of listing records.

    Every write commits on its own; no operation spans more than one listing.
    Subscribers are called after the commit. A subscriber that raises is
    logged and skipped, the write itself stands.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._subscribers: list[Subscriber] = []

    # reads
    async def get(self, listing_id: str) -> Listing | None:
        async with self._session_factory() as db:
            return await db.get(Listing, listing_id)

    async def list_all(self) -> list[Listing]:
        async with self._session_factory() as db:
            stmt = select(Listing).order_by(Listing.created_at.desc())
            return list((await db.execute(stmt)).scalars().all())

    async def list_by_owner(self, owner_id: str) -> list[Listing]:
        async with self._session_factory() as db:
            stmt = (
                select(Listing)
                .where(Listing.owner_id == owner_id)
                .order_by(Listing.created_at.desc())
            )
            return list((await db.execute(stmt)).scalars().all())

    # writes
    async def put(self, listing: Listing) -> Listing:
        """Create, or overwrite the record with the same id."""
        async with self._session_factory() as db:
            stored = await db.merge(listing)
            await db.commit()
        self._notify(ListingChange(kind="put", listing_id=stored.id, listing=stored))
        return stored

    async def update(self, listing_id: str, **values: Any) -> Listing | None:
        """Partial update by id. Returns the updated record, None if it does not exist."""
        return await self.update_where(listing_id, values)

    async def update_where(
        self,
        listing_id: str,
        values: dict[str, Any],
        *conditions: ColumnElement[bool],
    ) -> Listing | None:
        """
        Compare-and-swap update: applies `values` only when the row also
        matches every condition. Returns the updated record, or None when
        nothing matched (missing row or a guard failed).
        """
        async with self._session_factory() as db:
            result = await db.execute(
                update(Listing)
                .where(Listing.id == listing_id, *conditions)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if not result.rowcount:
                await db.rollback()
                return None
            await db.commit()
            listing = await db.get(Listing, listing_id, populate_existing=True)

        self._notify(ListingChange(kind="update", listing_id=listing_id, listing=listing))
        return listing

    async def apply_order(
        self,
        payment: ListingPayment,
        values: dict[str, Any],
        *conditions: ColumnElement[bool],
    ) -> Listing | None:
        """
        Guarded update plus the payment record, committed together.

        Raises OrderAlreadyApplied when the order id is on record already, so
        a replayed or duplicate capture cannot touch the listing again.
        Returns None when the listing guards do not match.
        """
        listing_id = payment.listing_id
        async with self._session_factory() as db:
            recorded = await db.get(ListingPayment, payment.order_id)
            if recorded is not None:
                raise OrderAlreadyApplied(payment.order_id, recorded.listing_id)

            result = await db.execute(
                update(Listing)
                .where(Listing.id == listing_id, *conditions)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if not result.rowcount:
                await db.rollback()
                return None

            db.add(payment)
            try:
                await db.commit()
            except IntegrityError as e:
                # a concurrent capture recorded the same order first
                await db.rollback()
                raise OrderAlreadyApplied(payment.order_id, listing_id) from e
            listing = await db.get(Listing, listing_id, populate_existing=True)

        self._notify(ListingChange(kind="update", listing_id=listing_id, listing=listing))
        return listing

    async def delete(self, listing_id: str, *conditions: ColumnElement[bool]) -> bool:
        async with self._session_factory() as db:
            result = await db.execute(
                delete(Listing)
                .where(Listing.id == listing_id, *conditions)
                .execution_options(synchronize_session=False)
            )
            deleted = bool(result.rowcount)
            await db.commit()

        if deleted:
            self._notify(ListingChange(kind="delete", listing_id=listing_id, listing=None))
        return deleted

    # change notification
    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def _notify(self, change: ListingChange) -> None:
        for callback in list(self._subscribers):
            try:
                callback(change)
            except Exception:
                log.exception("listing subscriber failed for %s (%s)", change.listing_id, change.kind)
