from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from market.models.listing import EXPIRED, PENDING_PAYMENT, Listing
from market.services.listing_store import ListingStore


log = logging.getLogger(__name__)


async def sweep_pending_listing(store: ListingStore, listing_id: str) -> bool:
    """
    Expire and remove a listing whose payment never completed.

    Re-reads the record first and only touches it through status guards, so a
    listing verified in the meantime is left alone. Returns True when the
    listing was removed.
    """
    listing = await store.get(listing_id)
    if listing is None:
        return False
    if listing.status != PENDING_PAYMENT:
        log.info("sweep: listing %s is %s, nothing to do", listing_id, listing.status)
        return False

    expired = await store.update_where(listing_id, {"status": EXPIRED}, Listing.status == PENDING_PAYMENT)
    if expired is None:
        # a capture won the race between our read and the guarded write
        log.info("sweep: listing %s left pending state concurrently", listing_id)
        return False

    await store.delete(listing_id, Listing.status == EXPIRED)
    log.info("sweep: expired and removed unpaid listing %s", listing_id)
    return True


class SweepScheduler(Protocol):
    """One deferred sweep per listing id, cancellable until it fires."""

    async def schedule(self, listing_id: str) -> None:
        ...

    async def cancel(self, listing_id: str) -> bool:
        """True when a sweep was still pending and is now withdrawn."""
        ...

    async def aclose(self) -> None:
        ...


class InProcessSweepScheduler:
    """asyncio timers inside the API process. Pending sweeps are lost on restart."""

    def __init__(self, store: ListingStore, *, delay_seconds: float = 60.0):
        self._store = store
        self._delay = delay_seconds
        self._tasks: dict[str, asyncio.Task] = {}

    async def schedule(self, listing_id: str) -> None:
        # rescheduling restarts the timer
        await self.cancel(listing_id)
        task = asyncio.get_running_loop().create_task(self._run(listing_id), name=f"sweep:{listing_id}")
        self._tasks[listing_id] = task
        task.add_done_callback(lambda t, lid=listing_id: self._forget(lid, t))

    async def cancel(self, listing_id: str) -> bool:
        task = self._tasks.pop(listing_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        log.debug("sweep: cancelled for %s", listing_id)
        return True

    def scheduled(self) -> set[str]:
        return set(self._tasks)

    async def aclose(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, listing_id: str) -> None:
        await asyncio.sleep(self._delay)
        # once fired the sweep is no longer cancellable
        if self._tasks.get(listing_id) is asyncio.current_task():
            del self._tasks[listing_id]
        try:
            await sweep_pending_listing(self._store, listing_id)
        except Exception:
            log.exception("sweep: failed for listing %s", listing_id)

    def _forget(self, listing_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(listing_id) is task:
            del self._tasks[listing_id]
