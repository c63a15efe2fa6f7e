import asyncio
import logging

from worker.celery_app import celery
from worker.tasks import sweep_listing


log = logging.getLogger(__name__)


def sweep_task_id(listing_id: str) -> str:
    return f"sweep:{listing_id}"


class CelerySweepScheduler:
    """
    Sweeps as Celery countdown tasks; they survive API restarts.
    Task ids are derived from the listing id so a sweep can be revoked later.
    Broker calls block, so they run in a worker thread off the event loop.
    """

    def __init__(self, *, delay_seconds: float = 60.0):
        self._delay = delay_seconds

    async def schedule(self, listing_id: str) -> None:
        # one sweep per listing: listing ids are never reused, and a revoked
        # task id stays revoked on the workers
        await asyncio.to_thread(
            sweep_listing.apply_async,
            args=[listing_id],
            countdown=self._delay,
            task_id=sweep_task_id(listing_id),
        )
        log.info("sweep scheduled for %s in %ss", listing_id, self._delay)

    async def cancel(self, listing_id: str) -> bool:
        return await asyncio.to_thread(self._revoke, sweep_task_id(listing_id))

    @staticmethod
    def _revoke(task_id: str) -> bool:
        if celery.AsyncResult(task_id).ready():
            return False
        celery.control.revoke(task_id)
        log.debug("sweep revoked: %s", task_id)
        return True

    async def aclose(self) -> None:
        return None
