import asyncio
import logging

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from worker.celery_app import celery
from market.core.config import settings
from market.services.listing_store import ListingStore
from market.services.sweeper import sweep_pending_listing


log = logging.getLogger(__name__)


async def _sweep_listing(listing_id: str) -> bool:
    engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    Session = async_sessionmaker(engine, expire_on_commit=False)
    try:
        return await sweep_pending_listing(ListingStore(Session), listing_id)
    finally:
        await engine.dispose()


@celery.task(name="worker.tasks.sweep_listing")
def sweep_listing(listing_id: str) -> bool:
    removed = asyncio.run(_sweep_listing(listing_id))
    log.info("sweep task for %s finished (removed=%s)", listing_id, removed)
    return removed
