import asyncio
from decimal import Decimal

import pytest

from market.models.listing import EXPIRED, PENDING_PAYMENT, VERIFIED, Listing
from market.services.sweeper import InProcessSweepScheduler, sweep_pending_listing

from fixtures_seed import FIXED_NOW, OWNER_ID


async def _seed(store, listing_id: str, status: str) -> None:
    await store.put(
        Listing(
            id=listing_id,
            status=status,
            plan="1",
            price=Decimal("0.10"),
            price_paid=Decimal("0"),
            created_at=FIXED_NOW,
            expires_at=FIXED_NOW + 1000,
            owner_id=OWNER_ID,
            payload={"name": "Babysitting"},
        )
    )


@pytest.mark.asyncio
async def test_sweep_expires_then_removes_pending_listing(store):
    await _seed(store, "lst_1", PENDING_PAYMENT)
    kinds = []
    store.subscribe(lambda change: kinds.append((change.kind, change.listing.status if change.listing else None)))

    assert await sweep_pending_listing(store, "lst_1")

    assert await store.get("lst_1") is None
    assert kinds == [("update", EXPIRED), ("delete", None)]


@pytest.mark.asyncio
async def test_sweep_leaves_paid_and_missing_listings(store):
    await _seed(store, "lst_paid", VERIFIED)
    await _seed(store, "lst_failed", EXPIRED)

    assert not await sweep_pending_listing(store, "lst_paid")
    assert not await sweep_pending_listing(store, "lst_failed")
    assert not await sweep_pending_listing(store, "lst_missing")

    assert (await store.get("lst_paid")).status == VERIFIED
    assert (await store.get("lst_failed")).status == EXPIRED


@pytest.mark.asyncio
async def test_scheduled_sweep_fires_after_delay(store):
    await _seed(store, "lst_1", PENDING_PAYMENT)
    scheduler = InProcessSweepScheduler(store, delay_seconds=0.01)

    await scheduler.schedule("lst_1")
    assert scheduler.scheduled() == {"lst_1"}

    for _ in range(50):
        if await store.get("lst_1") is None:
            break
        await asyncio.sleep(0.01)

    assert await store.get("lst_1") is None
    assert scheduler.scheduled() == set()
    await scheduler.aclose()


@pytest.mark.asyncio
async def test_cancelled_sweep_never_fires(store):
    await _seed(store, "lst_1", PENDING_PAYMENT)
    scheduler = InProcessSweepScheduler(store, delay_seconds=0.05)

    await scheduler.schedule("lst_1")
    assert await scheduler.cancel("lst_1")
    assert not await scheduler.cancel("lst_1")

    await asyncio.sleep(0.1)
    assert (await store.get("lst_1")).status == PENDING_PAYMENT
    await scheduler.aclose()


@pytest.mark.asyncio
async def test_aclose_cancels_pending_sweeps(store):
    await _seed(store, "lst_1", PENDING_PAYMENT)
    scheduler = InProcessSweepScheduler(store, delay_seconds=60)
    await scheduler.schedule("lst_1")

    await scheduler.aclose()

    assert scheduler.scheduled() == set()
    assert (await store.get("lst_1")).status == PENDING_PAYMENT


@pytest.mark.asyncio
async def test_sweep_loses_race_to_concurrent_capture(store, monkeypatch):
    await _seed(store, "lst_1", PENDING_PAYMENT)
    read = store.get

    async def get_then_capture(listing_id):
        listing = await read(listing_id)
        # payment lands between the sweep's read and its guarded write
        await store.update_where(listing_id, {"status": VERIFIED}, Listing.status == PENDING_PAYMENT)
        return listing

    monkeypatch.setattr(store, "get", get_then_capture)

    assert not await sweep_pending_listing(store, "lst_1")

    monkeypatch.setattr(store, "get", read)
    survivor = await store.get("lst_1")
    assert survivor is not None
    assert survivor.status == VERIFIED
