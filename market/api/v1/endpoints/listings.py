import asyncio
import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from market.api.deps import get_feedback_store, get_lifecycle, get_store
from market.core.ids import gen_id, now_ms
from market.models.feedback import ListingFeedback
from market.schemas.listing import (
    ExtendIn,
    FeedbackEntryOut,
    FeedbackIn,
    FeedbackListOut,
    ListingCreateIn,
    ListingEditIn,
    ListingOut,
    PaymentFlowOut,
    feedback_entry_out,
    listing_out,
)
from market.services.auth import Actor, get_actor
from market.services.browse import (
    ExpiryFilter,
    OwnerSortOrder,
    OwnerStatusFilter,
    SortOrder,
    browse_locations,
    browse_set,
    filter_owner_listings,
    is_publicly_visible,
)
from market.services.errors import (
    DraftInvalid,
    FeedbackInvalid,
    InvalidTransition,
    ListingNotFound,
    NotListingOwner,
    PaymentFailed,
)
from market.services.feedback import NO_FEEDBACK, FeedbackStore, prepare_feedback
from market.services.lifecycle import ListingLifecycle, PaymentFlow
from market.services.listing_store import ListingChange, ListingStore


log = logging.getLogger(__name__)
router = APIRouter()


def _flow_out(flow: PaymentFlow) -> PaymentFlowOut:
    return PaymentFlowOut(
        listing_id=flow.listing_id,
        order_id=flow.order_id,
        action=flow.action,
        amount=flow.amount,
        plan=flow.plan,
    )


def _raise_http(e: Exception) -> None:
    if isinstance(e, (DraftInvalid, FeedbackInvalid)):
        raise HTTPException(status_code=422, detail={"errors": e.errors}) from e
    if isinstance(e, ListingNotFound):
        raise HTTPException(status_code=404, detail="Listing not found") from e
    if isinstance(e, NotListingOwner):
        raise HTTPException(status_code=403, detail="Not the owner of this listing") from e
    if isinstance(e, InvalidTransition):
        raise HTTPException(status_code=409, detail=str(e)) from e
    if isinstance(e, PaymentFailed):
        raise HTTPException(status_code=500, detail={"error": e.error}) from e
    raise e


@router.post("/listings", response_model=PaymentFlowOut)
async def create_listing(
    payload: ListingCreateIn,
    actor: Actor = Depends(get_actor),
    lifecycle: ListingLifecycle = Depends(get_lifecycle),
) -> PaymentFlowOut:
    """Store a pending listing and open the PayPal order that pays for it."""
    try:
        flow = await lifecycle.create_listing(
            owner_id=actor.owner_id,
            fields=payload.model_dump(exclude={"plan"}),
            plan=payload.plan,
            account_phone=actor.account_phone,
        )
    except (DraftInvalid, PaymentFailed) as e:
        _raise_http(e)
    return _flow_out(flow)


@router.get("/listings", response_model=list[ListingOut])
async def browse_listings(
    q: str | None = None,
    category: str | None = None,
    location: str | None = None,
    sort: SortOrder = "topRated",
    store: ListingStore = Depends(get_store),
    feedback: FeedbackStore = Depends(get_feedback_store),
) -> list[ListingOut]:
    rows = await store.list_all()
    ratings = await feedback.stats()
    visible = browse_set(rows, now=now_ms(), q=q, category=category, location=location, sort=sort, ratings=ratings)
    return [listing_out(r, ratings.get(r.id, NO_FEEDBACK)) for r in visible]


@router.get("/listings/locations", response_model=list[str])
async def list_locations(store: ListingStore = Depends(get_store)) -> list[str]:
    return browse_locations(await store.list_all(), now=now_ms())


@router.get("/listings/stream")
async def stream_listing_changes(request: Request, store: ListingStore = Depends(get_store)) -> StreamingResponse:
    """Server-sent events, one per listing write."""
    queue: asyncio.Queue[ListingChange] = asyncio.Queue(maxsize=1000)

    def _enqueue(change: ListingChange) -> None:
        try:
            queue.put_nowait(change)
        except asyncio.QueueFull:
            log.warning("listing stream queue full; dropping change for %s", change.listing_id)

    async def _events():
        unsubscribe = store.subscribe(_enqueue)
        try:
            while not await request.is_disconnected():
                try:
                    change = await asyncio.wait_for(queue.get(), timeout=15)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                body = {
                    "kind": change.kind,
                    "listingId": change.listing_id,
                    "listing": listing_out(change.listing).model_dump(mode="json", by_alias=True) if change.listing else None,
                }
                yield f"data: {json.dumps(body)}\n\n"
        finally:
            unsubscribe()

    return StreamingResponse(_events(), media_type="text/event-stream")


@router.get("/listings/{listing_id}", response_model=ListingOut)
async def get_listing(
    listing_id: str,
    store: ListingStore = Depends(get_store),
    feedback: FeedbackStore = Depends(get_feedback_store),
) -> ListingOut:
    listing = await store.get(listing_id)
    if listing is None:
        raise HTTPException(status_code=404, detail="Listing not found")
    return listing_out(listing, await feedback.stats_for(listing_id))


@router.patch("/listings/{listing_id}", response_model=ListingOut)
async def edit_listing(
    listing_id: str,
    payload: ListingEditIn,
    actor: Actor = Depends(get_actor),
    lifecycle: ListingLifecycle = Depends(get_lifecycle),
) -> ListingOut:
    try:
        listing = await lifecycle.edit_listing(
            owner_id=actor.owner_id,
            listing_id=listing_id,
            changes=payload.model_dump(exclude_unset=True),
            account_phone=actor.account_phone,
        )
    except (DraftInvalid, ListingNotFound, NotListingOwner) as e:
        _raise_http(e)
    return listing_out(listing)


@router.delete("/listings/{listing_id}")
async def delete_listing(
    listing_id: str,
    actor: Actor = Depends(get_actor),
    lifecycle: ListingLifecycle = Depends(get_lifecycle),
) -> dict:
    try:
        await lifecycle.delete_listing(owner_id=actor.owner_id, listing_id=listing_id)
    except (ListingNotFound, NotListingOwner) as e:
        _raise_http(e)
    return {"status": "deleted", "listing_id": listing_id}


@router.post("/listings/{listing_id}/extend", response_model=PaymentFlowOut)
async def extend_listing(
    listing_id: str,
    payload: ExtendIn,
    actor: Actor = Depends(get_actor),
    lifecycle: ListingLifecycle = Depends(get_lifecycle),
) -> PaymentFlowOut:
    try:
        flow = await lifecycle.start_extend(owner_id=actor.owner_id, listing_id=listing_id, plan=payload.plan)
    except (ListingNotFound, NotListingOwner, InvalidTransition, PaymentFailed) as e:
        _raise_http(e)
    return _flow_out(flow)


@router.get("/listings/{listing_id}/feedback", response_model=FeedbackListOut)
async def list_feedback(
    listing_id: str,
    store: ListingStore = Depends(get_store),
    feedback: FeedbackStore = Depends(get_feedback_store),
) -> FeedbackListOut:
    if await store.get(listing_id) is None:
        raise HTTPException(status_code=404, detail="Listing not found")
    entries = await feedback.recent(listing_id)
    stats = await feedback.stats_for(listing_id)
    return FeedbackListOut(
        entries=[feedback_entry_out(e) for e in entries],
        count=stats.count,
        average=stats.average,
    )


@router.post("/listings/{listing_id}/feedback", response_model=FeedbackEntryOut, status_code=201)
async def post_feedback(
    listing_id: str,
    payload: FeedbackIn,
    actor: Actor = Depends(get_actor),
    store: ListingStore = Depends(get_store),
    feedback: FeedbackStore = Depends(get_feedback_store),
) -> FeedbackEntryOut:
    now = now_ms()
    listing = await store.get(listing_id)
    if listing is None:
        raise HTTPException(status_code=404, detail="Listing not found")
    if not is_publicly_visible(listing, now=now):
        raise HTTPException(status_code=409, detail="Listing is not open for feedback")

    try:
        draft = prepare_feedback(payload.rating, payload.comment)
    except FeedbackInvalid as e:
        _raise_http(e)

    entry = await feedback.add(
        ListingFeedback(
            id=gen_id("fb"),
            listing_id=listing_id,
            rating=draft.rating,
            comment=draft.comment,
            created_at=now,
            user_id=actor.owner_id,
            author=actor.account_phone,
        )
    )
    return feedback_entry_out(entry)


@router.get("/me/listings", response_model=list[ListingOut])
async def my_listings(
    status: OwnerStatusFilter = Query(default="all"),
    expiry: ExpiryFilter = Query(default="all"),
    q: str | None = None,
    sort: OwnerSortOrder = Query(default="newest"),
    actor: Actor = Depends(get_actor),
    store: ListingStore = Depends(get_store),
) -> list[ListingOut]:
    rows = await store.list_by_owner(actor.owner_id)
    mine = filter_owner_listings(rows, now=now_ms(), status=status, expiry=expiry, q=q, sort=sort)
    return [listing_out(r) for r in mine]
