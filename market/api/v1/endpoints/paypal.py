import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from market.api.deps import get_lifecycle
from market.schemas.common import ErrorResponse
from market.schemas.paypal import CaptureIn, CaptureOut, CreateOrderIn, CreateOrderOut, VerifyOut
from market.services.errors import (
    AmountMismatch,
    InvalidTransition,
    ListingNotFound,
    PaymentFailed,
)
from market.services.lifecycle import ListingLifecycle


log = logging.getLogger(__name__)
router = APIRouter(prefix="/paypal")

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _error(status_code: int, error, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, **extra})


@router.post("/create-order", response_model=CreateOrderOut, responses=ERROR_RESPONSES)
async def create_order(payload: CreateOrderIn, lifecycle: ListingLifecycle = Depends(get_lifecycle)):
    log.info("creating order for %s action=%s amount=%s", payload.listing_id, payload.action, payload.amount)
    if not payload.listing_id or not payload.amount:
        return _error(400, "listingId and amount required")

    try:
        flow = await lifecycle.start_order(
            listing_id=payload.listing_id,
            amount=payload.amount,
            action=payload.action,
            plan=payload.plan,
        )
    except AmountMismatch as e:
        return _error(400, str(e))
    except ListingNotFound as e:
        return _error(404, str(e))
    except InvalidTransition as e:
        return _error(409, str(e))
    except PaymentFailed as e:
        return _error(500, e.error)

    return CreateOrderOut(orderID=flow.order_id)


@router.post("/capture", response_model=CaptureOut, responses=ERROR_RESPONSES)
async def capture(payload: CaptureIn, lifecycle: ListingLifecycle = Depends(get_lifecycle)):
    log.info("capturing order %s for %s action=%s", payload.order_id, payload.listing_id, payload.action)
    if not payload.order_id or not payload.listing_id:
        return _error(400, "orderID and listingId required")

    try:
        result = await lifecycle.capture(
            order_id=payload.order_id,
            listing_id=payload.listing_id,
            action=payload.action,
            plan=payload.plan,
        )
    except PaymentFailed as e:
        return _error(500, e.error)

    return CaptureOut(status=result.status)


@router.get("/verify-order/{order_id}/{listing_id}", response_model=VerifyOut, responses=ERROR_RESPONSES)
async def verify_order(order_id: str, listing_id: str, lifecycle: ListingLifecycle = Depends(get_lifecycle)):
    try:
        result = await lifecycle.verify(order_id=order_id, listing_id=listing_id)
    except PaymentFailed as e:
        return _error(400, e.error)
    except Exception:
        log.exception("verify failed for order %s", order_id)
        return _error(500, "Verification failed")

    if not result.ok:
        return _error(400, "Order not completed", status=result.status)
    return VerifyOut()
