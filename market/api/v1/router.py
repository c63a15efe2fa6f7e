from fastapi import APIRouter

from market.api.v1.endpoints.health import router as health_router
from market.api.v1.endpoints.listings import router as listings_router
from market.api.v1.endpoints.paypal import router as paypal_router


router = APIRouter(prefix="/api")
router.include_router(health_router, tags=["health"])
router.include_router(paypal_router, tags=["paypal"])
router.include_router(listings_router, tags=["listings"])
