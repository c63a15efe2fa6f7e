import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from market.api.v1.router import router as api_router
from market.core.config import settings
from market.core.db import SessionLocal
from market.core.telemetry import setup_logging, setup_telemetry
from market.gateways.paypal import PayPalGateway
from market.services.feedback import FeedbackStore
from market.services.listing_store import ListingStore
from market.services.sweeper import InProcessSweepScheduler


log = logging.getLogger(__name__)


def build_sweeper(store: ListingStore):
    if settings.sweeper_backend == "celery":
        # imported lazily so the API process does not need a broker otherwise
        from worker.scheduling import CelerySweepScheduler

        return CelerySweepScheduler(delay_seconds=settings.sweep_delay_seconds)
    return InProcessSweepScheduler(store, delay_seconds=settings.sweep_delay_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = ListingStore(SessionLocal)
    app.state.store = store
    app.state.feedback = FeedbackStore(SessionLocal)
    app.state.gateway = PayPalGateway.from_settings(settings)
    app.state.sweeper = build_sweeper(store)
    log.info("market api started (paypal=%s, sweeper=%s)", settings.paypal_environment, settings.sweeper_backend)
    try:
        yield
    finally:
        await app.state.sweeper.aclose()
        await app.state.gateway.aclose()


setup_logging()

app = FastAPI(title="Local Support Market API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_telemetry(app)
app.include_router(api_router)
