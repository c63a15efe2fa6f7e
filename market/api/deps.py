from fastapi import Depends, Request

from market.core.config import settings
from market.gateways.base import PaymentGateway
from market.services.feedback import FeedbackStore
from market.services.lifecycle import ListingLifecycle
from market.services.listing_store import ListingStore
from market.services.sweeper import SweepScheduler


# Long-lived collaborators are built in the app lifespan and parked on app.state;
# tests swap them via dependency_overrides.

def get_store(request: Request) -> ListingStore:
    return request.app.state.store


def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.gateway


def get_sweeper(request: Request) -> SweepScheduler:
    return request.app.state.sweeper


def get_feedback_store(request: Request) -> FeedbackStore:
    return request.app.state.feedback


def get_lifecycle(
    store: ListingStore = Depends(get_store),
    gateway: PaymentGateway = Depends(get_gateway),
    sweeper: SweepScheduler = Depends(get_sweeper),
) -> ListingLifecycle:
    return ListingLifecycle(
        store=store,
        gateway=gateway,
        sweeper=sweeper,
        currency=settings.paypal_currency,
    )
