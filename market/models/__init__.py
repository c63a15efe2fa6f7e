from market.models.base import Base  # noqa: F401

from market.models.listing import Listing  # noqa: F401
from market.models.payment import ListingPayment  # noqa: F401
from market.models.feedback import ListingFeedback  # noqa: F401
