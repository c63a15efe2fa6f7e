from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field


Action = Literal["create_listing", "extend"]


class CreateOrderIn(BaseModel):
    listing_id: str | None = Field(default=None, alias="listingId")
    amount: Decimal | None = None
    action: Action = "create_listing"
    # plan being paid for; only read for "extend"
    plan: str | None = None


class CreateOrderOut(BaseModel):
    orderID: str


class CaptureIn(BaseModel):
    order_id: str | None = Field(default=None, alias="orderID")
    listing_id: str | None = Field(default=None, alias="listingId")
    action: Action = "create_listing"
    # plan chosen in the extend dialog
    plan: str | None = None


class CaptureOut(BaseModel):
    ok: bool = True
    status: str


class VerifyOut(BaseModel):
    ok: bool = True
