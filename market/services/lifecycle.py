"""
Listing payment lifecycle.

    pending_payment --capture--> verified --(time)--> past expiry
    pending_payment --order/capture failure, sweep--> expired

Transitions are methods on `ListingLifecycle`; the in-flight order travels as
an explicit `PaymentFlow` value instead of living in request or UI state.
Every write goes through a status guard in the store, so concurrent captures
and the sweeper can only move a listing along the arrows above.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Literal, Mapping

from market.core.ids import gen_id, now_ms
from market.gateways.base import PaymentGateway
from market.models.listing import EXPIRED, PENDING_PAYMENT, VERIFIED, Listing
from market.models.payment import ListingPayment
from market.services.drafts import payload_to_fields, prepare_listing_payload
from market.services.errors import (
    AmountMismatch,
    DraftInvalid,
    GatewayError,
    InvalidTransition,
    ListingNotFound,
    NotListingOwner,
    OrderAlreadyApplied,
    PaymentFailed,
)
from market.services.listing_store import ListingStore
from market.services.payment_outcomes import (
    ALREADY_COMPLETED,
    AlreadySucceeded,
    Captured,
    classify_capture,
    extract_captured_amount,
    order_is_completed,
    order_reference,
)
from market.services.plans import (
    extended_expiry,
    initial_expiry,
    is_known_plan,
    plan_for_amount,
    plan_price,
    resolve_plan,
)
from market.services.redaction import redact_payload
from market.services.sweeper import SweepScheduler, sweep_pending_listing


log = logging.getLogger(__name__)

CREATE_LISTING = "create_listing"
EXTEND = "extend"

PaymentAction = Literal["create_listing", "extend"]

# statuses a successful payment may land on
PAYABLE_STATUSES = (PENDING_PAYMENT, VERIFIED)

# re-reads when a concurrent write moves the listing under a capture
APPLY_ATTEMPTS = 3


@dataclass(frozen=True)
class PaymentFlow:
    listing_id: str
    action: PaymentAction
    amount: Decimal
    plan: str
    order_id: str | None = None

    def with_order(self, order_id: str) -> "PaymentFlow":
        return replace(self, order_id=order_id)


@dataclass(frozen=True)
class CaptureResult:
    status: str  # ALREADY_COMPLETED | ALREADY_CAPTURED | provider capture status
    listing: Listing


@dataclass(frozen=True)
class VerifyResult:
    ok: bool
    status: str | None


class ListingLifecycle:
    def __init__(
        self,
        *,
        store: ListingStore,
        gateway: PaymentGateway,
        sweeper: SweepScheduler,
        currency: str = "EUR",
        clock: Callable[[], int] = now_ms,
    ):
        self._store = store
        self._gateway = gateway
        self._sweeper = sweeper
        self._currency = currency
        self._clock = clock

    # ---- create ----

    async def create_listing(
        self,
        *,
        owner_id: str,
        fields: Mapping[str, Any],
        plan: str,
        account_phone: str | None = None,
    ) -> PaymentFlow:
        """
        Store a validated draft as pending_payment and open its create order.
        The sweep is scheduled once the order exists.
        """
        if not is_known_plan(plan):
            raise DraftInvalid([f"unknown plan {plan!r}"])
        draft = prepare_listing_payload(fields, account_phone=account_phone)
        if not draft.ok:
            raise DraftInvalid(draft.errors)

        now = self._clock()
        listing = Listing(
            id=gen_id("lst"),
            status=PENDING_PAYMENT,
            plan=plan,
            price=plan_price(plan),
            price_paid=Decimal("0"),
            created_at=now,
            expires_at=initial_expiry(now, plan),
            owner_id=owner_id,
            payload=draft.payload,
        )
        await self._store.put(listing)
        log.info("listing %s created pending payment (plan %s)", listing.id, plan)

        flow = PaymentFlow(listing_id=listing.id, action=CREATE_LISTING, amount=listing.price, plan=plan)
        return await self.open_order(flow)

    async def start_order(
        self,
        *,
        listing_id: str,
        amount: Decimal,
        action: PaymentAction,
        plan: str | None = None,
    ) -> PaymentFlow:
        """
        Open an order for an existing listing. The amount asserted by the
        caller must equal the price of the plan it pays for.
        """
        listing = await self._require(listing_id)
        if action == EXTEND:
            self._require_extendable(listing)
            effective_plan = resolve_plan(plan, listing.plan)
        else:
            if listing.status != PENDING_PAYMENT:
                raise InvalidTransition(listing_id, listing.status, "pay for")
            effective_plan = resolve_plan(listing.plan)

        expected = plan_price(effective_plan)
        if amount != expected:
            raise AmountMismatch(plan=effective_plan, expected=expected, got=amount)

        flow = PaymentFlow(listing_id=listing_id, action=action, amount=expected, plan=effective_plan)
        return await self.open_order(flow)

    async def open_order(self, flow: PaymentFlow) -> PaymentFlow:
        try:
            order_id = await self._gateway.create_order(
                listing_id=flow.listing_id,
                amount=flow.amount,
                currency=self._currency,
            )
        except GatewayError as e:
            log.error("order creation failed for %s: %s", flow.listing_id, redact_payload(e.detail) or e)
            await self._expire_pending(flow.listing_id)
            raise PaymentFailed(e.detail or "Failed to create PayPal order") from e
        except Exception as e:
            log.exception("create order error for %s", flow.listing_id)
            await self._expire_pending(flow.listing_id)
            raise PaymentFailed("Failed to create PayPal order") from e

        flow = flow.with_order(order_id)
        log.info("order %s opened for %s (%s, %s)", order_id, flow.listing_id, flow.action, flow.amount)
        if flow.action == CREATE_LISTING:
            await self._sweeper.schedule(flow.listing_id)
        return flow

    # ---- extend ----

    async def start_extend(self, *, owner_id: str, listing_id: str, plan: str | None = None) -> PaymentFlow:
        listing = await self._require_owned(owner_id, listing_id)
        self._require_extendable(listing)
        effective_plan = resolve_plan(plan, listing.plan)
        flow = PaymentFlow(
            listing_id=listing_id,
            action=EXTEND,
            amount=plan_price(effective_plan),
            plan=effective_plan,
        )
        return await self.open_order(flow)

    # ---- capture ----

    async def capture(
        self,
        *,
        order_id: str,
        listing_id: str,
        action: PaymentAction = CREATE_LISTING,
        plan: str | None = None,
    ) -> CaptureResult:
        """
        Finalize a payment and apply it to the listing.

        The order is read first: redirect flows may have been completed by
        PayPal already, in which case no capture call is made. Provider
        answers that mean "already done" count as success, and an order that
        was applied before is not applied again.
        """
        try:
            return await self._capture(order_id=order_id, listing_id=listing_id, action=action, plan=plan)
        except PaymentFailed:
            raise
        except Exception as e:
            log.exception("capture error for order %s listing %s", order_id, listing_id)
            await self._expire_pending(listing_id)
            raise PaymentFailed("PayPal capture failed") from e

    async def _capture(self, *, order_id: str, listing_id: str, action: PaymentAction, plan: str | None) -> CaptureResult:
        order = await self._gateway.get_order(order_id)
        self._require_order_for_listing(order, order_id=order_id, listing_id=listing_id)

        if order_is_completed(order):
            log.info("order %s already completed by PayPal", order_id)
            listing = await self._apply_payment(
                order_id=order_id,
                listing_id=listing_id,
                action=action,
                plan=plan,
                amount=extract_captured_amount(order),
            )
            return CaptureResult(status=ALREADY_COMPLETED, listing=listing)

        outcome = classify_capture(await self._gateway.capture_order(order_id))

        if isinstance(outcome, Captured):
            amount = outcome.amount
        elif isinstance(outcome, AlreadySucceeded):
            log.warning("order %s reported %s", order_id, outcome.status)
            # pricePaid stays whatever the first successful capture wrote
            amount = None
        else:
            log.error("capture failed for order %s: %s", order_id, redact_payload(outcome.payload))
            await self._expire_pending(listing_id)
            raise PaymentFailed(outcome.payload)

        listing = await self._apply_payment(
            order_id=order_id,
            listing_id=listing_id,
            action=action,
            plan=plan,
            amount=amount,
        )
        return CaptureResult(status=outcome.status, listing=listing)

    async def _apply_payment(
        self,
        *,
        order_id: str,
        listing_id: str,
        action: PaymentAction,
        plan: str | None,
        amount: Decimal | None,
    ) -> Listing:
        for _ in range(APPLY_ATTEMPTS):
            listing = await self._store.get(listing_id)
            if listing is None or listing.status not in PAYABLE_STATUSES:
                self._payment_without_listing(order_id, listing_id)

            payment, values = self._payment_values(listing, order_id=order_id, action=action, plan=plan, amount=amount)
            try:
                updated = await self._store.apply_order(
                    payment,
                    values,
                    Listing.status.in_(PAYABLE_STATUSES),
                    # expiry arithmetic was done on this snapshot
                    Listing.expires_at.is_(None) if listing.expires_at is None else Listing.expires_at == listing.expires_at,
                )
            except OrderAlreadyApplied as e:
                if e.listing_id != listing_id:
                    log.error("order %s was applied to %s, not %s", order_id, e.listing_id, listing_id)
                    raise PaymentFailed(f"order {order_id} was applied to another listing") from e
                log.info("order %s already applied to %s; nothing to do", order_id, listing_id)
                return listing

            if updated is not None:
                if listing.status == PENDING_PAYMENT:
                    await self._sweeper.cancel(listing_id)
                log.info("listing %s verified by order %s (%s, plan %s)", listing_id, order_id, action, payment.plan)
                return updated

            log.info("listing %s changed while applying order %s; retrying", listing_id, order_id)

        log.error("order %s could not be applied to %s after %d attempts", order_id, listing_id, APPLY_ATTEMPTS)
        raise PaymentFailed(f"listing {listing_id} changed while the payment was applied")

    def _payment_values(
        self,
        listing: Listing,
        *,
        order_id: str,
        action: PaymentAction,
        plan: str | None,
        amount: Decimal | None,
    ) -> tuple[ListingPayment, dict[str, Any]]:
        values: dict[str, Any] = {"status": VERIFIED, "last_order_id": order_id}
        if action == EXTEND:
            effective_plan = self._reconcile_plan(resolve_plan(plan, listing.plan), amount)
            values["expires_at"] = extended_expiry(current_expiry=listing.expires_at, now=self._clock(), plan=effective_plan)
            values["last_extend_plan"] = effective_plan
        else:
            effective_plan = listing.plan
            if amount is not None:
                values["price_paid"] = amount

        payment = ListingPayment(
            order_id=order_id,
            listing_id=listing.id,
            action=action,
            plan=effective_plan,
            amount=amount,
            applied_at=self._clock(),
        )
        return payment, values

    @staticmethod
    def _reconcile_plan(plan: str, amount: Decimal | None) -> str:
        """The captured amount decides the plan when it disagrees with the requested one."""
        if amount is None or amount == plan_price(plan):
            return plan
        paid_plan = plan_for_amount(amount)
        if paid_plan is None:
            log.warning("captured amount %s matches no plan; keeping plan %s", amount, plan)
            return plan
        log.warning("captured amount %s pays for plan %s, not requested plan %s", amount, paid_plan, plan)
        return paid_plan

    @staticmethod
    def _require_order_for_listing(order: dict[str, Any], *, order_id: str, listing_id: str) -> None:
        reference = order_reference(order)
        if reference != listing_id:
            log.error("order %s was issued for listing %s, not %s", order_id, reference, listing_id)
            raise PaymentFailed(f"order {order_id} was not issued for listing {listing_id}")

    @staticmethod
    def _payment_without_listing(order_id: str, listing_id: str):
        # money moved but there is nothing to apply it to; needs a manual refund
        log.error("order %s captured but listing %s is missing or expired", order_id, listing_id)
        raise PaymentFailed(f"listing {listing_id} is no longer awaiting payment")

    # ---- verify / sweep ----

    async def verify(self, *, order_id: str, listing_id: str) -> VerifyResult:
        order = await self._gateway.get_order(order_id)
        status = order.get("status")
        if not order_is_completed(order):
            return VerifyResult(ok=False, status=status)
        self._require_order_for_listing(order, order_id=order_id, listing_id=listing_id)

        updated = await self._store.update_where(
            listing_id,
            {"status": VERIFIED},
            Listing.status == PENDING_PAYMENT,
        )
        if updated is not None:
            await self._sweeper.cancel(listing_id)
        else:
            current = await self._store.get(listing_id)
            if current is None or current.status != VERIFIED:
                log.warning("verify: order %s completed but listing %s cannot be verified", order_id, listing_id)
        return VerifyResult(ok=True, status=status)

    async def sweep(self, listing_id: str) -> bool:
        return await sweep_pending_listing(self._store, listing_id)

    # ---- owner edits ----

    async def edit_listing(
        self,
        *,
        owner_id: str,
        listing_id: str,
        changes: Mapping[str, Any],
        account_phone: str | None = None,
    ) -> Listing:
        listing = await self._require_owned(owner_id, listing_id)
        fields = payload_to_fields(listing.payload or {})
        fields.update({k: v for k, v in changes.items() if v is not None})

        draft = prepare_listing_payload(fields, account_phone=account_phone)
        if not draft.ok:
            raise DraftInvalid(draft.errors)

        updated = await self._store.update(listing_id, payload=draft.payload)
        if updated is None:
            raise ListingNotFound(listing_id)
        return updated

    async def delete_listing(self, *, owner_id: str, listing_id: str) -> None:
        listing = await self._require_owned(owner_id, listing_id)
        if listing.status == PENDING_PAYMENT:
            await self._sweeper.cancel(listing_id)
        if not await self._store.delete(listing_id):
            raise ListingNotFound(listing_id)
        log.info("listing %s deleted by owner", listing_id)

    # helpers
    async def _require(self, listing_id: str) -> Listing:
        listing = await self._store.get(listing_id)
        if listing is None:
            raise ListingNotFound(listing_id)
        return listing

    async def _require_owned(self, owner_id: str, listing_id: str) -> Listing:
        listing = await self._require(listing_id)
        if listing.owner_id != owner_id:
            raise NotListingOwner(listing_id)
        return listing

    @staticmethod
    def _require_extendable(listing: Listing) -> None:
        if listing.status == EXPIRED:
            raise InvalidTransition(listing.id, listing.status, "extend")

    async def _expire_pending(self, listing_id: str) -> None:
        """Compensating transition after a payment failure. Best effort: errors are logged."""
        try:
            expired = await self._store.update_where(
                listing_id,
                {"status": EXPIRED},
                Listing.status == PENDING_PAYMENT,
            )
            if expired is not None:
                await self._sweeper.cancel(listing_id)
        except Exception:
            log.exception("failed to expire listing %s after payment error", listing_id)
            return
        if expired is not None:
            log.info("listing %s expired after payment failure", listing_id)
