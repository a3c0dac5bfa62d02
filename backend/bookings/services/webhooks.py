"""Stripe webhook reconciliation for booking payments.

`WebhookReconciler.handle` is called by the webhook view with the raw request
body. It is responsible for:
- verifying the Stripe signature
- deduplicating redelivered events by Stripe event id
- applying deposit/final/failed charges to the booking under a row lock
- drafting the contract once a deposit is confirmed, outside that lock
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from django.db import transaction
from django.utils import timezone

from bookings.models import Booking, Contract
from bookings.services import state
from bookings.services.contracts import ContractManager
from bookings.services.payments import PaymentGateway
from payments.models import Payment, WebhookEvent

logger = logging.getLogger(__name__)

CHARGE_SUCCEEDED = "charge.succeeded"
CHARGE_FAILED = "charge.failed"
HANDLED_EVENT_TYPES = {CHARGE_SUCCEEDED, CHARGE_FAILED}


@dataclass
class WebhookResult:
    processed: bool = False
    duplicate: bool = False
    reason: str = ""
    booking_id: Optional[str] = None
    payment_status: Optional[str] = None

    def as_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"received": True, "processed": self.processed}
        if self.duplicate:
            body["duplicate"] = True
        if self.reason:
            body["reason"] = self.reason
        if self.booking_id:
            body["booking_id"] = self.booking_id
            body["payment_status"] = self.payment_status
        return body


class WebhookReconciler:
    def __init__(
        self,
        *,
        gateway: PaymentGateway,
        webhook_secret: Optional[str],
        contracts: Optional[ContractManager] = None,
        tolerance: Optional[int] = None,
    ):
        self.gateway = gateway
        self.webhook_secret = webhook_secret
        self.contracts = contracts or ContractManager()
        self.tolerance = tolerance

    def handle(self, raw_body: bytes, signature: Optional[str]) -> WebhookResult:
        event = self.gateway.verify_and_parse_webhook(
            raw_body, signature, self.webhook_secret, tolerance=self.tolerance
        )
        event_type = event.get("type")
        logger.info("Stripe webhook verified: %s %s", event_type, event.get("id"))

        if not event:
            return WebhookResult(reason="invalid_payload")
        if event_type not in HANDLED_EVENT_TYPES:
            return WebhookResult(reason="ignored_event_type")

        charge = (event.get("data") or {}).get("object") or {}
        metadata = charge.get("metadata") or {}
        booking_id = metadata.get("booking_id")
        purpose = metadata.get("purpose")
        payment_intent = charge.get("payment_intent") or ""

        log_entry, seen = self._record_event(event, payment_intent)
        if seen:
            logger.info("Stripe event %s already processed; acknowledging", event.get("id"))
            return WebhookResult(duplicate=True, reason="duplicate_event")

        if not booking_id or not purpose:
            logger.info("Stripe %s without booking metadata; nothing to apply", event_type)
            self._finish(log_entry, None, WebhookEvent.OUTCOME_IGNORED, "missing_metadata")
            return WebhookResult(reason="missing_metadata")

        if event_type == CHARGE_FAILED:
            booking = self._apply_failure(booking_id, purpose, payment_intent)
        elif purpose == Payment.PURPOSE_DEPOSIT:
            booking = self._apply_deposit(booking_id, payment_intent, charge.get("receipt_url"))
        else:
            booking = self._apply_final(booking_id, payment_intent, charge.get("receipt_url"))

        self._finish(log_entry, booking, WebhookEvent.OUTCOME_APPLIED, "")
        return WebhookResult(
            processed=True,
            booking_id=str(booking.pk),
            payment_status=booking.payment_status,
        )

    def _record_event(self, event: Dict[str, Any], payment_intent: str) -> Tuple[Optional[WebhookEvent], bool]:
        event_id = event.get("id")
        if not event_id:
            return None, False
        entry, created = WebhookEvent.objects.get_or_create(
            event_id=event_id,
            defaults={"event_type": event.get("type") or "", "payment_intent": payment_intent},
        )
        return entry, (not created and entry.is_processed)

    @staticmethod
    def _finish(entry: Optional[WebhookEvent], booking: Optional[Booking], outcome: str, reason: str) -> None:
        if entry is None:
            return
        entry.booking = booking
        entry.outcome = outcome
        entry.reason = reason
        entry.processed_at = timezone.now()
        entry.save(update_fields=["booking", "outcome", "reason", "processed_at"])

    @staticmethod
    def _mark_payment(payment_intent: str, status: str, receipt_url: Optional[str] = None) -> None:
        if not payment_intent:
            return
        updates: Dict[str, Any] = {"status": status, "updated_at": timezone.now()}
        if receipt_url:
            updates["receipt_url"] = receipt_url
        Payment.objects.filter(stripe_payment_intent=payment_intent).exclude(
            status=Payment.STATUS_SUCCEEDED
        ).update(**updates)

    def _apply_deposit(self, booking_id, payment_intent: str, receipt_url: Optional[str]) -> Booking:
        with transaction.atomic():
            booking = state.load_booking(booking_id, for_update=True)
            changed = state.apply_deposit_paid(booking, at=timezone.now())
            if state.upsert_receipt(booking, Booking.RECEIPT_DEPOSIT, receipt_url):
                changed.append("payment_receipts")
            else:
                logger.info("No new deposit receipt for booking %s", booking.pk)
            if changed:
                booking.save(update_fields=changed + ["updated_at"])

            contract, _ = Contract.objects.select_for_update().get_or_create(booking=booking)
            needs_draft = contract.status == Contract.NONE
            if needs_draft and not contract.draft_pending:
                contract.draft_pending = True
                contract.save(update_fields=["draft_pending"])
            self._mark_payment(payment_intent, Payment.STATUS_SUCCEEDED, receipt_url)

        logger.info("Deposit confirmed for booking %s (status %s)", booking.pk, booking.payment_status)
        if needs_draft:
            self.contracts.draft_or_record_failure(booking)
        return booking

    def _apply_final(self, booking_id, payment_intent: str, receipt_url: Optional[str]) -> Booking:
        with transaction.atomic():
            booking = state.load_booking(booking_id, for_update=True)
            previous = booking.payment_status
            changed = state.apply_paid(booking, at=timezone.now())
            if state.upsert_receipt(booking, Booking.RECEIPT_FINAL, receipt_url):
                changed.append("payment_receipts")
            if changed:
                booking.save(update_fields=changed + ["updated_at"])
            self._mark_payment(payment_intent, Payment.STATUS_SUCCEEDED, receipt_url)

        if previous != Booking.DEPOSIT_PAID and previous != Booking.PAID:
            logger.warning("Booking %s went from %s straight to paid", booking.pk, previous)
        logger.info("Final payment confirmed for booking %s", booking.pk)
        return booking

    def _apply_failure(self, booking_id, purpose: str, payment_intent: str) -> Booking:
        with transaction.atomic():
            booking = state.load_booking(booking_id, for_update=True)
            settled = bool(payment_intent) and Payment.objects.filter(
                stripe_payment_intent=payment_intent, status=Payment.STATUS_SUCCEEDED
            ).exists()
            changed = state.apply_failed(booking, at=timezone.now(), purpose=purpose, settled=settled)
            booking.save(update_fields=changed + ["updated_at"])
            self._mark_payment(payment_intent, Payment.STATUS_FAILED)

        if settled:
            logger.info("Stale %s failure for booking %s; charge already succeeded", purpose, booking.pk)
        else:
            logger.warning(
                "%s payment failed for booking %s (status %s)", purpose, booking.pk, booking.payment_status
            )
        return booking
