from __future__ import annotations

from datetime import datetime
from typing import List

from django.core.exceptions import ValidationError as DjangoValidationError

from bookings.exceptions import NotFoundError
from bookings.models import Booking
from payments.models import Payment

PAYMENT_TRANSITIONS = {
    Booking.PENDING: {Booking.DEPOSIT_PAID, Booking.PAID, Booking.FAILED},
    Booking.FAILED: {Booking.DEPOSIT_PAID, Booking.PAID},
    Booking.DEPOSIT_PAID: {Booking.PAID},
    Booking.PAID: set(),
}


def can_transition(current: str, target: str) -> bool:
    return target in PAYMENT_TRANSITIONS.get(current, set())


def load_booking(booking_id, *, for_update: bool = False) -> Booking:
    """
    Fetch a booking by id, raising NotFoundError for unknown or malformed ids.

    `for_update` takes a row lock and must be called inside transaction.atomic().
    """
    queryset = Booking.objects.select_for_update() if for_update else Booking.objects.all()
    try:
        return queryset.get(pk=booking_id)
    except (Booking.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError("Booking not found.")


def apply_deposit_paid(booking: Booking, *, at: datetime) -> List[str]:
    """Move a booking to deposit_paid; returns the fields that changed."""
    changed: List[str] = []
    if can_transition(booking.payment_status, Booking.DEPOSIT_PAID):
        booking.payment_status = Booking.DEPOSIT_PAID
        changed.append("payment_status")
    if booking.deposit_paid_at is None and booking.has_deposit_paid:
        booking.deposit_paid_at = at
        changed.append("deposit_paid_at")
    return changed


def apply_paid(booking: Booking, *, at: datetime) -> List[str]:
    """
    Move a booking to paid; returns the fields that changed.

    A final payment confirmed without a recorded deposit backfills deposit_paid_at.
    """
    changed: List[str] = []
    if can_transition(booking.payment_status, Booking.PAID):
        booking.payment_status = Booking.PAID
        changed.append("payment_status")
    if booking.payment_status == Booking.PAID:
        if booking.paid_at is None:
            booking.paid_at = at
            changed.append("paid_at")
        if booking.deposit_paid_at is None:
            booking.deposit_paid_at = at
            changed.append("deposit_paid_at")
    return changed


def apply_failed(booking: Booking, *, at: datetime, purpose: str, settled: bool = False) -> List[str]:
    """
    Record a failed charge; returns the fields that changed.

    Only an unsettled deposit leg moves the booking to failed. A failed balance
    charge, or a deposit failure whose charge has since succeeded, keeps the
    current status so a confirmed deposit is never lost.
    """
    changed: List[str] = ["last_payment_attempt"]
    booking.last_payment_attempt = at
    if purpose != Payment.PURPOSE_DEPOSIT or settled:
        return changed
    if can_transition(booking.payment_status, Booking.FAILED):
        booking.payment_status = Booking.FAILED
        changed.append("payment_status")
    return changed


def upsert_receipt(booking: Booking, key: str, url: str | None) -> bool:
    """Store a receipt URL unless one is already recorded for `key`."""
    if key not in Booking.RECEIPT_KEYS:
        raise ValueError(f"Unknown receipt key: {key}")
    if not url:
        return False
    receipts = dict(booking.payment_receipts or {})
    if receipts.get(key):
        return False
    receipts[key] = url
    booking.payment_receipts = receipts
    return True
