from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from django.utils import timezone

from bookings.exceptions import ConflictError, InvalidStateError, ValidationError
from bookings.models import Booking, Contract
from bookings.services import documents

logger = logging.getLogger(__name__)


def contract_fields(booking: Booking, *, signer_name: Optional[str] = None) -> Dict[str, Any]:
    fields = {
        "booking_id": str(booking.pk),
        "customer_name": booking.customer_name,
        "customer_email": booking.customer_email,
        "event_date": f"{booking.event_date:%Y-%m-%d}",
        "hall": booking.hall,
        "package": booking.package,
        "guests": booking.guests,
        "total_price": booking.total_price,
        "deposit_amount": booking.deposit_amount,
        "currency": booking.currency,
        "generated_at": f"{timezone.now():%Y-%m-%d %H:%M}",
    }
    if signer_name is not None:
        fields["signer_name"] = signer_name
    return fields


class ContractManager:
    """
    Drives the contract sub-record: none -> draft -> signed.

    Documents are rendered before any row is touched, and every status change is a
    compare-and-set on the current contract status.
    """

    def __init__(self, renderer: Optional[documents.ContractRenderer] = None):
        self.renderer = renderer or documents.ContractRenderer()

    @staticmethod
    def _contract_for(booking: Booking) -> Contract:
        contract, _ = Contract.objects.get_or_create(booking=booking)
        return contract

    def create_draft(self, booking: Booking, *, explicit: bool = True) -> Optional[str]:
        """
        Render and attach a draft contract, returning its URL.

        The admin path (`explicit=True`) rejects bookings that already have a
        draft; the webhook path returns None instead.
        """
        contract = self._contract_for(booking)
        if contract.status != Contract.NONE:
            if explicit:
                raise InvalidStateError("Draft contract already exists.")
            Contract.objects.filter(pk=contract.pk, draft_pending=True).update(draft_pending=False)
            return None

        url = self.renderer.render(documents.DRAFT, contract_fields(booking))
        updated = Contract.objects.filter(pk=contract.pk, status=Contract.NONE).update(
            status=Contract.DRAFT,
            draft_url=url,
            created_at=timezone.now(),
            draft_pending=False,
            last_error="",
            last_error_at=None,
        )
        if not updated:
            if explicit:
                raise InvalidStateError("Draft contract already exists.")
            return None

        logger.info("Draft contract created for booking %s", booking.pk)
        return url

    def sign(self, booking: Booking, signer_name: str) -> Contract:
        name = (signer_name or "").strip()
        if not name:
            raise ValidationError("signer_name is required.")

        contract = self._contract_for(booking)
        if contract.status not in Contract.SIGNABLE_STATUSES:
            raise InvalidStateError("No draft contract found. Create draft first.")
        if contract.status == Contract.SIGNED:
            logger.warning("Re-signing contract for booking %s (previous signer %s)", booking.pk, contract.signer_name)

        url = self.renderer.render(documents.SIGNED, contract_fields(booking, signer_name=name))
        updated = Contract.objects.filter(pk=contract.pk, status__in=Contract.SIGNABLE_STATUSES).update(
            status=Contract.SIGNED,
            signed_url=url,
            signer_name=name,
            signed_at=timezone.now(),
        )
        if not updated:
            raise ConflictError("Contract changed while signing; reload and retry.")

        logger.info("Contract signed for booking %s by %s", booking.pk, name)
        contract.refresh_from_db()
        return contract

    def draft_or_record_failure(self, booking: Booking) -> Optional[str]:
        """
        Automatic draft after a confirmed deposit. The payment transition is
        already committed, so failures are recorded on the contract for a later
        retry instead of propagating.
        """
        try:
            return self.create_draft(booking, explicit=False)
        except Exception as exc:
            logger.exception("Failed to auto-create contract for booking %s", booking.pk)
            self.record_draft_failure(booking, exc)
            return None

    def record_draft_failure(self, booking: Booking, exc: Exception) -> None:
        Contract.objects.filter(booking=booking, status=Contract.NONE).update(
            draft_pending=True,
            last_error=str(exc)[:500],
            last_error_at=timezone.now(),
        )

    def status_snapshot(self, booking: Booking) -> Dict[str, Any]:
        contract = self._contract_for(booking)
        return {
            "booking_id": booking.pk,
            "payment_status": booking.payment_status,
            "payment_receipts": dict(booking.payment_receipts or {}),
            "contract": contract,
        }
