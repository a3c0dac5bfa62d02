from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from typing import Any, Dict, Optional
from uuid import uuid4

import stripe
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from bookings.exceptions import (
    AuthenticationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from bookings.models import Booking
from bookings.pricing import (
    MAX_DEPOSIT_PERCENT,
    MIN_DEPOSIT_PERCENT,
    calculate_deposit_amount,
    to_decimal,
    to_minor_units,
)
from bookings.services.state import load_booking, upsert_receipt
from payments.models import Payment

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("bookings.security")


@dataclass
class PaymentRequest:
    """The subset of a Stripe PaymentIntent the booking flow consumes."""

    id: str
    client_secret: str
    status: str = Payment.STATUS_REQUIRES_PAYMENT


class PaymentGateway:
    """
    Boundary to the payment processor.

    Webhook verification is local HMAC work and shared by every implementation;
    subclasses provide the calls that reach Stripe.
    """

    def create_customer(self, *, email: str, name: str, metadata: Dict[str, str]) -> str:
        raise NotImplementedError

    def create_payment_request(
        self,
        *,
        amount_cents: int,
        currency: str,
        customer_id: str,
        metadata: Dict[str, str],
        purpose: str,
        idempotency_key: Optional[str] = None,
    ) -> PaymentRequest:
        raise NotImplementedError

    def retrieve_receipt_url(self, payment_intent_id: str) -> Optional[str]:
        raise NotImplementedError

    def verify_and_parse_webhook(
        self,
        raw_body: bytes,
        signature: Optional[str],
        secret: Optional[str],
        *,
        tolerance: Optional[int] = None,
    ) -> Dict[str, Any]:
        if not secret:
            security_logger.error("Stripe webhook secret is not configured.")
            raise AuthenticationError("Webhook secret not configured.")
        if not signature:
            security_logger.warning("Stripe webhook received without a signature header.")
            raise AuthenticationError("No signature found.")

        try:
            payload = raw_body.decode("utf-8") if isinstance(raw_body, bytes) else raw_body
            stripe.WebhookSignature.verify_header(payload, signature, secret, tolerance)
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as exc:
            security_logger.warning("Stripe webhook signature verification failed: %s", exc)
            raise AuthenticationError(f"Webhook Error: {exc}")

        try:
            event = json.loads(payload)
        except ValueError:
            logger.warning("Signed Stripe webhook carried an unparseable payload; ignoring it.")
            return {}
        if not isinstance(event, dict):
            logger.warning("Signed Stripe webhook payload is not an object; ignoring it.")
            return {}
        return event


class StubPaymentGateway(PaymentGateway):
    """
    Gateway used when STRIPE_USE_STUB is set or no secret key is configured.

    Returns `cus_test_` customer ids, `pi_test_` PaymentIntent handles with a
    matching client secret, and receipt URLs under PUBLIC_BASE_URL.
    """

    def __init__(self, *, base_url: str):
        self.base_url = base_url.rstrip("/")

    def create_customer(self, *, email: str, name: str, metadata: Dict[str, str]) -> str:
        return f"cus_test_{uuid4().hex}"

    def create_payment_request(
        self,
        *,
        amount_cents: int,
        currency: str,
        customer_id: str,
        metadata: Dict[str, str],
        purpose: str,
        idempotency_key: Optional[str] = None,
    ) -> PaymentRequest:
        intent_id = f"pi_test_{uuid4().hex}"
        return PaymentRequest(id=intent_id, client_secret=f"{intent_id}_secret_{uuid4().hex[:12]}")

    def retrieve_receipt_url(self, payment_intent_id: str) -> Optional[str]:
        return f"{self.base_url}/payments/receipts/{payment_intent_id}"


class StripePaymentGateway(PaymentGateway):
    def __init__(self, client: stripe.StripeClient):
        self.client = client

    def create_customer(self, *, email: str, name: str, metadata: Dict[str, str]) -> str:
        try:
            customer = self.client.customers.create(
                params={"email": email, "name": name, "metadata": metadata}
            )
        except stripe.StripeError as exc:
            logger.exception("Stripe customer creation failed for %s", email)
            raise UpstreamError(f"Payment processor error: {exc.user_message or exc}")
        return customer.id

    def create_payment_request(
        self,
        *,
        amount_cents: int,
        currency: str,
        customer_id: str,
        metadata: Dict[str, str],
        purpose: str,
        idempotency_key: Optional[str] = None,
    ) -> PaymentRequest:
        options = {"idempotency_key": idempotency_key} if idempotency_key else {}
        try:
            intent = self.client.payment_intents.create(
                params={
                    "amount": amount_cents,
                    "currency": currency,
                    "customer": customer_id,
                    "metadata": metadata,
                    "description": f"Venue booking {purpose.replace('_', ' ')}",
                    "automatic_payment_methods": {"enabled": True},
                },
                options=options,
            )
        except stripe.StripeError as exc:
            logger.exception("Stripe PaymentIntent creation failed (%s)", purpose)
            raise UpstreamError(f"Payment processor error: {exc.user_message or exc}")
        return PaymentRequest(id=intent.id, client_secret=intent.client_secret, status=intent.status)

    def retrieve_receipt_url(self, payment_intent_id: str) -> Optional[str]:
        try:
            intent = self.client.payment_intents.retrieve(
                payment_intent_id, params={"expand": ["latest_charge"]}
            )
        except stripe.StripeError:
            logger.exception("Stripe PaymentIntent %s lookup failed", payment_intent_id)
            raise UpstreamError("Failed to retrieve payment information from Stripe.")
        charge = getattr(intent, "latest_charge", None)
        if not charge or isinstance(charge, str):
            return None
        return getattr(charge, "receipt_url", None) or None


def _get_stripe_api_key() -> Optional[str]:
    key = getattr(settings, "STRIPE_SECRET_KEY", "")
    return key or None


def _should_use_stub() -> bool:
    if getattr(settings, "STRIPE_USE_STUB", False):
        return True
    return _get_stripe_api_key() is None


def build_stripe_client(api_key: str) -> stripe.StripeClient:
    return stripe.StripeClient(
        api_key,
        http_client=stripe.RequestsClient(timeout=settings.STRIPE_TIMEOUT_SECONDS),
        max_network_retries=settings.STRIPE_MAX_NETWORK_RETRIES,
    )


def build_payment_gateway() -> PaymentGateway:
    if _should_use_stub():
        return StubPaymentGateway(base_url=settings.PUBLIC_BASE_URL)
    return StripePaymentGateway(build_stripe_client(_get_stripe_api_key()))


@lru_cache(maxsize=1)
def get_payment_gateway() -> PaymentGateway:
    """Process-wide gateway built from settings on first use."""
    return build_payment_gateway()


@dataclass
class DepositCheckout:
    booking: Booking
    payment_intent_id: str
    client_secret: str
    deposit_amount: Decimal


@dataclass
class FinalPaymentCheckout:
    booking: Booking
    payment_intent_id: str
    client_secret: str
    amount: Decimal
    currency: str


class PaymentOrchestrator:
    """Creates the deposit and balance payment requests for bookings."""

    def __init__(self, gateway: PaymentGateway):
        self.gateway = gateway

    def _create_customer(self, booking: Booking) -> str:
        return self.gateway.create_customer(
            email=booking.customer_email,
            name=booking.customer_name,
            metadata={"booking_id": str(booking.pk)},
        )

    @staticmethod
    def _clean_deposit_percent(value) -> int:
        if value is None or value == "":
            return settings.BOOKING_DEFAULT_DEPOSIT_PERCENT
        try:
            percent = int(value)
        except (TypeError, ValueError):
            raise ValidationError("Invalid deposit_percent.")
        if not MIN_DEPOSIT_PERCENT <= percent <= MAX_DEPOSIT_PERCENT:
            raise ValidationError(
                f"deposit_percent must be between {MIN_DEPOSIT_PERCENT} and {MAX_DEPOSIT_PERCENT}."
            )
        return percent

    def initiate_deposit(
        self,
        *,
        total_price,
        deposit_percent=None,
        currency: Optional[str] = None,
        **booking_fields,
    ) -> DepositCheckout:
        """
        Persist a pending booking and open its deposit PaymentIntent.

        The booking row, Stripe references and payment record commit together;
        a Stripe failure rolls the booking back so nothing references a
        payment request that was never created.
        """
        total = to_decimal(total_price)
        if total is None or total <= 0:
            raise ValidationError("Invalid total_price.")
        percent = self._clean_deposit_percent(deposit_percent)
        currency = (currency or settings.BOOKING_DEFAULT_CURRENCY).lower()
        deposit_amount = calculate_deposit_amount(total, percent)
        if deposit_amount <= 0:
            raise ValidationError("Deposit amount rounds to zero; increase total_price or deposit_percent.")

        now = timezone.now()
        with transaction.atomic():
            booking = Booking.objects.create(
                total_price=total,
                deposit_percent=percent,
                deposit_amount=deposit_amount,
                currency=currency,
                payment_status=Booking.PENDING,
                last_payment_attempt=now,
                **booking_fields,
            )
            customer_id = self._create_customer(booking)
            amount_cents = to_minor_units(deposit_amount)
            request = self.gateway.create_payment_request(
                amount_cents=amount_cents,
                currency=currency,
                customer_id=customer_id,
                metadata={"booking_id": str(booking.pk), "purpose": Payment.PURPOSE_DEPOSIT},
                purpose=Payment.PURPOSE_DEPOSIT,
                idempotency_key=f"booking-{booking.pk}-deposit",
            )
            booking.stripe_customer_id = customer_id
            booking.stripe_payment_intent_id = request.id
            booking.save(update_fields=["stripe_customer_id", "stripe_payment_intent_id", "updated_at"])
            Payment.objects.create(
                booking=booking,
                purpose=Payment.PURPOSE_DEPOSIT,
                amount_cents=amount_cents,
                currency=currency,
                stripe_payment_intent=request.id,
                status=request.status,
            )

        logger.info(
            "Booking %s created with deposit %s %s (%s%% of %s)",
            booking.pk,
            deposit_amount,
            currency,
            percent,
            total,
        )
        return DepositCheckout(
            booking=booking,
            payment_intent_id=request.id,
            client_secret=request.client_secret,
            deposit_amount=deposit_amount,
        )

    def initiate_final_payment(self, booking_id) -> FinalPaymentCheckout:
        booking = load_booking(booking_id)

        if booking.payment_status == Booking.PAID:
            raise InvalidStateError("Booking is already fully paid.")
        if booking.payment_status != Booking.DEPOSIT_PAID:
            raise InvalidStateError("Deposit must be paid before creating final payment.")

        remaining = booking.remaining_amount
        if remaining <= 0:
            raise InvalidStateError("No remaining balance to pay.")

        if not booking.stripe_customer_id:
            customer_id = self._create_customer(booking)
            claimed = Booking.objects.filter(pk=booking.pk, stripe_customer_id="").update(
                stripe_customer_id=customer_id, updated_at=timezone.now()
            )
            if claimed:
                booking.stripe_customer_id = customer_id
            else:
                booking.refresh_from_db(fields=["stripe_customer_id"])

        amount_cents = to_minor_units(remaining)
        request = self.gateway.create_payment_request(
            amount_cents=amount_cents,
            currency=booking.currency,
            customer_id=booking.stripe_customer_id,
            metadata={
                "booking_id": str(booking.pk),
                "purpose": Payment.PURPOSE_FINAL,
                "deposit_amount": str(booking.deposit_amount),
                "total_price": str(booking.total_price),
            },
            purpose=Payment.PURPOSE_FINAL,
        )

        now = timezone.now()
        with transaction.atomic():
            recorded = Booking.objects.filter(pk=booking.pk, payment_status=Booking.DEPOSIT_PAID).update(
                stripe_final_payment_intent_id=request.id,
                last_payment_attempt=now,
                updated_at=now,
            )
            if not recorded:
                logger.warning(
                    "Booking %s left deposit_paid while final PaymentIntent %s was created",
                    booking.pk,
                    request.id,
                )
                raise ConflictError("Booking payment state changed; reload the booking and retry.")
            Payment.objects.create(
                booking=booking,
                purpose=Payment.PURPOSE_FINAL,
                amount_cents=amount_cents,
                currency=booking.currency,
                stripe_payment_intent=request.id,
                status=request.status,
            )

        booking.stripe_final_payment_intent_id = request.id
        booking.last_payment_attempt = now
        logger.info("Final PaymentIntent %s created for booking %s (%s)", request.id, booking.pk, remaining)
        return FinalPaymentCheckout(
            booking=booking,
            payment_intent_id=request.id,
            client_secret=request.client_secret,
            amount=remaining,
            currency=booking.currency,
        )

    def refresh_receipts(self, booking_id) -> Dict[str, str]:
        """Backfill receipt URLs from Stripe for payments already confirmed."""
        booking = load_booking(booking_id)
        receipts = booking.payment_receipts or {}

        targets = []
        if booking.payment_status == Booking.DEPOSIT_PAID:
            targets.append((Booking.RECEIPT_DEPOSIT, booking.stripe_payment_intent_id))
        elif booking.payment_status == Booking.PAID:
            if not receipts.get(Booking.RECEIPT_DEPOSIT):
                targets.append((Booking.RECEIPT_DEPOSIT, booking.stripe_payment_intent_id))
            targets.append((Booking.RECEIPT_FINAL, booking.stripe_final_payment_intent_id))
        targets = [(key, intent_id) for key, intent_id in targets if intent_id]
        if not targets:
            raise InvalidStateError("No Stripe payment intent found for this booking.")

        found = {}
        for key, intent_id in targets:
            url = self.gateway.retrieve_receipt_url(intent_id)
            if url:
                found[key] = url
        if not found:
            raise NotFoundError("No receipt URL found for this payment.")

        with transaction.atomic():
            locked = load_booking(booking.pk, for_update=True)
            changed = False
            for key, url in found.items():
                changed = upsert_receipt(locked, key, url) or changed
            if changed:
                locked.save(update_fields=["payment_receipts", "updated_at"])
                logger.info("Receipts backfilled for booking %s: %s", locked.pk, sorted(found))
        return locked.payment_receipts
