from datetime import date, timedelta
from decimal import Decimal

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone

from bookings.models import Booking
from bookings.services import state
from bookings.services.contracts import ContractManager
from bookings.services.payments import PaymentOrchestrator, StubPaymentGateway
from payments.models import Payment

SUPERUSER_USERNAME = "admin"
SUPERUSER_EMAIL = "admin@grandhall.test"
SUPERUSER_PASSWORD = "AdminVenue123!"
SEED_EMAIL_DOMAIN = "example.test"

User = get_user_model()


class Command(BaseCommand):
    help = "Populate the local development database with sample bookings."

    def handle(self, *args, **options):
        if not settings.DEBUG:
            raise CommandError("Refusing to seed data while DEBUG is False.")

        orchestrator = PaymentOrchestrator(StubPaymentGateway(base_url=settings.PUBLIC_BASE_URL))
        contracts = ContractManager()
        today = date.today()

        with transaction.atomic():
            self.stdout.write(self.style.MIGRATE_HEADING("Ensuring admin superuser"))
            self._ensure_superuser()

            self.stdout.write(self.style.MIGRATE_HEADING("Cleaning old sample bookings"))
            Booking.objects.filter(customer_email__endswith=f"@{SEED_EMAIL_DOMAIN}").delete()

            self.stdout.write(self.style.MIGRATE_HEADING("Creating bookings"))
            orchestrator.initiate_deposit(
                customer_name="Priya Pending",
                customer_email=f"priya@{SEED_EMAIL_DOMAIN}",
                event_date=today + timedelta(days=90),
                hall="Grand Hall",
                package="Gold",
                guests=120,
                notes="Awaiting deposit.",
                total_price=Decimal("5000.00"),
                deposit_percent=30,
            )
            deposit_checkout = orchestrator.initiate_deposit(
                customer_name="Dario Deposit",
                customer_email=f"dario@{SEED_EMAIL_DOMAIN}",
                event_date=today + timedelta(days=45),
                hall="Garden Pavilion",
                package="Silver",
                guests=60,
                total_price=Decimal("2500.00"),
                deposit_percent=20,
            )
            paid_checkout = orchestrator.initiate_deposit(
                customer_name="Fiona Final",
                customer_email=f"fiona@{SEED_EMAIL_DOMAIN}",
                event_date=today + timedelta(days=14),
                hall="Grand Hall",
                package="Platinum",
                guests=200,
                total_price=Decimal("12000.00"),
                deposit_percent=50,
            )

            self.stdout.write(self.style.MIGRATE_HEADING("Confirming payments"))
            deposit_booking = self._confirm(deposit_checkout.booking, Booking.RECEIPT_DEPOSIT)
            contracts.create_draft(deposit_booking, explicit=False)

            paid_booking = self._confirm(paid_checkout.booking, Booking.RECEIPT_DEPOSIT)
            contracts.create_draft(paid_booking, explicit=False)
            contracts.sign(paid_booking, "Fiona Final")
            final_checkout = orchestrator.initiate_final_payment(paid_booking.pk)
            self._confirm(final_checkout.booking, Booking.RECEIPT_FINAL)

        self.stdout.write(self.style.SUCCESS("Development seed data created."))
        self.stdout.write(self.style.NOTICE(f"Admin superuser {SUPERUSER_USERNAME} password: {SUPERUSER_PASSWORD}"))

    def _confirm(self, booking: Booking, receipt_key: str) -> Booking:
        now = timezone.now()
        if receipt_key == Booking.RECEIPT_DEPOSIT:
            changed = state.apply_deposit_paid(booking, at=now)
            intent = booking.stripe_payment_intent_id
        else:
            changed = state.apply_paid(booking, at=now)
            intent = booking.stripe_final_payment_intent_id or booking.stripe_payment_intent_id
        receipt = f"{settings.PUBLIC_BASE_URL.rstrip('/')}/payments/receipts/{intent}"
        if state.upsert_receipt(booking, receipt_key, receipt):
            changed.append("payment_receipts")
        booking.save(update_fields=changed + ["updated_at"])
        Payment.objects.filter(stripe_payment_intent=intent).update(
            status=Payment.STATUS_SUCCEEDED, receipt_url=receipt
        )
        self.stdout.write(self.style.NOTICE(f"{booking.customer_name}: {booking.payment_status}"))
        return booking

    def _ensure_superuser(self):
        user, created = User.objects.get_or_create(
            username=SUPERUSER_USERNAME,
            defaults={
                "email": SUPERUSER_EMAIL,
                "is_staff": True,
                "is_superuser": True,
            },
        )
        flag_updates = {}
        if not user.is_staff:
            flag_updates["is_staff"] = True
        if not user.is_superuser:
            flag_updates["is_superuser"] = True
        if flag_updates:
            for attr, value in flag_updates.items():
                setattr(user, attr, value)
            user.save(update_fields=list(flag_updates.keys()))
        if created or not user.has_usable_password():
            user.set_password(SUPERUSER_PASSWORD)
            user.save(update_fields=["password"])
        return user
