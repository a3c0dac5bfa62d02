from django.core.management.base import BaseCommand

from bookings.models import Contract
from bookings.services.contracts import ContractManager


class Command(BaseCommand):
    help = "Retry contract drafts owed to bookings whose deposit was confirmed."

    def add_arguments(self, parser):
        parser.add_argument(
            "--limit",
            type=int,
            default=100,
            help="Maximum number of contracts to retry in one run.",
        )

    def handle(self, *args, **options):
        pending = (
            Contract.objects.filter(draft_pending=True, status=Contract.NONE)
            .select_related("booking")
            .order_by("last_error_at")[: options["limit"]]
        )
        manager = ContractManager()

        drafted = failed = 0
        for contract in pending:
            if manager.draft_or_record_failure(contract.booking):
                drafted += 1
                self.stdout.write(self.style.NOTICE(f"Drafted contract for booking {contract.booking_id}"))
            else:
                failed += 1
                self.stdout.write(self.style.WARNING(f"Draft still failing for booking {contract.booking_id}"))

        self.stdout.write(self.style.SUCCESS(f"Contract drafts retried: {drafted} drafted, {failed} failed."))
