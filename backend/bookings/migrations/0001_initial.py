import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Booking",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("customer_name", models.CharField(max_length=200)),
                ("customer_email", models.EmailField(db_index=True, max_length=254)),
                ("event_date", models.DateField()),
                ("hall", models.CharField(max_length=200)),
                ("package", models.CharField(max_length=200)),
                ("guests", models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ("notes", models.TextField(blank=True)),
                (
                    "total_price",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                    ),
                ),
                ("currency", models.CharField(default="usd", max_length=10)),
                (
                    "deposit_percent",
                    models.PositiveSmallIntegerField(
                        default=30,
                        validators=[
                            django.core.validators.MinValueValidator(10),
                            django.core.validators.MaxValueValidator(50),
                        ],
                    ),
                ),
                ("deposit_amount", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12)),
                (
                    "payment_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("deposit_paid", "Deposit paid"),
                            ("paid", "Paid"),
                            ("failed", "Failed"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("stripe_customer_id", models.CharField(blank=True, max_length=255)),
                ("stripe_payment_intent_id", models.CharField(blank=True, max_length=255)),
                ("stripe_final_payment_intent_id", models.CharField(blank=True, max_length=255)),
                ("payment_receipts", models.JSONField(blank=True, default=dict)),
                ("deposit_paid_at", models.DateTimeField(blank=True, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("last_payment_attempt", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["payment_status", "event_date"], name="bookings_bo_payment_5f0c1e_idx"),
                    models.Index(fields=["-created_at"], name="bookings_bo_created_9a4d2b_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Contract",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "status",
                    models.CharField(
                        choices=[("none", "None"), ("draft", "Draft"), ("sent", "Sent"), ("signed", "Signed")],
                        db_index=True,
                        default="none",
                        max_length=10,
                    ),
                ),
                ("draft_url", models.URLField(blank=True, max_length=500)),
                ("signed_url", models.URLField(blank=True, max_length=500)),
                ("signer_name", models.CharField(blank=True, max_length=200)),
                ("created_at", models.DateTimeField(blank=True, null=True)),
                ("signed_at", models.DateTimeField(blank=True, null=True)),
                ("draft_pending", models.BooleanField(default=False)),
                ("last_error", models.CharField(blank=True, max_length=500)),
                ("last_error_at", models.DateTimeField(blank=True, null=True)),
                (
                    "booking",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="contract",
                        to="bookings.booking",
                    ),
                ),
            ],
        ),
    ]
