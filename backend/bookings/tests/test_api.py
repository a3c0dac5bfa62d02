import hashlib
import hmac
import json
import time
from datetime import date
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from bookings import api
from bookings.models import Booking, Contract
from bookings.services.payments import PaymentRequest, StubPaymentGateway

User = get_user_model()


class SequentialGateway(StubPaymentGateway):
    """Stub gateway with stable ids so assertions can name them."""

    def __init__(self):
        super().__init__(base_url="https://venues.test")
        self.counter = 0

    def create_customer(self, *, email, name, metadata):
        return "cus_seq"

    def create_payment_request(self, **kwargs):
        self.counter += 1
        return PaymentRequest(id=f"pi_seq_{self.counter}", client_secret=f"pi_seq_{self.counter}_secret")

    def retrieve_receipt_url(self, payment_intent_id):
        return f"https://pay.stripe.test/receipts/{payment_intent_id}"


@pytest.fixture
def gateway(monkeypatch):
    gateway = SequentialGateway()
    monkeypatch.setattr(api, "get_payment_gateway", lambda: gateway)
    return gateway


@pytest.fixture
def client():
    return APIClient()


@pytest.fixture
def admin_client(db):
    user = User.objects.create_user(username="admin", email="admin@example.test", password="password123", is_staff=True)
    client = APIClient()
    client.force_authenticate(user)
    return client


def booking_payload(**overrides):
    payload = {
        "customer_name": "Ada Client",
        "customer_email": "Ada@Example.test",
        "event_date": "2030-06-01",
        "hall": "Grand Hall",
        "package": "Gold",
        "guests": 80,
        "total_price": "1000.00",
        "deposit_percent": 30,
    }
    payload.update(overrides)
    return payload


def make_booking(**overrides):
    fields = {
        "customer_name": "Ada Client",
        "customer_email": "ada@example.test",
        "event_date": date(2030, 6, 1),
        "hall": "Grand Hall",
        "package": "Gold",
        "guests": 80,
        "total_price": Decimal("1000.00"),
        "deposit_percent": 30,
        "deposit_amount": Decimal("300.00"),
    }
    fields.update(overrides)
    return Booking.objects.create(**fields)


def send_webhook(client, event_id, booking_id, purpose, intent, receipt_url):
    payload = json.dumps(
        {
            "id": event_id,
            "type": "charge.succeeded",
            "data": {
                "object": {
                    "payment_intent": intent,
                    "receipt_url": receipt_url,
                    "metadata": {"booking_id": str(booking_id), "purpose": purpose},
                }
            },
        }
    )
    timestamp = int(time.time())
    digest = hmac.new(b"whsec_test", f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return client.post(
        "/api/stripe/webhook/",
        data=payload,
        content_type="application/json",
        HTTP_STRIPE_SIGNATURE=f"t={timestamp},v1={digest}",
    )


@pytest.mark.django_db
def test_create_booking(client, gateway):
    response = client.post("/api/bookings/", booking_payload(), format="json")

    assert response.status_code == 201
    assert response.data["payment_intent_id"] == "pi_seq_1"
    assert response.data["client_secret"] == "pi_seq_1_secret"
    assert response.data["deposit_amount"] == "300.00"
    booking = Booking.objects.get(pk=response.data["booking_id"])
    assert booking.customer_email == "ada@example.test"
    assert booking.payment_status == Booking.PENDING


@pytest.mark.django_db
@pytest.mark.parametrize(
    "overrides",
    [{"total_price": "0"}, {"total_price": "-5"}, {"deposit_percent": 60}, {"guests": 0}, {"customer_email": "nope"}],
)
def test_create_booking_validation(client, gateway, overrides):
    response = client.post("/api/bookings/", booking_payload(**overrides), format="json")

    assert response.status_code == 400
    assert not Booking.objects.exists()
    assert gateway.counter == 0


@pytest.mark.django_db
def test_my_bookings_filters_by_email(client):
    mine = make_booking()
    make_booking(customer_email="other@example.test")

    response = client.get("/api/bookings/me/", {"email": "ADA@example.test"})

    assert response.status_code == 200
    assert [row["id"] for row in response.data] == [str(mine.pk)]
    assert response.data[0]["contract"]["status"] == Contract.NONE
    assert response.data[0]["remaining_amount"] == "700.00"


@pytest.mark.django_db
def test_my_bookings_requires_email(client):
    response = client.get("/api/bookings/me/")
    assert response.status_code == 400


@pytest.mark.django_db
def test_admin_list_requires_staff(client):
    response = client.get("/api/bookings/admin/")
    assert response.status_code in (401, 403)


@pytest.mark.django_db
def test_admin_list_filters(admin_client):
    june = make_booking(event_date=date(2030, 6, 1), hall="Grand Hall")
    make_booking(event_date=date(2030, 9, 1), hall="Grand Hall")
    paid = make_booking(event_date=date(2030, 6, 15), hall="Garden", payment_status=Booking.PAID)

    response = admin_client.get("/api/bookings/admin/", {"from": "2030-05-01", "to": "2030-06-30"})
    assert {row["id"] for row in response.data} == {str(june.pk), str(paid.pk)}

    response = admin_client.get("/api/bookings/admin/", {"status": "paid"})
    assert [row["id"] for row in response.data] == [str(paid.pk)]

    response = admin_client.get("/api/bookings/admin/", {"hall": "Grand Hall", "ordering": "event_date"})
    assert [row["event_date"] for row in response.data] == ["2030-06-01", "2030-09-01"]


@pytest.mark.django_db
def test_contract_endpoints_require_staff(client):
    booking = make_booking()
    assert client.post("/api/bookings/contract/draft/", {"booking_id": str(booking.pk)}, format="json").status_code in (401, 403)
    assert client.post(
        "/api/bookings/contract/sign/", {"booking_id": str(booking.pk), "signer_name": "Ada"}, format="json"
    ).status_code in (401, 403)


@pytest.mark.django_db
def test_admin_draft_and_sign(admin_client, client):
    booking = make_booking()

    response = admin_client.post("/api/bookings/contract/draft/", {"booking_id": str(booking.pk)}, format="json")
    assert response.status_code == 201
    assert response.data["contract"]["status"] == "draft"
    assert response.data["contract_url"].endswith(f"contract_{booking.pk}_draft.pdf")

    response = admin_client.post("/api/bookings/contract/draft/", {"booking_id": str(booking.pk)}, format="json")
    assert response.status_code == 400

    response = admin_client.post(
        "/api/bookings/contract/sign/", {"booking_id": str(booking.pk), "signer_name": "Ada Client"}, format="json"
    )
    assert response.status_code == 200
    assert response.data["contract"]["status"] == "signed"
    assert response.data["signed_url"].endswith(f"contract_{booking.pk}_signed.pdf")

    response = client.get(f"/api/bookings/contract/{booking.pk}/")
    assert response.status_code == 200
    assert response.data["contract"]["signer_name"] == "Ada Client"


@pytest.mark.django_db
def test_sign_without_draft(admin_client):
    booking = make_booking()
    response = admin_client.post(
        "/api/bookings/contract/sign/", {"booking_id": str(booking.pk), "signer_name": "Ada"}, format="json"
    )
    assert response.status_code == 400


@pytest.mark.django_db
def test_sign_requires_signer_name(admin_client):
    booking = make_booking()
    response = admin_client.post("/api/bookings/contract/sign/", {"booking_id": str(booking.pk)}, format="json")
    assert response.status_code == 400


@pytest.mark.django_db
def test_unknown_booking_returns_not_found(admin_client, client):
    missing = "6b1c8d0e-0000-4000-8000-000000000000"
    assert client.get(f"/api/bookings/contract/{missing}/").status_code == 404
    assert client.get(f"/api/bookings/{missing}/receipts/").status_code == 404
    response = admin_client.post("/api/bookings/contract/draft/", {"booking_id": missing}, format="json")
    assert response.status_code == 404


@pytest.mark.django_db
def test_receipts_get_and_backfill(admin_client, client, gateway):
    booking = make_booking(payment_status=Booking.DEPOSIT_PAID, stripe_payment_intent_id="pi_dep")

    response = client.get(f"/api/bookings/{booking.pk}/receipts/")
    assert response.status_code == 200
    assert response.data["payment_receipts"] == {}

    assert client.put(f"/api/bookings/{booking.pk}/receipts/").status_code in (401, 403)

    response = admin_client.put(f"/api/bookings/{booking.pk}/receipts/")
    assert response.status_code == 200
    assert response.data["payment_receipts"] == {"deposit": "https://pay.stripe.test/receipts/pi_dep"}


@pytest.mark.django_db
def test_final_payment_before_deposit(client, gateway):
    booking = make_booking()
    response = client.post("/api/bookings/final-payment/", {"booking_id": str(booking.pk)}, format="json")
    assert response.status_code == 400
    assert "Deposit must be paid" in str(response.data["detail"])


@pytest.mark.django_db
def test_final_payment_missing_booking_id(client, gateway):
    response = client.post("/api/bookings/final-payment/", {}, format="json")
    assert response.status_code == 400


@pytest.mark.django_db
def test_full_booking_lifecycle(client, admin_client, gateway):
    response = client.post("/api/bookings/", booking_payload(), format="json")
    booking_id = response.data["booking_id"]
    assert response.data["deposit_amount"] == "300.00"

    response = send_webhook(client, "evt_dep", booking_id, "deposit", "pi_seq_1", "https://pay.stripe.test/R1")
    assert response.status_code == 200
    status = client.get(f"/api/bookings/contract/{booking_id}/").data
    assert status["payment_status"] == "deposit_paid"
    assert status["payment_receipts"] == {"deposit": "https://pay.stripe.test/R1"}
    assert status["contract"]["status"] == "draft"

    response = client.post("/api/bookings/final-payment/", {"booking_id": booking_id}, format="json")
    assert response.status_code == 201
    assert response.data["amount"] == "700.00"
    assert response.data["payment_intent_id"] == "pi_seq_2"

    response = send_webhook(client, "evt_final", booking_id, "final_payment", "pi_seq_2", "https://pay.stripe.test/R2")
    assert response.status_code == 200
    assert response.data["payment_status"] == "paid"

    receipts = client.get(f"/api/bookings/{booking_id}/receipts/").data
    assert receipts["payment_status"] == "paid"
    assert receipts["payment_receipts"] == {
        "deposit": "https://pay.stripe.test/R1",
        "final": "https://pay.stripe.test/R2",
    }

    response = client.post("/api/bookings/final-payment/", {"booking_id": booking_id}, format="json")
    assert response.status_code == 400
    assert "already fully paid" in str(response.data["detail"])

    response = admin_client.post(
        "/api/bookings/contract/sign/", {"booking_id": booking_id, "signer_name": "Ada Client"}, format="json"
    )
    assert response.status_code == 200
    assert response.data["contract"]["status"] == "signed"
