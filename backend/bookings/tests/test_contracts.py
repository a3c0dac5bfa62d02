from datetime import date
from decimal import Decimal

import pytest
from django.core.files.storage import FileSystemStorage

from bookings.exceptions import InvalidStateError, ValidationError
from bookings.models import Booking, Contract
from bookings.services import documents
from bookings.services.contracts import ContractManager, contract_fields


class RecordingRenderer:
    def __init__(self):
        self.calls = []

    def render(self, kind, fields):
        self.calls.append((kind, fields))
        return f"https://files.test/{fields['booking_id']}/{kind}.pdf"


@pytest.fixture
def booking(db):
    return Booking.objects.create(
        customer_name="Ada Client",
        customer_email="ada@example.test",
        event_date=date(2030, 6, 1),
        hall="Grand Hall",
        package="Gold",
        guests=80,
        total_price=Decimal("1000.00"),
        deposit_percent=30,
        deposit_amount=Decimal("300.00"),
    )


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def manager(renderer):
    return ContractManager(renderer=renderer)


@pytest.mark.django_db
def test_create_draft(manager, renderer, booking):
    url = manager.create_draft(booking)

    assert url == f"https://files.test/{booking.pk}/draft.pdf"
    contract = Contract.objects.get(booking=booking)
    assert contract.status == Contract.DRAFT
    assert contract.draft_url == url
    assert contract.created_at is not None
    kind, fields = renderer.calls[0]
    assert kind == documents.DRAFT
    assert fields["customer_name"] == "Ada Client"
    assert fields["event_date"] == "2030-06-01"


@pytest.mark.django_db
def test_explicit_draft_twice_is_rejected(manager, renderer, booking):
    manager.create_draft(booking)

    with pytest.raises(InvalidStateError, match="already exists"):
        manager.create_draft(booking)
    assert len(renderer.calls) == 1


@pytest.mark.django_db
def test_automatic_draft_is_noop_when_drafted(manager, renderer, booking):
    manager.create_draft(booking)
    Contract.objects.filter(booking=booking).update(draft_pending=True)

    assert manager.create_draft(booking, explicit=False) is None
    assert len(renderer.calls) == 1
    assert not Contract.objects.get(booking=booking).draft_pending


@pytest.mark.django_db
def test_sign_requires_draft(manager, booking):
    with pytest.raises(InvalidStateError, match="Create draft first"):
        manager.sign(booking, "Ada Client")


@pytest.mark.django_db
def test_sign_requires_name(manager, booking):
    manager.create_draft(booking)
    with pytest.raises(ValidationError):
        manager.sign(booking, "   ")


@pytest.mark.django_db
def test_sign_draft(manager, renderer, booking):
    manager.create_draft(booking)

    contract = manager.sign(booking, "  Ada Client ")

    assert contract.status == Contract.SIGNED
    assert contract.signer_name == "Ada Client"
    assert contract.signed_url == f"https://files.test/{booking.pk}/signed.pdf"
    assert contract.signed_at is not None
    kind, fields = renderer.calls[-1]
    assert kind == documents.SIGNED
    assert fields["signer_name"] == "Ada Client"


@pytest.mark.django_db
def test_resigning_replaces_signer(manager, booking):
    manager.create_draft(booking)
    manager.sign(booking, "Ada Client")

    contract = manager.sign(booking, "Bea Partner")

    assert contract.status == Contract.SIGNED
    assert contract.signer_name == "Bea Partner"


@pytest.mark.django_db
def test_record_draft_failure(manager, booking):
    manager.record_draft_failure(booking, RuntimeError("storage offline"))

    contract = Contract.objects.get(booking=booking)
    assert contract.draft_pending
    assert contract.last_error == "storage offline"


@pytest.mark.django_db
def test_status_snapshot(manager, booking):
    snapshot = manager.status_snapshot(booking)

    assert snapshot["booking_id"] == booking.pk
    assert snapshot["payment_status"] == Booking.PENDING
    assert snapshot["payment_receipts"] == {}
    assert snapshot["contract"].status == Contract.NONE


@pytest.mark.django_db
def test_contract_fields_include_money(booking):
    fields = contract_fields(booking, signer_name="Ada")
    assert fields["total_price"] == Decimal("1000.00")
    assert fields["deposit_amount"] == Decimal("300.00")
    assert fields["signer_name"] == "Ada"


@pytest.mark.parametrize("kind", [documents.DRAFT, documents.SIGNED])
def test_render_contract_pdf(kind):
    pdf = documents.render_contract_pdf(
        kind,
        {
            "booking_id": "b-1",
            "customer_name": "Ada Client",
            "customer_email": "ada@example.test",
            "event_date": "2030-06-01",
            "hall": "Grand Hall",
            "package": "Gold",
            "guests": 80,
            "total_price": Decimal("1000.00"),
            "deposit_amount": Decimal("300.00"),
            "currency": "usd",
            "generated_at": "2030-01-01 10:00",
            "signer_name": "Ada Client",
        },
    )
    assert pdf.startswith(b"%PDF")


@pytest.mark.django_db
def test_renderer_stores_pdf(tmp_path, booking):
    storage = FileSystemStorage(location=tmp_path, base_url="/media/")
    renderer = documents.ContractRenderer(storage=storage, base_url="https://venues.test/", upload_dir="contracts")

    url = renderer.render(documents.DRAFT, contract_fields(booking))

    assert url == f"https://venues.test/media/contracts/contract_{booking.pk}_draft.pdf"
    assert (tmp_path / "contracts" / f"contract_{booking.pk}_draft.pdf").read_bytes().startswith(b"%PDF")


def test_renderer_rejects_unknown_template(tmp_path):
    renderer = documents.ContractRenderer(
        storage=FileSystemStorage(location=tmp_path), base_url="https://venues.test", upload_dir="contracts"
    )
    with pytest.raises(ValidationError):
        renderer.render("invoice", {"booking_id": "b-1"})


class FailingRenderer:
    def render(self, kind, fields):
        raise OSError("bucket unavailable")


@pytest.mark.django_db
def test_draft_or_record_failure(booking):
    assert ContractManager(renderer=FailingRenderer()).draft_or_record_failure(booking) is None
    contract = Contract.objects.get(booking=booking)
    assert contract.status == Contract.NONE
    assert contract.draft_pending
    assert contract.last_error == "bucket unavailable"

    url = ContractManager(renderer=RecordingRenderer()).draft_or_record_failure(booking)
    contract.refresh_from_db()
    assert url == contract.draft_url
    assert contract.status == Contract.DRAFT
    assert not contract.draft_pending
    assert contract.last_error == ""
