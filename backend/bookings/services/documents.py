from __future__ import annotations

from io import BytesIO
from typing import Any, Dict, Optional

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import Storage, default_storage
from reportlab.lib.pagesizes import LETTER
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from bookings.exceptions import UpstreamError, ValidationError

DRAFT = "draft"
SIGNED = "signed"
TEMPLATE_KINDS = (DRAFT, SIGNED)

TERMS = [
    "Deposit is non-refundable after 7 days.",
    "Final payment due 14 days before event date.",
    "Cancellation policy applies as per venue rules.",
    "Electronic signatures are legally binding (ESIGN Act, UETA).",
]

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
MARGIN_X = 54
MAX_WIDTH = 504
LINE_HEIGHT = 16


def _draw_wrapped(c: canvas.Canvas, text: str, y: float, *, font: str = FONT, size: int = 11) -> float:
    c.setFont(font, size)
    for line in simpleSplit(str(text), font, size, MAX_WIDTH):
        c.drawString(MARGIN_X, y, line)
        y -= LINE_HEIGHT
    return y


def _money(fields: Dict[str, Any], key: str) -> str:
    return f"{fields.get(key)} {str(fields.get('currency') or '').upper()}"


def render_contract_pdf(kind: str, fields: Dict[str, Any]) -> bytes:
    """
    Lay out the venue services agreement as a one-page PDF.

    `fields` comes from bookings.services.contracts.contract_fields; the signed
    variant additionally needs `signer_name`.
    """
    width, height = LETTER
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=LETTER)
    c.setTitle(f"Venue Services Agreement {fields.get('booking_id')}")

    title = "Venue Services Agreement"
    if kind == SIGNED:
        title = f"{title} (Signed)"
    c.setFont(FONT_BOLD, 18)
    c.drawCentredString(width / 2, height - 72, title)

    y = height - 110
    if kind == SIGNED:
        y = _draw_wrapped(c, f"Signed At: {fields.get('generated_at')}", y)
        y = _draw_wrapped(c, f"Signer Name: {fields.get('signer_name')}", y)
        y = _draw_wrapped(c, f"Signer Email: {fields.get('customer_email')}", y)
        y -= LINE_HEIGHT
        y = _draw_wrapped(c, "Booking Details:", y, font=FONT_BOLD)
    else:
        y = _draw_wrapped(c, f"Date: {fields.get('generated_at')}", y)
        y = _draw_wrapped(c, f"Client Name: {fields.get('customer_name')}", y)
        y = _draw_wrapped(c, f"Client Email: {fields.get('customer_email')}", y)

    y = _draw_wrapped(c, f"Booking Reference: {fields.get('booking_id')}", y)
    y = _draw_wrapped(c, f"Event Date: {fields.get('event_date')}", y)
    y = _draw_wrapped(c, f"Hall: {fields.get('hall')}", y)
    y = _draw_wrapped(c, f"Package: {fields.get('package')}", y)
    y = _draw_wrapped(c, f"Guests: {fields.get('guests')}", y)
    y = _draw_wrapped(c, f"Total Price: {_money(fields, 'total_price')}", y)
    y = _draw_wrapped(c, f"Deposit: {_money(fields, 'deposit_amount')}", y)
    y -= LINE_HEIGHT

    y = _draw_wrapped(c, "Terms & Conditions:", y, font=FONT_BOLD)
    for term in TERMS:
        y = _draw_wrapped(c, f"• {term}", y)
    y -= LINE_HEIGHT

    if kind == SIGNED:
        _draw_wrapped(c, "By signing electronically, the client agrees to the Terms & Conditions.", y)
    else:
        _draw_wrapped(c, "Signature: _____________________________  Date: ____________", y)

    c.showPage()
    c.save()
    return buf.getvalue()


class ContractRenderer:
    """Renders contract PDFs and stores them, returning a public URL."""

    def __init__(
        self,
        *,
        storage: Optional[Storage] = None,
        base_url: Optional[str] = None,
        upload_dir: Optional[str] = None,
    ):
        self.storage = storage or default_storage
        self.base_url = (base_url or settings.PUBLIC_BASE_URL).rstrip("/")
        self.upload_dir = (upload_dir or settings.CONTRACTS_UPLOAD_DIR).strip("/")

    def render(self, kind: str, fields: Dict[str, Any]) -> str:
        if kind not in TEMPLATE_KINDS:
            raise ValidationError(f"Unknown contract template: {kind}")
        pdf = render_contract_pdf(kind, fields)
        name = f"{self.upload_dir}/contract_{fields['booking_id']}_{kind}.pdf"
        try:
            stored_name = self.storage.save(name, ContentFile(pdf))
        except OSError as exc:
            raise UpstreamError(f"Could not store contract document: {exc}")
        return self._absolute_url(self.storage.url(stored_name))

    def _absolute_url(self, url: str) -> str:
        if url.startswith(("http://", "https://")):
            return url
        return f"{self.base_url}/{url.lstrip('/')}"
