"""
Invoice views for paid enrollment orders.

Amounts on the order are GST-inclusive. The exclusive subtotal is the program
price and the add-on total each backed out once, then summed. Individual
lines carry their own split for display.
"""

import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.database import get_db
from app.models.enrollment_order import EnrollmentOrder, PaymentStatus
from app.schemas.invoice import InvoiceDetails, InvoiceLine, InvoiceStudent, InvoiceView
from app.services.order_store import EnrollmentOrderStore
from app.services.pricing import split_inclusive
from app.utils.error_handler import NotFoundError

logger = logging.getLogger(__name__)


def _line(kind: str, item_id: str, description: str, amount: int, gst_rate: float) -> InvoiceLine:
    exclusive, gst = split_inclusive(amount, gst_rate)
    return InvoiceLine(
        kind=kind,
        item_id=item_id,
        description=description,
        amount=amount,
        exclusive_amount=exclusive,
        gst_amount=gst,
    )


def build_invoice_view(order: EnrollmentOrder, invoice_url: str) -> InvoiceView:
    program_description = order.program_name
    if order.program_unit_price != order.program_price:
        program_description = f"{order.program_name} ({order.program_duration} months)"

    program_exclusive, _ = split_inclusive(order.program_price, order.gst_rate)
    addon_exclusive, addon_gst = split_inclusive(order.addon_price, order.gst_rate)

    lines = [_line("program", order.selected_program, program_description, order.program_price, order.gst_rate)]
    for addon in order.addons_data or []:
        lines.append(_line("addon", addon["id"], addon["name"], int(addon["price"]), order.gst_rate))

    invoice = InvoiceDetails(
        invoice_number=order.invoice_number,
        invoice_link=order.invoice_link,
        invoice_url=invoice_url,
        invoice_date=order.payment_date,
        order_id=order.gateway_order_id,
        payment_id=order.gateway_payment_id,
        payment_status=order.payment_status,
        currency=order.currency,
        program_type=order.program_type,
        program_name=order.program_name,
        duration=order.program_duration,
        program_unit_price=order.program_unit_price,
        program_price=order.program_price,
        addon_price=order.addon_price,
        subtotal=order.subtotal,
        gst_rate=order.gst_rate,
        gst_amount=order.gst_amount,
        total=order.total,
        addon_exclusive_amount=addon_exclusive,
        addon_gst_amount=addon_gst,
        exclusive_subtotal=program_exclusive + addon_exclusive,
        lines=lines,
    )
    student = InvoiceStudent(
        student_id=order.student_id,
        full_name=order.full_name,
        email=order.email,
        primary_phone=order.primary_phone,
        residential_address=order.residential_address,
        city=order.city,
        state=order.state,
        zip_code=order.zip_code,
        country=order.country,
        enrollment_status=order.status,
        enrollment_date=order.enrollment_date,
    )
    return InvoiceView(invoice=invoice, student=student)


class InvoiceService:
    def __init__(self, db: Session, settings: Settings):
        self.store = EnrollmentOrderStore(db)
        self.settings = settings

    def get_invoice(self, invoice_link: str) -> InvoiceView:
        """Invoice for a paid order; unknown links and unpaid orders are both not found"""
        order = self.store.find_by_invoice_link(invoice_link)
        if order is None or order.payment_status != PaymentStatus.SUCCESS:
            logger.info(f"Invoice lookup miss for link {invoice_link[:8]}...")
            raise NotFoundError("Invoice not found")
        return build_invoice_view(order, self.settings.invoice_url(order.invoice_link))


def get_invoice_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> InvoiceService:
    return InvoiceService(db, settings)
