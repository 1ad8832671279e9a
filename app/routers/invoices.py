"""
Public invoice endpoints keyed by invoice link
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Request
import logging

from app.schemas.invoice import InvoiceView, SendInvoiceRequest, SendInvoiceResponse
from app.services.email_service import EmailDispatcher, get_email_dispatcher
from app.services.invoice_service import InvoiceService, get_invoice_service
from app.utils.error_handler import ValidationError
from app.utils.rate_limit import limiter

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/send", response_model=SendInvoiceResponse)
@limiter.limit("5/minute")
async def send_invoice(
    request: Request,
    payload: SendInvoiceRequest,
    background_tasks: BackgroundTasks,
    service: InvoiceService = Depends(get_invoice_service),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
):
    """Queue an invoice email for a paid order"""
    if not payload.student_email or not payload.invoice_link:
        raise ValidationError("Student email and invoice link are required")

    invoice = service.get_invoice(payload.invoice_link)
    background_tasks.add_task(dispatcher.send_invoice, payload.student_email, invoice)
    logger.info(f"Queued invoice email for {invoice.invoice.invoice_number}")

    return SendInvoiceResponse(message="Invoice email queued")


@router.get("/{invoice_link}", response_model=InvoiceView)
@limiter.limit("60/minute")
async def get_invoice(
    request: Request,
    invoice_link: str,
    service: InvoiceService = Depends(get_invoice_service),
):
    """Invoice for a paid order"""
    return service.get_invoice(invoice_link)
