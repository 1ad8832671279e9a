"""
Payment endpoints: gateway order creation and checkout verification
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from datetime import datetime
import logging

from app.config import Settings, get_settings
from app.schemas.payment import (
    AddonLine, CreateOrderRequest, CreateOrderResponse, PricingResponse,
    VerifyPaymentRequest, VerifyPaymentResponse
)
from app.services.email_service import EmailDispatcher, get_email_dispatcher
from app.services.invoice_service import build_invoice_view
from app.services.payment_service import PaymentService, get_payment_service
from app.utils.rate_limit import limiter

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/create-order", response_model=CreateOrderResponse, status_code=201)
@limiter.limit("20/minute")
async def create_order(
    request: Request,
    payload: CreateOrderRequest,
    service: PaymentService = Depends(get_payment_service),
):
    """Price a selection, open a gateway order and store the enrollment"""
    created = await service.create_order(payload)
    order, pricing = created.order, created.pricing

    return CreateOrderResponse(
        order_id=created.gateway_order.id,
        amount=created.gateway_order.amount,
        currency=created.gateway_order.currency,
        receipt=order.receipt,
        student_id=order.student_id,
        invoice_number=order.invoice_number,
        invoice_link=order.invoice_link,
        invoice_url=created.invoice_url,
        pricing=PricingResponse(
            program_unit_price=pricing.program_unit_price,
            program_price=pricing.program_price,
            addon_price=pricing.addon_price,
            subtotal=pricing.subtotal,
            gst_rate=order.gst_rate,
            gst_amount=order.gst_amount,
            total=pricing.total,
            duration=pricing.duration,
            addons=[AddonLine(id=a.id, name=a.name, price=a.price) for a in pricing.addons],
        ),
        timestamp=datetime.utcnow(),
    )


@router.post("/verify", response_model=VerifyPaymentResponse)
@limiter.limit("30/minute")
async def verify_payment(
    request: Request,
    payload: VerifyPaymentRequest,
    background_tasks: BackgroundTasks,
    service: PaymentService = Depends(get_payment_service),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
    settings: Settings = Depends(get_settings),
):
    """Confirm a checkout callback; the invoice email goes out once per order"""
    result = await service.verify_payment(
        payload.razorpay_order_id, payload.razorpay_payment_id, payload.razorpay_signature
    )
    order = result.order

    if result.newly_confirmed:
        invoice = build_invoice_view(order, settings.invoice_url(order.invoice_link))
        background_tasks.add_task(dispatcher.send_invoice, order.email, invoice)
        logger.info(f"Queued invoice email for {order.invoice_number}")

    return VerifyPaymentResponse(
        message="Payment verified successfully",
        payment_id=order.gateway_payment_id,
        order_id=order.gateway_order_id,
        invoice_link=order.invoice_link,
        student_id=order.student_id,
        enrollment_status=order.status,
        timestamp=datetime.utcnow(),
    )
