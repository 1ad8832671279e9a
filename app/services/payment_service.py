"""
Payment lifecycle for enrollment orders.

create_order prices the selection, opens a gateway order and stores the
enrollment in PROCESSING. verify_payment checks the checkout signature and
moves the order to SUCCESS exactly once; callers use `newly_confirmed` to
decide whether to send the invoice email.
"""

import logging
import random
import secrets
import string
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fastapi import Depends
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.database import get_db
from app.models.enrollment_order import EnrollmentOrder, PaymentStatus
from app.schemas.payment import CreateOrderRequest
from app.services.catalog import ProductCatalog, get_catalog
from app.services.order_store import EnrollmentOrderStore
from app.services.pricing import PricingBreakdown, calculate_pricing, split_inclusive
from app.services.razorpay_client import GatewayOrder, RazorpayClient, get_gateway_client, to_minor_units
from app.utils.dates import parse_date_of_birth, validate_age
from app.utils.error_handler import (
    AppError, ConflictError, NotFoundError, SignatureMismatchError, ValidationError
)

logger = logging.getLogger(__name__)
reconciliation_logger = logging.getLogger("app.reconciliation")

INVOICE_PREFIX = "SRT/INT"
BASE36 = string.digits + string.ascii_lowercase


def generate_invoice_number(now: Optional[datetime] = None) -> str:
    now = now or datetime.utcnow()
    return f"{INVOICE_PREFIX}/{now.strftime('%Y%m%d')}/{random.randint(100000, 999999)}"


def generate_invoice_link() -> str:
    return str(uuid.uuid4())


def generate_student_id() -> str:
    suffix = "".join(secrets.choice(BASE36) for _ in range(5))
    return f"STU_{int(time.time() * 1000)}_{suffix}"


def _mask(value: Optional[str]) -> str:
    if not value:
        return "<empty>"
    return f"{value[:8]}..."


@dataclass
class CreatedOrder:
    order: EnrollmentOrder
    gateway_order: GatewayOrder
    pricing: PricingBreakdown
    invoice_url: str


@dataclass
class VerificationResult:
    order: EnrollmentOrder
    newly_confirmed: bool


class PaymentService:
    """Creates and confirms enrollment payments"""

    def __init__(self, db: Session, catalog: ProductCatalog, gateway: RazorpayClient, settings: Settings):
        self.store = EnrollmentOrderStore(db)
        self.catalog = catalog
        self.gateway = gateway
        self.settings = settings

    async def create_order(self, request: CreateOrderRequest) -> CreatedOrder:
        package, applicant = request.package_data, request.student_data
        if package is None or applicant is None:
            raise ValidationError("Package data and student data are required")

        if not package.type or not package.product_id:
            raise ValidationError("Product type and selected product are required")

        pricing = calculate_pricing(
            self.catalog,
            package.type,
            package.product_id,
            package.selected_addon,
            package.selected_months if package.selected_months is not None else 1,
        )

        date_of_birth = parse_date_of_birth(applicant.date_of_birth)
        validate_age(date_of_birth)

        if not applicant.agreed_to_terms or not applicant.certified_information:
            raise ValidationError("You must agree to the terms and certify your information")

        receipt = request.receipt or f"receipt_{int(time.time() * 1000)}"
        amount_minor = to_minor_units(pricing.total)

        gateway_order = await run_in_threadpool(
            self.gateway.create_order, amount_minor, self.settings.currency, receipt
        )

        _, gst_amount = split_inclusive(pricing.subtotal, self.settings.gst_rate)
        applicant_fields = applicant.model_dump(exclude={"date_of_birth"})

        order = EnrollmentOrder(
            student_id=generate_student_id(),
            invoice_number=generate_invoice_number(),
            invoice_link=generate_invoice_link(),
            date_of_birth=date_of_birth,
            program_type=package.type,
            selected_program=pricing.product.id,
            program_name=pricing.product.name,
            program_duration=pricing.duration,
            selected_addons=pricing.addon_ids,
            selected_addon_names=pricing.addon_names or None,
            addons_data=[{"id": a.id, "name": a.name, "price": a.price} for a in pricing.addons],
            program_unit_price=pricing.program_unit_price,
            program_price=pricing.program_price,
            addon_price=pricing.addon_price,
            subtotal=pricing.subtotal,
            gst_rate=self.settings.gst_rate,
            gst_amount=gst_amount,
            total=pricing.total,
            currency=self.settings.currency,
            payment_status=PaymentStatus.PROCESSING,
            gateway_order_id=gateway_order.id,
            receipt=receipt,
            **applicant_fields,
        )

        try:
            order = self.store.create(order)
        except AppError:
            reconciliation_logger.error(
                f"Orphaned gateway order {gateway_order.id}: receipt={receipt} "
                f"amount={amount_minor} {self.settings.currency} invoice={order.invoice_number}"
            )
            raise

        logger.info(
            f"Created enrollment order {order.invoice_number} for {order.program_name} "
            f"(gateway order {gateway_order.id}, total {order.total} {order.currency})"
        )
        return CreatedOrder(
            order=order,
            gateway_order=gateway_order,
            pricing=pricing,
            invoice_url=self.settings.invoice_url(order.invoice_link),
        )

    async def verify_payment(self, order_id: Optional[str], payment_id: Optional[str],
                             signature: Optional[str]) -> VerificationResult:
        if not order_id or not payment_id or not signature:
            raise ValidationError("razorpay_order_id, razorpay_payment_id and razorpay_signature are required")

        if not self.gateway.verify_signature(order_id, payment_id, signature):
            logger.warning(f"Signature mismatch for gateway order {order_id} (signature {_mask(signature)})")
            raise SignatureMismatchError("Invalid signature")

        order = self.store.find_by_gateway_order_id(order_id)
        if order is None:
            raise NotFoundError("Order not found")

        if order.payment_status == PaymentStatus.SUCCESS:
            logger.info(f"Gateway order {order_id} already verified; skipping")
            return VerificationResult(order=order, newly_confirmed=False)

        won = self.store.transition_status(
            order_id, PaymentStatus.PROCESSING, PaymentStatus.SUCCESS, payment_id=payment_id
        )
        self.store.db.refresh(order)

        if not won and order.payment_status != PaymentStatus.SUCCESS:
            raise ConflictError(f"Order cannot be verified in status {order.payment_status}")

        if won:
            logger.info(f"Payment {payment_id} confirmed for {order.invoice_number}")
        return VerificationResult(order=order, newly_confirmed=won)


def get_payment_service(
    db: Session = Depends(get_db),
    catalog: ProductCatalog = Depends(get_catalog),
    gateway: RazorpayClient = Depends(get_gateway_client),
    settings: Settings = Depends(get_settings),
) -> PaymentService:
    return PaymentService(db, catalog, gateway, settings)
