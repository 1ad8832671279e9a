"""
Admin views over enrollment orders
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Optional
import logging
import math

from app.auth.auth_handler import admin_required
from app.database import get_db
from app.models.enrollment_order import PaymentStatus
from app.schemas.enrollment import EnrollmentListResponse, EnrollmentStats, EnrollmentSummary
from app.services.order_store import EnrollmentOrderStore
from app.utils.error_handler import ValidationError
from app.utils.rate_limit import limiter

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/enrollments", response_model=EnrollmentListResponse)
@limiter.limit("30/minute")
async def list_enrollments(
    request: Request,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(10, ge=1, le=100, description="Items per page"),
    payment_status: Optional[str] = Query(None, description="Filter by payment status"),
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Paginated enrollment orders, newest first"""
    if payment_status:
        payment_status = payment_status.upper()
        if payment_status not in PaymentStatus.ALL:
            raise ValidationError(f"payment_status must be one of: {', '.join(PaymentStatus.ALL)}")

    orders, total = EnrollmentOrderStore(db).list_paginated(page, page_size, payment_status)
    return EnrollmentListResponse(
        enrollments=[EnrollmentSummary.model_validate(order) for order in orders],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size) if total else 0,
    )


@router.get("/enrollments/stats", response_model=EnrollmentStats)
@limiter.limit("30/minute")
async def enrollment_stats(
    request: Request,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Order counts and revenue from paid orders"""
    stats = EnrollmentOrderStore(db).stats()
    logger.info(f"Admin {current_user['username']} requested enrollment stats")
    return EnrollmentStats(**stats)
