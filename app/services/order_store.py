"""
Persistence for enrollment orders.

Status changes only go through `transition_status`, a conditional UPDATE
keyed on the expected prior status. Of several concurrent callers exactly one
sees a row updated.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import case, func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.enrollment_order import (
    ALLOWED_TRANSITIONS, EnrollmentOrder, EnrollmentStatus, PaymentStatus
)
from app.utils.error_handler import ConflictError, DatabaseError, InvalidTransitionError

logger = logging.getLogger(__name__)


class EnrollmentOrderStore:
    """Repository for EnrollmentOrder rows"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, order: EnrollmentOrder) -> EnrollmentOrder:
        """Insert a new order; duplicate unique keys raise ConflictError"""
        try:
            self.db.add(order)
            self.db.commit()
            self.db.refresh(order)
            logger.info(f"Stored enrollment order {order.invoice_number} for gateway order {order.gateway_order_id}")
            return order
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Duplicate enrollment order for gateway order {order.gateway_order_id}: {e}")
            raise ConflictError("An order with the same gateway order, invoice number or link already exists", e)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to store enrollment order: {e}")
            raise DatabaseError(f"Failed to store enrollment order: {str(e)}", e)

    def find_by_invoice_link(self, invoice_link: str) -> Optional[EnrollmentOrder]:
        return self.db.query(EnrollmentOrder).filter(EnrollmentOrder.invoice_link == invoice_link).first()

    def find_by_gateway_order_id(self, gateway_order_id: str) -> Optional[EnrollmentOrder]:
        return self.db.query(EnrollmentOrder).filter(
            EnrollmentOrder.gateway_order_id == gateway_order_id
        ).first()

    def find_by_invoice_number(self, invoice_number: str) -> Optional[EnrollmentOrder]:
        return self.db.query(EnrollmentOrder).filter(EnrollmentOrder.invoice_number == invoice_number).first()

    def transition_status(
        self,
        gateway_order_id: str,
        expected: str,
        new: str,
        payment_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Move an order from `expected` to `new` if it is still in `expected`.

        Returns True when this call performed the transition, False when the
        order was not in the expected status (or does not exist).
        """
        if new not in ALLOWED_TRANSITIONS.get(expected, set()):
            raise InvalidTransitionError(f"Cannot move payment status from {expected} to {new}")

        now = now or datetime.utcnow()
        values = {"payment_status": new, "updated_at": now}
        if new == PaymentStatus.SUCCESS:
            # payment id and dates are only ever written once
            values.update(
                gateway_payment_id=func.coalesce(EnrollmentOrder.gateway_payment_id, payment_id),
                payment_date=func.coalesce(EnrollmentOrder.payment_date, now),
                status=EnrollmentStatus.ENROLLED,
                enrollment_date=func.coalesce(EnrollmentOrder.enrollment_date, now),
            )

        stmt = (
            update(EnrollmentOrder)
            .where(
                EnrollmentOrder.gateway_order_id == gateway_order_id,
                EnrollmentOrder.payment_status == expected,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to update status for gateway order {gateway_order_id}: {e}")
            raise DatabaseError(f"Failed to update payment status: {str(e)}", e)

        won = result.rowcount == 1
        if won:
            logger.info(f"Gateway order {gateway_order_id} moved {expected} -> {new}")
        else:
            logger.info(f"Gateway order {gateway_order_id} not in {expected}; transition to {new} skipped")
        return won

    def list_paginated(self, page: int = 1, page_size: int = 10,
                       payment_status: Optional[str] = None) -> tuple[list[EnrollmentOrder], int]:
        query = self.db.query(EnrollmentOrder)
        if payment_status:
            query = query.filter(EnrollmentOrder.payment_status == payment_status)

        total = query.count()
        offset = (page - 1) * page_size
        orders = (
            query.order_by(EnrollmentOrder.created_at.desc(), EnrollmentOrder.id.desc())
            .offset(offset)
            .limit(page_size)
            .all()
        )
        return orders, total

    def stats(self) -> dict:
        """Counts by status and revenue collected from paid orders"""
        paid = EnrollmentOrder.payment_status == PaymentStatus.SUCCESS
        row = self.db.query(
            func.count(EnrollmentOrder.id),
            func.sum(case((EnrollmentOrder.status == EnrollmentStatus.ENROLLED, 1), else_=0)),
            func.sum(case((EnrollmentOrder.status == EnrollmentStatus.COMPLETED, 1), else_=0)),
            func.sum(case((paid, 1), else_=0)),
            func.sum(case((paid, EnrollmentOrder.total), else_=0)),
            func.sum(case((paid, EnrollmentOrder.program_price), else_=0)),
            func.sum(case((paid, EnrollmentOrder.addon_price), else_=0)),
            func.sum(case((paid, EnrollmentOrder.gst_amount), else_=0)),
        ).one()

        total_orders, enrolled, completed, successful, revenue, program_revenue, addon_revenue, gst = row
        successful = successful or 0
        revenue = revenue or 0
        return {
            "total_orders": total_orders or 0,
            "enrolled_students": enrolled or 0,
            "completed_students": completed or 0,
            "successful_payments": successful,
            "total_revenue": revenue,
            "program_revenue": program_revenue or 0,
            "addon_revenue": addon_revenue or 0,
            "gst_collected": gst or 0,
            "average_order_value": round(revenue / successful, 2) if successful else 0,
        }
