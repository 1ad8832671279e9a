"""
Pydantic schemas for the admin enrollment views
"""

from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime


class EnrollmentSummary(BaseModel):
    """One enrollment order as listed to staff"""
    id: int
    student_id: str
    invoice_number: str
    invoice_link: str
    full_name: str
    email: str
    primary_phone: str
    program_type: str
    program_name: str
    program_duration: int
    selected_addons: List[str]
    subtotal: int
    gst_amount: int
    total: int
    currency: str
    payment_status: str
    gateway_order_id: str
    gateway_payment_id: Optional[str]
    payment_date: Optional[datetime]
    status: str
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class EnrollmentListResponse(BaseModel):
    enrollments: List[EnrollmentSummary]
    total: int
    page: int
    page_size: int
    total_pages: int


class EnrollmentStats(BaseModel):
    total_orders: int
    enrolled_students: int
    completed_students: int
    successful_payments: int
    total_revenue: int
    program_revenue: int
    addon_revenue: int
    gst_collected: int
    average_order_value: float
