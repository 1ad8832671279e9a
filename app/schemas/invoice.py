"""
Pydantic schemas for invoice views
"""

from pydantic import Field
from typing import Optional, List
from datetime import datetime

from app.schemas.payment import CamelModel


class InvoiceLine(CamelModel):
    kind: str = Field(..., description="program or addon")
    item_id: str
    description: str
    amount: int = Field(..., description="GST-inclusive amount")
    exclusive_amount: int
    gst_amount: int


class InvoiceDetails(CamelModel):
    invoice_number: str
    invoice_link: str
    invoice_url: str
    invoice_date: Optional[datetime]
    order_id: str
    payment_id: Optional[str]
    payment_status: str
    currency: str
    program_type: str
    program_name: str
    duration: int
    program_unit_price: int
    program_price: int
    addon_price: int
    subtotal: int
    gst_rate: float
    gst_amount: int
    total: int
    addon_exclusive_amount: int = Field(..., description="Add-on total with GST backed out")
    addon_gst_amount: int
    exclusive_subtotal: int = Field(..., description="Program and add-on totals with GST backed out, summed")
    lines: List[InvoiceLine]

    @property
    def addon_lines(self) -> List[InvoiceLine]:
        return [line for line in self.lines if line.kind == "addon"]

    @property
    def program_line(self) -> InvoiceLine:
        return next(line for line in self.lines if line.kind == "program")


class InvoiceStudent(CamelModel):
    student_id: str
    full_name: str
    email: str
    primary_phone: str
    residential_address: str
    city: str
    state: str
    zip_code: str
    country: str
    enrollment_status: str
    enrollment_date: Optional[datetime]


class InvoiceView(CamelModel):
    success: bool = True
    invoice: InvoiceDetails
    student: InvoiceStudent


class SendInvoiceRequest(CamelModel):
    student_email: Optional[str] = None
    invoice_link: Optional[str] = None


class SendInvoiceResponse(CamelModel):
    success: bool = True
    message: str
