"""
Pydantic schemas for payment order creation and verification
"""

from pydantic import BaseModel, Field, validator, EmailStr
from pydantic.alias_generators import to_camel
from typing import Optional, List, Union
from datetime import datetime
import re

ID_NUMBER_PATTERNS = {
    "AADHAAR": r'^\d{12}$',
    "PASSPORT": r'^[A-Z]\d{7}$',
    "DRIVING_LICENSE": r'^[A-Z]{2}\d{13}$',
    "PAN": r'^[A-Z]{5}\d{4}[A-Z]$',
}
PHONE_PATTERN = r'^\+?[\d\s\-\(\)]{10,15}$'


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys on the wire"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class DateOfBirthParts(CamelModel):
    day: Union[int, str]
    month: Union[int, str]
    year: Union[int, str]


class PackageData(CamelModel):
    """Program selection submitted with an order"""
    type: Optional[str] = Field(None, description="Product family, e.g. programs")
    selected_product: Optional[str] = Field(None, description="Product id within the family")
    selected_program: Optional[str] = Field(None, description="Legacy name for selected_product")
    selected_addon: List[str] = Field(default_factory=list, description="Add-on ids")
    selected_months: Optional[int] = Field(None, description="Duration in months for monthly products")

    @validator('selected_addon', pre=True)
    def coerce_addons(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v

    @property
    def product_id(self) -> Optional[str]:
        return self.selected_product or self.selected_program


class ApplicantData(CamelModel):
    """Applicant details stored on the enrollment order"""
    full_name: str = Field(..., min_length=2, max_length=100)
    date_of_birth: Optional[Union[DateOfBirthParts, str]] = Field(None, description="{day, month, year} or a date string")
    country_of_citizenship: str = Field(..., min_length=2, max_length=50)
    referral_code: Optional[str] = Field(None)
    primary_phone: str = Field(...)
    secondary_phone: Optional[str] = Field(None)
    whatsapp_notifications: bool = False
    email: EmailStr
    residential_address: str = Field(..., min_length=10, max_length=200)
    city: str = Field(..., min_length=2, max_length=50)
    state: str = Field(..., min_length=2, max_length=50)
    zip_code: str = Field(...)
    country: str = Field(..., min_length=2, max_length=50)
    highest_qualification: str = Field(..., min_length=1, max_length=50)
    specialization: Optional[str] = Field(None, max_length=100)
    current_profession: Optional[str] = Field(None, max_length=100)
    current_organization: Optional[str] = Field(None, max_length=100)
    linkedin_profile: Optional[str] = Field(None)
    id_type: str = Field(..., min_length=2, max_length=30)
    id_number: str = Field(...)
    id_document_name: Optional[str] = Field(None, max_length=100)
    id_document_type: Optional[str] = Field(None)
    agreed_to_terms: bool = False
    certified_information: bool = False

    @validator('full_name')
    def validate_full_name(cls, v):
        v = v.strip()
        if not re.match(r"^[a-zA-Z\s.'-]+$", v):
            raise ValueError('Full name can only contain letters, spaces, dots, apostrophes, and hyphens')
        return v

    @validator('primary_phone', 'secondary_phone')
    def validate_phone(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not re.match(PHONE_PATTERN, v):
            raise ValueError('Please enter a valid phone number')
        return v

    @validator('secondary_phone')
    def secondary_differs(cls, v, values, **kwargs):
        if v and v == values.get('primary_phone'):
            raise ValueError('Secondary phone must be different from primary phone')
        return v

    @validator('referral_code')
    def validate_referral_code(cls, v):
        if v is None or not v.strip():
            return None
        v = v.strip().upper()
        if not re.match(r'^[A-Z0-9]{6,20}$', v):
            raise ValueError('Referral code must be 6-20 letters or digits')
        return v

    @validator('zip_code')
    def validate_zip_code(cls, v):
        v = v.strip()
        if not re.match(r'^\d{5,10}$', v):
            raise ValueError('ZIP code must be 5-10 digits')
        return v

    @validator('linkedin_profile')
    def validate_linkedin(cls, v):
        if v is None or not v.strip():
            return None
        if not re.match(r'^https?://(www\.)?linkedin\.com/.*$', v.strip()):
            raise ValueError('Please enter a valid LinkedIn profile URL')
        return v.strip()

    @validator('id_type')
    def normalize_id_type(cls, v):
        return v.strip().upper()

    @validator('id_number')
    def validate_id_number(cls, v, values, **kwargs):
        v = v.strip().upper()
        if len(v) < 5 or len(v) > 20:
            raise ValueError('ID number must be 5-20 characters')
        pattern = ID_NUMBER_PATTERNS.get(values.get('id_type'))
        if pattern and not re.match(pattern, v):
            raise ValueError('Please enter a valid ID number for the selected ID type')
        return v

    @validator('id_document_type')
    def validate_document_type(cls, v):
        if v is None:
            return v
        allowed = ['image/jpeg', 'image/png', 'image/jpg', 'application/pdf']
        if v not in allowed:
            raise ValueError(f'Document must be one of: {", ".join(allowed)}')
        return v


class CreateOrderRequest(CamelModel):
    package_data: Optional[PackageData] = None
    student_data: Optional[ApplicantData] = None
    receipt: Optional[str] = Field(None, max_length=40)


class AddonLine(CamelModel):
    id: str
    name: str
    price: int


class PricingResponse(CamelModel):
    program_unit_price: int
    program_price: int
    addon_price: int
    subtotal: int
    gst_rate: float
    gst_amount: int
    total: int
    duration: int
    addons: List[AddonLine] = []


class CreateOrderResponse(CamelModel):
    success: bool = True
    order_id: str
    amount: int = Field(..., description="Amount in the currency's smallest unit")
    currency: str
    receipt: Optional[str] = None
    student_id: str
    invoice_number: str
    invoice_link: str
    invoice_url: str
    pricing: PricingResponse
    timestamp: datetime


class VerifyPaymentRequest(BaseModel):
    """Checkout callback fields, named as the gateway sends them"""
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None


class VerifyPaymentResponse(CamelModel):
    success: bool = True
    message: str
    payment_id: Optional[str]
    order_id: str
    invoice_link: str
    student_id: str
    enrollment_status: str
    timestamp: datetime
