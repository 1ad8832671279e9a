"""
Enrollment order model: an applicant, a priced selection and its payment
"""

from sqlalchemy import Column, Integer, String, DateTime, Date, Float, Boolean, JSON, inspect
from sqlalchemy.orm import validates
from sqlalchemy.sql import func
from app.database import Base


class PaymentStatus:
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"

    ALL = [PENDING, PROCESSING, SUCCESS, FAILED, REFUNDED]


class EnrollmentStatus:
    PENDING = "PENDING"
    ENROLLED = "ENROLLED"
    COMPLETED = "COMPLETED"
    SUSPENDED = "SUSPENDED"
    CANCELLED = "CANCELLED"

    ALL = [PENDING, ENROLLED, COMPLETED, SUSPENDED, CANCELLED]


# from-status -> statuses it may move to
ALLOWED_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.PROCESSING, PaymentStatus.FAILED},
    PaymentStatus.PROCESSING: {PaymentStatus.SUCCESS, PaymentStatus.FAILED},
    PaymentStatus.SUCCESS: {PaymentStatus.REFUNDED},
    PaymentStatus.FAILED: set(),
    PaymentStatus.REFUNDED: set(),
}

PRICING_FIELDS = (
    "program_unit_price",
    "program_price",
    "addon_price",
    "subtotal",
    "gst_rate",
    "gst_amount",
    "total",
    "currency",
    "addons_data",
)


class EnrollmentOrder(Base):
    """Enrollment order entity model"""
    __tablename__ = "enrollment_orders"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(String(40), unique=True, index=True, nullable=False)
    invoice_number = Column(String(40), unique=True, index=True, nullable=False)
    invoice_link = Column(String(36), unique=True, index=True, nullable=False)

    # Applicant
    full_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    country_of_citizenship = Column(String(50), nullable=False)
    referral_code = Column(String(20), nullable=True)
    primary_phone = Column(String(20), nullable=False)
    secondary_phone = Column(String(20), nullable=True)
    whatsapp_notifications = Column(Boolean, default=False, nullable=False)
    email = Column(String(255), index=True, nullable=False)
    residential_address = Column(String(200), nullable=False)
    city = Column(String(50), nullable=False)
    state = Column(String(50), nullable=False)
    zip_code = Column(String(10), nullable=False)
    country = Column(String(50), nullable=False)
    highest_qualification = Column(String(50), nullable=False)
    specialization = Column(String(100), nullable=True)
    current_profession = Column(String(100), nullable=True)
    current_organization = Column(String(100), nullable=True)
    linkedin_profile = Column(String(255), nullable=True)
    id_type = Column(String(30), nullable=False)
    id_number = Column(String(20), nullable=False)
    id_document_name = Column(String(100), nullable=True)
    id_document_type = Column(String(30), nullable=True)

    # Selection
    program_type = Column(String(50), nullable=False)
    selected_program = Column(String(100), nullable=False)
    program_name = Column(String(200), nullable=False)
    program_duration = Column(Integer, nullable=False)
    selected_addons = Column(JSON, nullable=False, default=list)
    selected_addon_names = Column(String(500), nullable=True)
    addons_data = Column(JSON, nullable=False, default=list)

    # Pricing snapshot, whole rupees, GST-inclusive
    program_unit_price = Column(Integer, nullable=False)
    program_price = Column(Integer, nullable=False)
    addon_price = Column(Integer, nullable=False, default=0)
    subtotal = Column(Integer, nullable=False)
    gst_rate = Column(Float, nullable=False, default=18.0)
    gst_amount = Column(Integer, nullable=False)
    total = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="INR")

    # Payment
    payment_status = Column(String(20), default=PaymentStatus.PENDING, index=True, nullable=False)
    gateway_order_id = Column(String(64), unique=True, index=True, nullable=False)
    gateway_payment_id = Column(String(64), nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=True)
    receipt = Column(String(64), nullable=True)

    # Consent
    agreed_to_terms = Column(Boolean, nullable=False)
    certified_information = Column(Boolean, nullable=False)
    terms_agreed_at = Column(DateTime(timezone=True), server_default=func.now())

    # Enrollment tracking
    status = Column(String(20), default=EnrollmentStatus.PENDING, nullable=False)
    enrollment_date = Column(DateTime(timezone=True), nullable=True)
    registration_source = Column(String(30), default="WEBSITE", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @validates(*PRICING_FIELDS)
    def _freeze_pricing(self, key, value):
        # Pricing is a snapshot taken at order creation
        if inspect(self).has_identity and getattr(self, key) != value:
            raise ValueError(f"{key} is fixed once the order is stored")
        return value

    @validates("agreed_to_terms", "certified_information")
    def _require_consent(self, key, value):
        if value is not True:
            raise ValueError(f"{key} must be true to create an enrollment order")
        return value

    def __repr__(self):
        return (
            f"<EnrollmentOrder(id={self.id}, invoice_number='{self.invoice_number}', "
            f"gateway_order_id='{self.gateway_order_id}', payment_status='{self.payment_status}')>"
        )
