"""
Shared fixtures: in-memory database, fake gateway and recording mailer
"""

import os

os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "test_secret"
os.environ["FRONTEND_URL"] = "https://enroll.example.com"
os.environ["APP_ENV"] = "test"

import itertools

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.auth.auth_handler import auth_handler
from app.database import Base, get_db
from app.services.catalog import ProductCatalog
from app.services.email_service import EmailDispatcher, get_email_dispatcher
from app.services.razorpay_client import GatewayOrder, RazorpayClient, get_gateway_client
from app.utils.rate_limit import limiter
from app.config import get_settings
from main import app

TEST_SECRET = "test_secret"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

limiter.enabled = False


class FakeGateway(RazorpayClient):
    """Issues order ids locally; signature checks go through the real SDK"""

    _ids = itertools.count(1)

    def __init__(self):
        super().__init__(key_id="rzp_test_key", key_secret=TEST_SECRET, base_url="http://gateway.invalid")
        self.calls = []
        self.error = None

    def create_order(self, amount_minor, currency, receipt):
        self.calls.append((amount_minor, currency, receipt))
        if self.error is not None:
            raise self.error
        return GatewayOrder(id=f"order_test{next(self._ids)}", amount=amount_minor, currency=currency, receipt=receipt)


class RecordingDispatcher(EmailDispatcher):
    def __init__(self):
        super().__init__(get_settings())
        self.sent = []
        self.delivered = []

    def send_invoice(self, recipient, invoice):
        self.sent.append((recipient, invoice))
        return True

    def _deliver(self, message):
        self.delivered.append(message)


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def mailer():
    return RecordingDispatcher()


@pytest.fixture
def client(db_session, gateway, mailer):
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway_client] = lambda: gateway
    app.dependency_overrides[get_email_dispatcher] = lambda: mailer
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def session_factory(db_session):
    return TestingSessionLocal


@pytest.fixture
def load_order(db_session):
    """Fetch a stored order by gateway order id in a fresh session"""
    from app.models.enrollment_order import EnrollmentOrder

    def load(gateway_order_id):
        db = TestingSessionLocal()
        try:
            return db.query(EnrollmentOrder).filter(EnrollmentOrder.gateway_order_id == gateway_order_id).first()
        finally:
            db.close()

    return load


@pytest.fixture
def catalog():
    return ProductCatalog.from_dict({
        "programs": {
            "fullstack": {"name": "Full Stack Development", "price": 500, "type": "monthly"},
            "cloud-bootcamp": {"name": "Cloud Bootcamp", "price": 12000, "type": "one-time"},
        },
        "programAddons": {
            "mentorship": {"name": "1:1 Mentorship", "price": 1500},
            "placement": {"name": "Placement Assistance", "price": 2500},
        },
        "freelancer": {
            "freelancer-starter": {"name": "Freelancer Starter", "price": 4999},
        },
    })


@pytest.fixture
def student_data():
    return {
        "fullName": "Asha Verma",
        "dateOfBirth": {"day": 15, "month": 6, "year": 2000},
        "countryOfCitizenship": "India",
        "primaryPhone": "+919876543210",
        "email": "asha@example.com",
        "residentialAddress": "12 MG Road, Indiranagar",
        "city": "Bengaluru",
        "state": "Karnataka",
        "zipCode": "560038",
        "country": "India",
        "highestQualification": "B.Tech",
        "idType": "AADHAAR",
        "idNumber": "123412341234",
        "agreedToTerms": True,
        "certifiedInformation": True,
    }


@pytest.fixture
def admin_headers():
    token = auth_handler.create_access_token({"sub": "1", "username": "admin", "role": "admin"})
    return {"Authorization": f"Bearer {token}"}
