"""
Unit tests for the enrollment order repository
"""

from datetime import date

import pytest

from app.models.enrollment_order import EnrollmentOrder, EnrollmentStatus, PaymentStatus
from app.services.order_store import EnrollmentOrderStore
from app.utils.error_handler import ConflictError, InvalidTransitionError


def make_order(gateway_order_id="order_1", invoice_number="SRT/INT/20250101/100001",
               invoice_link="link-1", student_id="STU_1_aaaaa", **overrides):
    fields = dict(
        student_id=student_id,
        invoice_number=invoice_number,
        invoice_link=invoice_link,
        full_name="Ravi Kumar",
        date_of_birth=date(1998, 3, 2),
        country_of_citizenship="India",
        primary_phone="+919812345678",
        email="ravi@example.com",
        residential_address="221B Park Street",
        city="Kolkata",
        state="West Bengal",
        zip_code="700016",
        country="India",
        highest_qualification="MCA",
        id_type="PAN",
        id_number="ABCDE1234F",
        program_type="programs",
        selected_program="fullstack",
        program_name="Full Stack Development",
        program_duration=2,
        selected_addons=[],
        addons_data=[],
        program_unit_price=500,
        program_price=1000,
        addon_price=0,
        subtotal=1000,
        gst_rate=18.0,
        gst_amount=153,
        total=1000,
        currency="INR",
        payment_status=PaymentStatus.PROCESSING,
        gateway_order_id=gateway_order_id,
        agreed_to_terms=True,
        certified_information=True,
    )
    fields.update(overrides)
    return EnrollmentOrder(**fields)


@pytest.fixture
def store(db_session):
    return EnrollmentOrderStore(db_session)


class TestCreate:

    def test_create_and_find(self, store):
        order = store.create(make_order())

        assert order.id is not None
        assert store.find_by_gateway_order_id("order_1").id == order.id
        assert store.find_by_invoice_link("link-1").id == order.id
        assert store.find_by_invoice_number("SRT/INT/20250101/100001").id == order.id
        assert store.find_by_invoice_link("missing") is None

    def test_duplicate_gateway_order_id(self, store):
        store.create(make_order())
        with pytest.raises(ConflictError):
            store.create(make_order(invoice_number="SRT/INT/20250101/100002", invoice_link="link-2",
                                    student_id="STU_2_bbbbb"))

    def test_duplicate_invoice_link(self, store):
        store.create(make_order())
        with pytest.raises(ConflictError):
            store.create(make_order(gateway_order_id="order_2", invoice_number="SRT/INT/20250101/100002",
                                    student_id="STU_2_bbbbb"))

    def test_consent_is_required(self):
        with pytest.raises(ValueError):
            make_order(agreed_to_terms=False)

    def test_pricing_is_write_once(self, store):
        order = store.create(make_order())
        with pytest.raises(ValueError):
            order.total = 1
        with pytest.raises(ValueError):
            order.addons_data = [{"id": "x", "name": "x", "price": 1}]


class TestTransitionStatus:

    def test_processing_to_success(self, store, db_session):
        order = store.create(make_order())

        assert store.transition_status("order_1", PaymentStatus.PROCESSING, PaymentStatus.SUCCESS,
                                       payment_id="pay_1") is True
        db_session.refresh(order)
        assert order.payment_status == PaymentStatus.SUCCESS
        assert order.gateway_payment_id == "pay_1"
        assert order.payment_date is not None
        assert order.status == EnrollmentStatus.ENROLLED

    def test_only_one_caller_wins(self, store, db_session):
        order = store.create(make_order())

        first = store.transition_status("order_1", PaymentStatus.PROCESSING, PaymentStatus.SUCCESS,
                                        payment_id="pay_1")
        second = store.transition_status("order_1", PaymentStatus.PROCESSING, PaymentStatus.SUCCESS,
                                         payment_id="pay_2")

        assert (first, second) == (True, False)
        db_session.refresh(order)
        assert order.gateway_payment_id == "pay_1"

    def test_unknown_order(self, store):
        assert store.transition_status("nope", PaymentStatus.PROCESSING, PaymentStatus.SUCCESS) is False

    def test_disallowed_transition(self, store):
        store.create(make_order())
        with pytest.raises(InvalidTransitionError):
            store.transition_status("order_1", PaymentStatus.FAILED, PaymentStatus.SUCCESS)

    def test_failed_is_terminal(self, store):
        store.create(make_order())
        assert store.transition_status("order_1", PaymentStatus.PROCESSING, PaymentStatus.FAILED) is True
        assert store.transition_status("order_1", PaymentStatus.PROCESSING, PaymentStatus.SUCCESS) is False


class TestQueries:

    def seed(self, store):
        store.create(make_order())
        store.create(make_order(gateway_order_id="order_2", invoice_number="SRT/INT/20250101/100002",
                                invoice_link="link-2", student_id="STU_2_bbbbb",
                                addons_data=[{"id": "mentorship", "name": "1:1 Mentorship", "price": 1500}],
                                selected_addons=["mentorship"], addon_price=1500, subtotal=2500,
                                gst_amount=381, total=2500))
        store.create(make_order(gateway_order_id="order_3", invoice_number="SRT/INT/20250101/100003",
                                invoice_link="link-3", student_id="STU_3_ccccc"))
        store.transition_status("order_1", PaymentStatus.PROCESSING, PaymentStatus.SUCCESS, payment_id="pay_1")
        store.transition_status("order_2", PaymentStatus.PROCESSING, PaymentStatus.SUCCESS, payment_id="pay_2")

    def test_list_paginated(self, store):
        self.seed(store)

        orders, total = store.list_paginated(page=1, page_size=2)
        assert total == 3
        assert len(orders) == 2

        orders, total = store.list_paginated(payment_status=PaymentStatus.PROCESSING)
        assert total == 1
        assert orders[0].gateway_order_id == "order_3"

    def test_stats_count_paid_orders_only(self, store):
        self.seed(store)
        stats = store.stats()

        assert stats["total_orders"] == 3
        assert stats["successful_payments"] == 2
        assert stats["enrolled_students"] == 2
        assert stats["total_revenue"] == 3500
        assert stats["program_revenue"] == 2000
        assert stats["addon_revenue"] == 1500
        assert stats["gst_collected"] == 534
        assert stats["average_order_value"] == 1750
