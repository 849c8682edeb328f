from datetime import date, datetime
from decimal import Decimal

import pytest

from clinic.core.exceptions import ForbiddenException, NotFoundException, ValidationException
from clinic.models.calendar_appointment import AppointmentStatus, CalendarAppointment
from clinic.models.payment import Payment, PaymentStatus
from clinic.schemas.payments import PaymentCreate, PaymentUpdate
from clinic.services.payments.payment_service import PaymentService


@pytest.fixture
def booking(make_template):
    """A weekly series plus a split-off week, both in one booking."""
    series = make_template(date(2025, 1, 7), is_recurring=True, booking_id="booking-1")
    clone = make_template(
        date(2025, 1, 14),
        booking_id="booking-1",
        recurring_parent_id=series.id,
    )
    return series, clone


def pay(db, tenant_id, services, appointment_id, amount, **extra):
    fields = PaymentCreate(
        appointment_id=appointment_id,
        service_ids=[service.id for service in services],
        payment_method="cash",
        payment_amount=Decimal(amount),
        payment_date=extra.pop("payment_date", datetime(2025, 1, 10, 12, 0)),
        **extra,
    )
    return PaymentService.create_payment(db, tenant_id, fields)


def statuses(db):
    db.expire_all()
    return {
        (row.status, row.action_pay_now, row.action_re_book, row.action_edit, row.action_view)
        for row in db.query(CalendarAppointment).all()
    }


class TestCreatePayment:

    def test_virtual_id_is_stored_as_template_id(self, db, tenant_id, services, booking):
        series, _ = booking

        payment = pay(
            db, tenant_id, services, f"{series.id}_instance_2025-01-21", "1000",
            payment_period="monthly",
        )

        assert payment.appointment_id == series.id
        assert payment.occurrence_date == date(2025, 1, 21)
        assert payment.period_end_date == datetime(2025, 2, 21, 23, 59, 59, 999000)
        assert payment.doctor_id == series.doctor_id
        assert payment.service_fee == Decimal("1000.00")
        assert payment.service_description == "Consultation, Therapy"

    def test_status_derived_from_amount(self, db, tenant_id, services, booking):
        series, _ = booking

        partial = pay(db, tenant_id, services, str(series.id), "300")
        full = pay(db, tenant_id, services, str(series.id), "1000")

        assert partial.payment_status == PaymentStatus.PENDING.value
        assert full.payment_status == PaymentStatus.COMPLETED.value

    def test_legacy_status_label_is_normalized(self, db, tenant_id, services, booking):
        series, _ = booking

        payment = pay(db, tenant_id, services, str(series.id), "10", payment_status="Tamamlandı")

        assert payment.payment_status == PaymentStatus.COMPLETED.value

    def test_period_never_ends_before_payment(self, db, tenant_id, services, booking):
        series, _ = booking

        payment = pay(
            db, tenant_id, services, f"{series.id}_instance_2025-01-14", "1000",
            payment_period="single", payment_date=datetime(2025, 3, 1, 10, 0),
        )

        assert payment.period_end_date == datetime(2025, 3, 1, 23, 59, 59, 999000)

    def test_inactive_services_are_rejected(self, db, tenant_id, services, booking):
        series, _ = booking
        for service in services:
            service.is_active = False
        db.commit()

        with pytest.raises(ValidationException):
            pay(db, tenant_id, services, str(series.id), "1000")
        assert db.query(Payment).count() == 0

    def test_other_tenant_cannot_pay(self, db, other_tenant_id, services, booking):
        series, _ = booking

        with pytest.raises(ForbiddenException):
            pay(db, other_tenant_id, services, str(series.id), "1000")
        assert db.query(Payment).count() == 0


class TestBookingFanOut:

    def test_exact_fee_completes_every_template_of_booking(self, db, tenant_id, services, booking):
        series, clone = booking

        pay(db, tenant_id, services, str(series.id), "600")
        assert statuses(db) == {(AppointmentStatus.PAYMENT_PENDING.value, True, False, True, True)}

        pay(db, tenant_id, services, str(clone.id), "400")
        assert statuses(db) == {(AppointmentStatus.COMPLETED.value, False, True, False, True)}

    def test_other_bookings_are_untouched(self, db, tenant_id, services, booking, make_template):
        series, _ = booking
        unrelated = make_template(date(2025, 1, 8), booking_id="booking-2")

        pay(db, tenant_id, services, str(series.id), "1000")

        db.refresh(unrelated)
        assert unrelated.status == AppointmentStatus.OPEN.value

    def test_soft_delete_reopens_payment(self, db, tenant_id, services, booking):
        series, _ = booking
        payment = pay(db, tenant_id, services, str(series.id), "1000")

        PaymentService.soft_delete_payment(db, tenant_id, payment.id)

        assert statuses(db) == {(AppointmentStatus.PAYMENT_PENDING.value, True, False, True, True)}
        with pytest.raises(NotFoundException):
            PaymentService.soft_delete_payment(db, tenant_id, payment.id)

    def test_update_amount_recomputes_status(self, db, tenant_id, services, booking):
        series, _ = booking
        payment = pay(db, tenant_id, services, str(series.id), "500")

        PaymentService.update_payment(db, tenant_id, payment.id, PaymentUpdate(payment_amount=Decimal("1000")))

        assert statuses(db) == {(AppointmentStatus.COMPLETED.value, False, True, False, True)}

    def test_update_period_recomputes_period_end(self, db, tenant_id, services, booking):
        series, _ = booking
        payment = pay(db, tenant_id, services, f"{series.id}_instance_2025-01-14", "1000")

        updated = PaymentService.update_payment(
            db, tenant_id, payment.id, PaymentUpdate(payment_period="quarterly")
        )

        assert updated.period_end_date == datetime(2025, 4, 14, 23, 59, 59, 999000)

    def test_cross_tenant_update_is_forbidden(self, db, tenant_id, other_tenant_id, services, booking):
        series, _ = booking
        payment = pay(db, tenant_id, services, str(series.id), "500")

        with pytest.raises(ForbiddenException):
            PaymentService.update_payment(
                db, other_tenant_id, payment.id, PaymentUpdate(payment_amount=Decimal("1000"))
            )

        db.refresh(payment)
        assert payment.payment_amount == Decimal("500.00")


class TestOccurrencePayments:

    def test_monthly_payment_validity_by_viewed_date(self, db, tenant_id, services, booking):
        series, _ = booking
        pay(
            db, tenant_id, services, f"{series.id}_instance_2025-01-14", "1000",
            payment_period="monthly",
        )

        inside = PaymentService.list_payments_for_occurrence(
            db, tenant_id, f"{series.id}_instance_2025-02-11"
        )
        outside = PaymentService.list_payments_for_occurrence(
            db, tenant_id, f"{series.id}_instance_2025-02-18", viewed_date=date(2025, 2, 20)
        )

        assert inside[0]["is_valid"] is True
        assert inside[0]["is_completed"] is True
        assert outside[0]["is_valid"] is False
        assert outside[0]["is_completed"] is False

    def test_series_history_includes_split_off_weeks(self, db, tenant_id, services, booking):
        series, clone = booking
        pay(db, tenant_id, services, str(clone.id), "400", payment_period="monthly")

        history = PaymentService.list_payments_for_occurrence(
            db, tenant_id, f"{series.id}_instance_2025-01-21"
        )

        assert [item["appointment_id"] for item in history] == [str(clone.id)]

    def test_deleted_payments_are_hidden(self, db, tenant_id, services, booking):
        series, _ = booking
        payment = pay(db, tenant_id, services, str(series.id), "1000")
        PaymentService.soft_delete_payment(db, tenant_id, payment.id)

        assert PaymentService.list_payments_for_occurrence(db, tenant_id, str(series.id)) == []
