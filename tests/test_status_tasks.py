import uuid
from datetime import date, datetime
from decimal import Decimal

from clinic.models.calendar_appointment import AppointmentStatus
from clinic.models.payment import Payment, PaymentStatus
from clinic.tasks.status_tasks import sweep_overdue


def add_payment(db, tenant_id, template, status, is_deleted=False):
    db.add(Payment(
        id=uuid.uuid4(),
        tenant_id=tenant_id,
        doctor_id=template.doctor_id,
        appointment_id=template.id,
        service_ids=[],
        payment_method="card",
        payment_amount=Decimal("100"),
        payment_date=datetime(2025, 1, 10),
        payment_status=status.value,
        service_fee=Decimal("100"),
        service_description="Consultation",
        is_deleted=is_deleted,
    ))
    db.commit()


def test_past_unpaid_appointment_awaits_payment(db, make_template):
    past = make_template(date(2025, 1, 7))

    result = sweep_overdue(db)

    db.refresh(past)
    assert past.status == AppointmentStatus.PAYMENT_PENDING.value
    assert result["overdue"] == 1


def test_past_paid_booking_completes_all_its_templates(db, tenant_id, make_template):
    past = make_template(date(2025, 1, 7), booking_id="paid")
    future = make_template(date(2031, 1, 7), booking_id="paid")
    add_payment(db, tenant_id, future, PaymentStatus.COMPLETED)

    sweep_overdue(db)

    db.refresh(past)
    db.refresh(future)
    assert past.status == future.status == AppointmentStatus.COMPLETED.value
    assert past.action_re_book is True
    assert past.action_pay_now is False


def test_deleted_payment_does_not_count(db, tenant_id, make_template):
    past = make_template(date(2025, 1, 7))
    add_payment(db, tenant_id, past, PaymentStatus.COMPLETED, is_deleted=True)

    sweep_overdue(db)

    db.refresh(past)
    assert past.status == AppointmentStatus.PAYMENT_PENDING.value


def test_recurring_and_future_appointments_are_left_open(db, make_template):
    series = make_template(date(2025, 1, 7), is_recurring=True)
    upcoming = make_template(date(2031, 1, 7))

    result = sweep_overdue(db)

    db.refresh(series)
    db.refresh(upcoming)
    assert series.status == AppointmentStatus.OPEN.value
    assert upcoming.status == AppointmentStatus.OPEN.value
    assert result["overdue"] == 0
