# clinic/services/payments/booking_status.py
"""
Keeps every appointment of a booking on the same status.

A booking is every calendar appointment sharing a ``booking_id``; its status
follows the payments recorded against any of them.
"""
import logging
from decimal import Decimal
from typing import List
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from clinic.models.calendar_appointment import AppointmentStatus, CalendarAppointment, actions_for_status
from clinic.models.payment import Payment

logger = logging.getLogger(__name__)


class BookingStatusPropagator:

    @staticmethod
    def booking_template_ids(db: Session, tenant_id: UUID, booking_id: str) -> List[UUID]:
        rows = db.query(CalendarAppointment.id).filter(
            CalendarAppointment.tenant_id == tenant_id,
            CalendarAppointment.booking_id == booking_id,
        ).all()
        return [row.id for row in rows]

    @staticmethod
    def total_paid(db: Session, template_ids: List[UUID]) -> Decimal:
        """Sum of non-deleted payment amounts recorded against the templates."""
        if not template_ids:
            return Decimal("0")
        total = db.query(func.coalesce(func.sum(Payment.payment_amount), 0)).filter(
            Payment.appointment_id.in_(template_ids),
            Payment.is_deleted.is_(False),
        ).scalar()
        return Decimal(str(total or 0))

    @staticmethod
    def status_for(total_paid: Decimal, service_fee: Decimal) -> AppointmentStatus:
        if Decimal(str(total_paid)) >= Decimal(str(service_fee)):
            return AppointmentStatus.COMPLETED
        return AppointmentStatus.PAYMENT_PENDING

    @staticmethod
    def apply_status(db: Session, tenant_id: UUID, booking_id: str, status: AppointmentStatus) -> int:
        """
        Write ``status`` and its action flags to every template of the booking
        in one UPDATE. Does not commit; the caller owns the transaction.
        """
        actions = actions_for_status(status)
        updated = db.query(CalendarAppointment).filter(
            CalendarAppointment.tenant_id == tenant_id,
            CalendarAppointment.booking_id == booking_id,
        ).update(
            {
                CalendarAppointment.status: status.value,
                CalendarAppointment.action_pay_now: actions["pay_now"],
                CalendarAppointment.action_re_book: actions["re_book"],
                CalendarAppointment.action_edit: actions["edit"],
                CalendarAppointment.action_view: actions["view"],
            },
            synchronize_session="fetch",
        )
        logger.info(f"Booking {booking_id}: {updated} appointments set to {status.value}")
        return updated

    @staticmethod
    def reconcile(db: Session, tenant_id: UUID, booking_id: str, service_fee: Decimal) -> AppointmentStatus:
        """Recompute the booking's status from its payments and fan it out."""
        # Payments written earlier in this transaction must be visible to the sum
        db.flush()
        template_ids = BookingStatusPropagator.booking_template_ids(db, tenant_id, booking_id)
        paid = BookingStatusPropagator.total_paid(db, template_ids)
        status = BookingStatusPropagator.status_for(paid, service_fee)
        BookingStatusPropagator.apply_status(db, tenant_id, booking_id, status)
        return status
