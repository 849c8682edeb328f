# ===== clinic/tasks/status_tasks.py =====
from collections import defaultdict

from clinic.config.celery_config import celery_app
from clinic.config.database import get_db
from clinic.models.calendar_appointment import AppointmentStatus, CalendarAppointment
from clinic.models.payment import Payment, PaymentStatus
from clinic.services.locking import booking_lock
from clinic.services.payments.booking_status import BookingStatusPropagator
from clinic.services.scheduling.week_grid import local_now
import logging

logger = logging.getLogger(__name__)


def sweep_overdue(db) -> dict:
    """
    Move past one-off appointments out of ``open``.

    Bookings with a completed payment become ``completed``, the rest
    ``payment_pending``. Recurring templates keep their status.
    """
    now = local_now()
    overdue = db.query(CalendarAppointment).filter(
        CalendarAppointment.is_recurring.is_(False),
        CalendarAppointment.status == AppointmentStatus.OPEN.value,
        CalendarAppointment.appointment_date < now,
    ).all()

    bookings = defaultdict(set)
    for appointment in overdue:
        bookings[appointment.tenant_id].add(appointment.booking_id)

    counts = {AppointmentStatus.COMPLETED.value: 0, AppointmentStatus.PAYMENT_PENDING.value: 0}
    for tenant_id, booking_ids in bookings.items():
        for booking_id in sorted(booking_ids):
            with booking_lock(booking_id):
                template_ids = BookingStatusPropagator.booking_template_ids(db, tenant_id, booking_id)
                paid = db.query(Payment.id).filter(
                    Payment.appointment_id.in_(template_ids),
                    Payment.payment_status == PaymentStatus.COMPLETED.value,
                    Payment.is_deleted.is_(False),
                ).first() is not None

                status = AppointmentStatus.COMPLETED if paid else AppointmentStatus.PAYMENT_PENDING
                BookingStatusPropagator.apply_status(db, tenant_id, booking_id, status)
                db.commit()
                counts[status.value] += 1

    logger.info(
        f"Status sweep at {now.isoformat()}: {len(overdue)} overdue appointments, "
        f"{counts[AppointmentStatus.COMPLETED.value]} bookings completed, "
        f"{counts[AppointmentStatus.PAYMENT_PENDING.value]} awaiting payment"
    )
    return {"status": "success", "overdue": len(overdue), **counts}


@celery_app.task(bind=True, max_retries=3)
def sweep_overdue_statuses(self):
    """Hourly: settle the status of appointments whose time has passed"""
    db = next(get_db())
    try:
        return sweep_overdue(db)
    except Exception as exc:
        db.rollback()
        logger.error(f"Status sweep failed: {exc}")
        raise self.retry(exc=exc, countdown=60 * (self.request.retries + 1))
    finally:
        db.close()
