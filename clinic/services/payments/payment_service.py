# ============================================================================
# FILE: clinic/services/payments/payment_service.py
# Payments against calendar appointments and the booking status they drive
# ============================================================================
import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from clinic.core.exceptions import ForbiddenException, NotFoundException, ValidationException
from clinic.models.calendar_appointment import CalendarAppointment
from clinic.models.clinic_service import ClinicService
from clinic.models.payment import Payment, PaymentPeriod, PaymentStatus
from clinic.schemas.payments import PaymentCreate, PaymentUpdate
from clinic.services.locking import booking_lock
from clinic.services.payments.booking_status import BookingStatusPropagator
from clinic.services.payments.payment_validity import annotate_payments
from clinic.services.payments.period_calculator import calculate_period_end, end_of_day
from clinic.services.scheduling.occurrence_ids import VirtualId, parse_occurrence_id
from clinic.services.scheduling.series_mutation_service import SeriesMutationService
from clinic.services.scheduling.week_grid import local_now

logger = logging.getLogger(__name__)


class PaymentService:
    """Handles payment operations"""

    @staticmethod
    def create_payment(db: Session, tenant_id: UUID, fields: PaymentCreate) -> Payment:
        """
        Record a payment and bring the booking's status up to date.

        A virtual occurrence id is stored as its template id; the occurrence's
        date becomes the start of the paid period unless one is given.
        """
        target = parse_occurrence_id(fields.appointment_id)
        template = SeriesMutationService.get_template(db, tenant_id, target.parent_id)

        services = db.query(ClinicService).filter(
            ClinicService.id.in_(fields.service_ids),
            ClinicService.tenant_id == tenant_id,
            ClinicService.is_active.is_(True),
        ).order_by(ClinicService.name.asc()).all()
        if not services:
            raise ValidationException(
                "Selected services were not found or are inactive",
                code="services_not_found",
            )

        service_fee = sum((Decimal(str(service.fee)) for service in services), Decimal("0"))
        payment_date = fields.payment_date or local_now()
        occurrence_date = PaymentService._reference_date(fields.occurrence_date, target, template)

        payment_status = fields.payment_status
        if payment_status is None:
            payment_status = (
                PaymentStatus.COMPLETED if fields.payment_amount >= service_fee else PaymentStatus.PENDING
            )

        payment = Payment(
            id=uuid.uuid4(),
            tenant_id=tenant_id,
            doctor_id=template.doctor_id,
            appointment_id=template.id,
            service_ids=[str(service.id) for service in services],
            payment_method=fields.payment_method,
            payment_amount=fields.payment_amount,
            payment_date=payment_date,
            payment_status=payment_status.value,
            payment_description=fields.payment_description,
            service_fee=service_fee,
            service_description=", ".join(service.name for service in services),
            payment_period=fields.payment_period.value,
            occurrence_date=occurrence_date,
            period_end_date=PaymentService._period_end(fields.payment_period, payment_date, occurrence_date),
            is_deleted=False,
        )

        with booking_lock(template.booking_id):
            db.add(payment)
            status = BookingStatusPropagator.reconcile(db, tenant_id, template.booking_id, service_fee)
            db.commit()

        db.refresh(payment)
        logger.info(
            f"Payment {payment.id} of {payment.payment_amount} recorded for appointment {template.id}; "
            f"booking {template.booking_id} is {status.value}"
        )
        return payment

    @staticmethod
    def update_payment(db: Session, tenant_id: UUID, payment_id: UUID, patch: PaymentUpdate) -> Payment:
        payment = PaymentService._load_payment(db, tenant_id, payment_id)
        changes = patch.model_dump(exclude_unset=True)

        if "payment_status" in changes and changes["payment_status"] is not None:
            changes["payment_status"] = PaymentStatus(changes["payment_status"]).value
        if "payment_period" in changes and changes["payment_period"] is not None:
            changes["payment_period"] = PaymentPeriod(changes["payment_period"]).value

        recompute_period = bool({"payment_period", "payment_date", "occurrence_date"} & changes.keys())
        template = db.query(CalendarAppointment).filter(
            CalendarAppointment.id == payment.appointment_id
        ).first()

        def apply():
            for name, value in changes.items():
                if value is not None:
                    setattr(payment, name, value)
            if recompute_period:
                payment.period_end_date = PaymentService._period_end(
                    payment.payment_period, payment.payment_date, payment.occurrence_date
                )

        if template is None:
            logger.warning(f"Payment {payment.id} points at a deleted appointment; status not propagated")
            apply()
            db.commit()
        else:
            with booking_lock(template.booking_id):
                apply()
                BookingStatusPropagator.reconcile(db, tenant_id, template.booking_id, payment.service_fee)
                db.commit()

        db.refresh(payment)
        logger.info(f"Updated payment {payment.id}")
        return payment

    @staticmethod
    def soft_delete_payment(db: Session, tenant_id: UUID, payment_id: UUID) -> Payment:
        payment = PaymentService._load_payment(db, tenant_id, payment_id)
        template = db.query(CalendarAppointment).filter(
            CalendarAppointment.id == payment.appointment_id
        ).first()

        if template is None:
            payment.is_deleted = True
            db.commit()
        else:
            with booking_lock(template.booking_id):
                payment.is_deleted = True
                BookingStatusPropagator.reconcile(db, tenant_id, template.booking_id, payment.service_fee)
                db.commit()

        db.refresh(payment)
        logger.info(f"Soft-deleted payment {payment.id}")
        return payment

    @staticmethod
    def list_payments_for_occurrence(
            db: Session,
            tenant_id: UUID,
            occurrence_id: str,
            viewed_date: Optional[date] = None
    ) -> List[Dict[str, Any]]:
        """
        Payments of the occurrence's series (or of the single appointment),
        each marked valid/completed for the viewed date.
        """
        target = parse_occurrence_id(occurrence_id)
        template = SeriesMutationService.get_template(db, tenant_id, target.parent_id)

        if template.is_recurring or template.recurring_parent_id:
            scope = BookingStatusPropagator.booking_template_ids(db, tenant_id, template.booking_id)
        else:
            scope = [template.id]

        if viewed_date is None:
            if isinstance(target, VirtualId):
                viewed_date = target.instance_date
            else:
                viewed_date = template.appointment_date.date()

        payments = db.query(Payment).filter(
            Payment.tenant_id == tenant_id,
            Payment.appointment_id.in_(scope),
            Payment.is_deleted.is_(False),
        ).order_by(Payment.payment_date.asc(), Payment.created_at.asc()).all()

        annotated = annotate_payments(payments, target.parent_id, viewed_date)
        return [
            dict(
                PaymentService.serialize_payment(item.payment),
                is_valid=item.is_valid,
                is_completed=item.is_completed,
            )
            for item in annotated
        ]

    # ------------------------------------------------------------------ helpers

    @staticmethod
    def _reference_date(explicit: Optional[date], target, template: CalendarAppointment) -> date:
        if explicit is not None:
            return explicit
        if isinstance(target, VirtualId):
            return target.instance_date
        return template.appointment_date.date()

    @staticmethod
    def _period_end(period, payment_date, occurrence_date):
        period_end = calculate_period_end(period, payment_date, occurrence_date)
        # A period never ends before the day it was paid
        if period_end is not None and period_end < payment_date:
            period_end = end_of_day(payment_date)
        return period_end

    @staticmethod
    def _load_payment(db: Session, tenant_id: UUID, payment_id: UUID) -> Payment:
        payment = db.query(Payment).filter(
            Payment.id == payment_id,
            Payment.is_deleted.is_(False),
        ).first()
        if not payment:
            raise NotFoundException(
                "Payment not found",
                code="payment_not_found",
                details={"payment_id": str(payment_id)},
            )
        if payment.tenant_id != tenant_id:
            raise ForbiddenException(
                "No access to another clinic's payments",
                code="cross_tenant_access",
            )
        return payment

    @staticmethod
    def serialize_payment(payment: Payment) -> Dict[str, Any]:
        return {
            "id": str(payment.id),
            "appointment_id": str(payment.appointment_id),
            "doctor_id": str(payment.doctor_id),
            "service_ids": [str(service_id) for service_id in (payment.service_ids or [])],
            "payment_method": payment.payment_method,
            "payment_amount": float(payment.payment_amount),
            "payment_date": payment.payment_date.isoformat(),
            "payment_status": payment.payment_status,
            "payment_description": payment.payment_description,
            "service_fee": float(payment.service_fee),
            "service_description": payment.service_description,
            "payment_period": payment.payment_period,
            "occurrence_date": payment.occurrence_date.isoformat() if payment.occurrence_date else None,
            "period_end_date": payment.period_end_date.isoformat() if payment.period_end_date else None,
            "is_deleted": payment.is_deleted,
        }
