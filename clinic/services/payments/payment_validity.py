# clinic/services/payments/payment_validity.py
"""Which payments cover the occurrence being viewed - pure, read-only"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, List
from uuid import UUID

from clinic.models.payment import PaymentPeriod, PaymentStatus


@dataclass
class AnnotatedPayment:
    payment: Any
    is_valid: bool
    is_completed: bool

    @property
    def rank(self) -> int:
        if self.is_completed:
            return 0
        if self.is_valid:
            return 1
        return 2


def _start_of_day(value) -> datetime:
    if isinstance(value, datetime):
        return datetime.combine(value.date(), datetime.min.time())
    return datetime.combine(value, datetime.min.time())


def is_payment_valid(payment, parent_template_id: UUID, viewed_date: date) -> bool:
    """
    A ``single`` payment belongs to the series it was taken for, whatever the
    date. Period payments cover every viewed date up to their period end.
    """
    if payment.payment_period == PaymentPeriod.SINGLE.value:
        return payment.appointment_id == parent_template_id
    if payment.period_end_date is None:
        return True
    return _start_of_day(viewed_date) <= payment.period_end_date


def annotate_payments(
        payments: Iterable[Any],
        parent_template_id: UUID,
        viewed_date: date
) -> List[AnnotatedPayment]:
    """Completed-and-valid first, then valid, then the rest; ties keep input order."""
    annotated = []
    for payment in payments:
        is_valid = is_payment_valid(payment, parent_template_id, viewed_date)
        annotated.append(AnnotatedPayment(
            payment=payment,
            is_valid=is_valid,
            is_completed=is_valid and payment.payment_status == PaymentStatus.COMPLETED.value,
        ))
    # sorted() is stable
    return sorted(annotated, key=lambda item: item.rank)
