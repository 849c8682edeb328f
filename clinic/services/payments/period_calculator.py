# clinic/services/payments/period_calculator.py
"""
End of the period a payment covers.

Months are added the way the legacy clients did it: keep the day of month and
let overflow roll into the following month (Jan 31 + 1 month = Mar 3 in a
non-leap year). Stored period ends depend on this, so do not "fix" it with a
clamping month delta.
"""
from datetime import date, datetime, timedelta
from typing import Optional, Union

from clinic.core.exceptions import ValidationException
from clinic.models.payment import PaymentPeriod

MONTHS_PER_PERIOD = {
    PaymentPeriod.MONTHLY: 1,
    PaymentPeriod.QUARTERLY: 3,
    PaymentPeriod.BIANNUAL: 6,
}

DateLike = Union[date, datetime]


def end_of_day(value: DateLike) -> datetime:
    day = value.date() if isinstance(value, datetime) else value
    return datetime(day.year, day.month, day.day, 23, 59, 59, 999000)


def add_months_with_overflow(value: DateLike, months: int) -> DateLike:
    """Calendar-month increment with day-of-month overflow carried forward."""
    month_offset = value.month - 1 + months
    year = value.year + month_offset // 12
    month = month_offset % 12 + 1
    first_of_month = value.replace(year=year, month=month, day=1)
    return first_of_month + timedelta(days=value.day - 1)


def calculate_period_end(
        period: Union[PaymentPeriod, str],
        payment_date: DateLike,
        reference_occurrence_date: Optional[DateLike] = None
) -> Optional[datetime]:
    """
    Last moment a payment is valid for.

    ``single`` covers the referenced occurrence's day, or has no end at all when
    no occurrence is known. The other periods run from the occurrence date (or
    the payment date) for 1, 3 or 6 calendar months.
    """
    try:
        period = PaymentPeriod(period)
    except ValueError:
        raise ValidationException(f"Unknown payment period: {period}", code="invalid_payment_period")

    if period == PaymentPeriod.SINGLE:
        if reference_occurrence_date is None:
            return None
        return end_of_day(reference_occurrence_date)

    reference = reference_occurrence_date if reference_occurrence_date is not None else payment_date
    return end_of_day(add_months_with_overflow(reference, MONTHS_PER_PERIOD[period]))
