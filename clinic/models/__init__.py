# clinic/models/__init__.py
from .base import Base
from .staff_user import StaffUser, StaffRole
from .clinic_service import ClinicService
from .calendar_appointment import CalendarAppointment, AppointmentStatus, actions_for_status
from .payment import Payment, PaymentStatus, PaymentPeriod

__all__ = [
    "Base",
    "StaffUser",
    "StaffRole",
    "ClinicService",
    "CalendarAppointment",
    "AppointmentStatus",
    "actions_for_status",
    "Payment",
    "PaymentStatus",
    "PaymentPeriod",
]
