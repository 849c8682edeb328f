# ===== clinic/models/calendar_appointment.py =====
"""
CalendarAppointment - the stored template of a weekly calendar slot.

A recurring row stands for its whole series; weekly occurrences are projected
from it at read time and never stored. Skipped weeks live in
``recurring_exceptions`` as ``yyyy-mm-dd`` strings, and a single edited week
becomes its own non-recurring row pointing back through ``recurring_parent_id``.
"""
from datetime import date
from typing import Set
import enum
import uuid

from sqlalchemy import Column, String, Integer, Boolean, Text, DateTime, JSON, Uuid, ForeignKey, Index
from sqlalchemy.sql import func

from clinic.models.base import Base


class AppointmentStatus(str, enum.Enum):
    OPEN = "open"
    PAYMENT_PENDING = "payment_pending"
    COMPLETED = "completed"


# Action flags shown next to an appointment, keyed by status
COMPLETED_ACTIONS = {"pay_now": False, "re_book": True, "edit": False, "view": True}
OPEN_ACTIONS = {"pay_now": True, "re_book": False, "edit": True, "view": True}


def actions_for_status(status: AppointmentStatus) -> dict:
    if status == AppointmentStatus.COMPLETED:
        return dict(COMPLETED_ACTIONS)
    return dict(OPEN_ACTIONS)


class CalendarAppointment(Base):
    __tablename__ = "calendar_appointments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # References
    tenant_id = Column(Uuid(as_uuid=True), nullable=False)
    doctor_id = Column(Uuid(as_uuid=True), ForeignKey("staff_users.id"), nullable=False)
    booking_id = Column(String(64), nullable=False, index=True)

    # Grid position: day 0=Monday..6=Sunday, 15-minute slots from 09:00
    day_index = Column(Integer, nullable=False)
    time_index = Column(Integer, nullable=False)
    end_time_index = Column(Integer, nullable=True)
    slot_count = Column(Integer, nullable=True)

    appointment_date = Column(DateTime, nullable=False)
    appointment_type = Column(String(50), nullable=True)

    participants = Column(JSON, default=list)  # [{"name": ...}]
    phones = Column(JSON, default=list)  # parallel to participants
    description = Column(Text, default="")

    # Recurrence
    is_recurring = Column(Boolean, default=False, nullable=False)
    end_date = Column(DateTime, nullable=True)  # None = open-ended
    recurring_parent_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    recurring_exceptions = Column(JSON, default=list)

    # Status tracking (kept identical across a booking)
    status = Column(String(30), default=AppointmentStatus.OPEN.value, nullable=False)
    action_pay_now = Column(Boolean, default=True)
    action_re_book = Column(Boolean, default=False)
    action_edit = Column(Boolean, default=True)
    action_view = Column(Boolean, default=True)

    # Reminders & notifications
    sms_immediate_sent = Column(Boolean, default=False)
    sms_reminder_sent = Column(Boolean, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_calendar_appointments_tenant_date", "tenant_id", "appointment_date"),
        Index("idx_calendar_appointments_tenant_recurring", "tenant_id", "is_recurring"),
    )

    @property
    def exception_dates(self) -> Set[date]:
        return {date.fromisoformat(value[:10]) for value in (self.recurring_exceptions or [])}

    def has_exception(self, day: date) -> bool:
        return day in self.exception_dates

    def add_exception(self, day: date) -> bool:
        """Record ``day`` as skipped. Returns False if it was already there."""
        if self.has_exception(day):
            return False
        # Reassign so the JSON column is flagged dirty
        self.recurring_exceptions = list(self.recurring_exceptions or []) + [day.isoformat()]
        return True

    @property
    def actions(self) -> dict:
        return {
            "pay_now": self.action_pay_now,
            "re_book": self.action_re_book,
            "edit": self.action_edit,
            "view": self.action_view,
        }

    def __repr__(self):
        return f"<CalendarAppointment(id={self.id}, day={self.day_index}, slot={self.time_index})>"
