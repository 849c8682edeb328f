# clinic/schemas/calendar_appointments.py
from __future__ import annotations

import re
from datetime import date, datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

# Local mobile format: 10-11 digits starting with "05"
PHONE_PATTERN = re.compile(r"^0[5][0-9]{8,9}$")


def validate_phone(value: str) -> str:
    value = (value or "").strip()
    if not PHONE_PATTERN.match(value):
        raise ValueError(f"Invalid phone number: {value!r} (expected 05XXXXXXXXX)")
    return value


def _to_date(value):
    if isinstance(value, datetime):
        return value.date()
    return value


class DeleteMode(str, Enum):
    SINGLE = "single"
    AFTER_THIS = "afterThis"
    ALL_SERIES = "allSeries"


class Participant(BaseModel):
    name: str = Field(..., description="Participant full name")

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Participant name cannot be empty")
        return v


class _TemplateFields(BaseModel):
    """Field rules shared by create and patch payloads"""

    @field_validator("phones", check_fields=False)
    @classmethod
    def phones_are_local(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        return [validate_phone(phone) for phone in v]

    @field_validator("appointment_date", "end_date", mode="before", check_fields=False)
    @classmethod
    def dates_at_day_granularity(cls, v):
        return _to_date(v)

    @model_validator(mode="after")
    def check_consistency(self):
        time_index = getattr(self, "time_index", None)
        end_time_index = getattr(self, "end_time_index", None)
        if time_index is not None and end_time_index is not None and end_time_index < time_index:
            raise ValueError("end_time_index must not be before time_index")

        participants = getattr(self, "participants", None)
        phones = getattr(self, "phones", None)
        if participants is not None and phones and len(phones) != len(participants):
            raise ValueError("phones must have one entry per participant")

        start = getattr(self, "appointment_date", None)
        end = getattr(self, "end_date", None)
        if start is not None and end is not None and end < start:
            raise ValueError("end_date must not be before appointment_date")
        return self


class CalendarAppointmentCreate(_TemplateFields):
    """New calendar slot (one-off or the template of a weekly series)"""
    doctor_id: UUID = Field(..., description="Assigned doctor")
    day_index: int = Field(..., ge=0, le=6, description="0=Monday .. 6=Sunday")
    time_index: int = Field(..., ge=0, le=47, description="15-minute slot from 09:00")
    end_time_index: Optional[int] = Field(None, ge=0, le=47)
    slot_count: Optional[int] = Field(None, ge=1, le=48)
    appointment_date: date = Field(..., description="First (or only) date of the appointment")
    appointment_type: Optional[str] = Field(None, max_length=50)
    participants: List[Participant] = Field(..., min_length=1)
    phones: List[str] = Field(default_factory=list)
    description: str = Field("", description="Free-text notes")
    booking_id: Optional[str] = Field(None, max_length=64, description="Groups templates paid together")
    is_recurring: bool = Field(False, description="Repeat weekly")
    end_date: Optional[date] = Field(None, description="Last date of the series, None = open-ended")


class CalendarAppointmentUpdate(_TemplateFields):
    """Partial update; unset fields keep their current (or parent's) value"""
    doctor_id: Optional[UUID] = None
    day_index: Optional[int] = Field(None, ge=0, le=6)
    time_index: Optional[int] = Field(None, ge=0, le=47)
    end_time_index: Optional[int] = Field(None, ge=0, le=47)
    slot_count: Optional[int] = Field(None, ge=1, le=48)
    appointment_type: Optional[str] = Field(None, max_length=50)
    participants: Optional[List[Participant]] = Field(None, min_length=1)
    phones: Optional[List[str]] = None
    description: Optional[str] = None
    is_recurring: Optional[bool] = None
    end_date: Optional[date] = None
    sms_immediate_sent: Optional[bool] = None
    sms_reminder_sent: Optional[bool] = None


class OccurrenceParticipant(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None


class OccurrenceResponse(BaseModel):
    """One calendar cell as shown in the week view"""
    id: str
    template_id: str
    doctor_id: str
    doctor_name: str
    booking_id: str
    day_index: int
    time_index: int
    end_time_index: Optional[int] = None
    slot_count: Optional[int] = None
    appointment_date: str
    appointment_type: Optional[str] = None
    description: str = ""
    participants: List[OccurrenceParticipant] = Field(default_factory=list)
    is_recurring: bool
    is_virtual_instance: bool
    recurring_parent_id: Optional[str] = None
    end_date: Optional[str] = None
    status: str
    actions: dict
