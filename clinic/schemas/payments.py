# clinic/schemas/payments.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field, field_validator

from clinic.config.settings import get_settings
from clinic.models.payment import PaymentPeriod, PaymentStatus


class _PaymentFields(BaseModel):

    @field_validator("payment_status", mode="before", check_fields=False)
    @classmethod
    def normalize_status(cls, v):
        return PaymentStatus.from_label(v)

    @field_validator("payment_date", mode="after", check_fields=False)
    @classmethod
    def local_payment_date(cls, v):
        # Stored datetimes are naive clinic-local time
        if v is not None and v.tzinfo is not None:
            return v.astimezone(ZoneInfo(get_settings().CLINIC_TIMEZONE)).replace(tzinfo=None)
        return v

    @field_validator("occurrence_date", mode="before", check_fields=False)
    @classmethod
    def occurrence_day(cls, v):
        if isinstance(v, datetime):
            return v.date()
        return v


class PaymentCreate(_PaymentFields):
    """Payment taken for an appointment (concrete or virtual occurrence id)"""
    appointment_id: str = Field(..., description="Calendar appointment or occurrence id")
    service_ids: List[UUID] = Field(..., min_length=1)
    payment_method: str = Field(..., min_length=1, max_length=50)
    payment_amount: Decimal = Field(..., gt=0)
    payment_date: Optional[datetime] = Field(None, description="Defaults to now")
    payment_status: Optional[PaymentStatus] = Field(None, description="Derived from amount vs. fee when omitted")
    payment_description: Optional[str] = None
    payment_period: PaymentPeriod = Field(PaymentPeriod.SINGLE)
    occurrence_date: Optional[date] = Field(None, description="Occurrence the payment is taken at")


class PaymentUpdate(_PaymentFields):
    payment_method: Optional[str] = Field(None, min_length=1, max_length=50)
    payment_amount: Optional[Decimal] = Field(None, gt=0)
    payment_date: Optional[datetime] = None
    payment_status: Optional[PaymentStatus] = None
    payment_description: Optional[str] = None
    payment_period: Optional[PaymentPeriod] = None
    occurrence_date: Optional[date] = None


class PaymentResponse(BaseModel):
    id: str
    appointment_id: str
    doctor_id: str
    service_ids: List[str]
    payment_method: str
    payment_amount: float
    payment_date: str
    payment_status: str
    payment_description: Optional[str] = None
    service_fee: float
    service_description: str
    payment_period: str
    occurrence_date: Optional[str] = None
    period_end_date: Optional[str] = None
    is_deleted: bool


class AnnotatedPaymentResponse(PaymentResponse):
    is_valid: bool
    is_completed: bool


class PeriodEndResponse(BaseModel):
    payment_period: PaymentPeriod
    period_end_date: Optional[str] = None
