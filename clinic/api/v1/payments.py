# ============================================================================
# FILE: clinic/api/v1/payments.py
# Payments taken at calendar appointments - thin HTTP layer
# ============================================================================
from fastapi import APIRouter, Depends, Query, Path, status
from sqlalchemy.orm import Session
from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from clinic.api.dependencies import get_current_user, require_scheduler
from clinic.config.database import get_db
from clinic.models.payment import PaymentPeriod
from clinic.models.staff_user import StaffUser
from clinic.schemas.payments import (
    AnnotatedPaymentResponse,
    PaymentCreate,
    PaymentResponse,
    PaymentUpdate,
    PeriodEndResponse,
)
from clinic.services.payments.payment_service import PaymentService
from clinic.services.payments.period_calculator import calculate_period_end

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("/period-end", response_model=PeriodEndResponse)
async def get_period_end(
        payment_period: PaymentPeriod = Query(..., description="single, monthly, quarterly or biannual"),
        payment_date: datetime = Query(..., description="When the payment is taken"),
        occurrence_date: Optional[date] = Query(None, description="Occurrence the period starts from"),
        current_user: StaffUser = Depends(get_current_user)
):
    """Preview the period end the payment form will store."""
    period_end = calculate_period_end(payment_period, payment_date, occurrence_date)
    return {
        "payment_period": payment_period,
        "period_end_date": period_end.isoformat() if period_end else None,
    }


@router.get("/occurrence/{occurrence_id}", response_model=List[AnnotatedPaymentResponse])
async def list_occurrence_payments(
        occurrence_id: str = Path(..., description="Appointment id or '{id}_instance_{yyyy-mm-dd}'"),
        viewed_date: Optional[date] = Query(None, description="Date the occurrence is viewed at"),
        current_user: StaffUser = Depends(get_current_user),
        db: Session = Depends(get_db)
):
    """
    Payment history of an occurrence, each marked valid/completed for the
    viewed date; completed payments first.
    """
    return PaymentService.list_payments_for_occurrence(
        db=db,
        tenant_id=current_user.tenant_id,
        occurrence_id=occurrence_id,
        viewed_date=viewed_date
    )


@router.post("", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
def create_payment(
        payload: PaymentCreate,
        current_user: StaffUser = Depends(require_scheduler),
        db: Session = Depends(get_db)
):
    payment = PaymentService.create_payment(db, current_user.tenant_id, payload)
    return PaymentService.serialize_payment(payment)


@router.put("/{payment_id}", response_model=PaymentResponse)
def update_payment(
        payload: PaymentUpdate,
        payment_id: UUID = Path(..., description="The payment ID"),
        current_user: StaffUser = Depends(require_scheduler),
        db: Session = Depends(get_db)
):
    payment = PaymentService.update_payment(db, current_user.tenant_id, payment_id, payload)
    return PaymentService.serialize_payment(payment)


@router.delete("/{payment_id}")
def delete_payment(
        payment_id: UUID = Path(..., description="The payment ID"),
        current_user: StaffUser = Depends(require_scheduler),
        db: Session = Depends(get_db)
):
    """Soft delete; the booking's status is recomputed without it."""
    payment = PaymentService.soft_delete_payment(db, current_user.tenant_id, payment_id)
    return {"success": True, "payment_id": str(payment.id)}
