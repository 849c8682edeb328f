# ============================================================================
# FILE: clinic/api/v1/calendar_appointments.py
# Calendar week view and occurrence edits - thin HTTP layer
# ============================================================================
from fastapi import APIRouter, Depends, Query, Path, status
from sqlalchemy.orm import Session
from datetime import date
from typing import List, Optional
from uuid import UUID

from clinic.api.dependencies import get_current_user, require_scheduler
from clinic.config.database import get_db
from clinic.models.staff_user import StaffUser
from clinic.schemas.calendar_appointments import (
    CalendarAppointmentCreate,
    CalendarAppointmentUpdate,
    DeleteMode,
    OccurrenceResponse,
)
from clinic.services.scheduling.calendar_query_service import CalendarQueryService
from clinic.services.scheduling.series_mutation_service import SeriesMutationService

router = APIRouter(prefix="/calendar-appointments", tags=["calendar"])


@router.get("", response_model=List[OccurrenceResponse])
async def list_week(
        week_start: date = Query(..., description="Monday of the week to show"),
        doctor_id: Optional[UUID] = Query(None, description="Only this doctor's appointments"),
        current_user: StaffUser = Depends(get_current_user),
        db: Session = Depends(get_db)
):
    """
    Appointments of one week, with recurring series expanded into the
    week's virtual occurrences.
    """
    return CalendarQueryService.list_week(
        db=db,
        tenant_id=current_user.tenant_id,
        week_start=week_start,
        doctor_id=doctor_id
    )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_appointment(
        payload: CalendarAppointmentCreate,
        current_user: StaffUser = Depends(require_scheduler),
        db: Session = Depends(get_db)
):
    """Create a one-off appointment or a weekly series."""
    template = SeriesMutationService.create(db, current_user.tenant_id, payload)
    return SeriesMutationService.serialize_template(template)


@router.put("/{occurrence_id}")
def update_occurrence(
        payload: CalendarAppointmentUpdate,
        occurrence_id: str = Path(..., description="Appointment id or '{id}_instance_{yyyy-mm-dd}'"),
        update_all_instances: bool = Query(False, description="Apply to the whole series"),
        current_user: StaffUser = Depends(require_scheduler),
        db: Session = Depends(get_db)
):
    """
    Edit an appointment. For one week of a series the week is split off
    into its own appointment unless ``update_all_instances`` is set.
    """
    template = SeriesMutationService.update(
        db=db,
        tenant_id=current_user.tenant_id,
        occurrence_id=occurrence_id,
        patch=payload,
        update_all_instances=update_all_instances
    )
    return SeriesMutationService.serialize_template(template)


@router.delete("/{occurrence_id}")
def delete_occurrence(
        occurrence_id: str = Path(..., description="Appointment id or '{id}_instance_{yyyy-mm-dd}'"),
        mode: DeleteMode = Query(DeleteMode.SINGLE, description="single, afterThis or allSeries"),
        current_user: StaffUser = Depends(require_scheduler),
        db: Session = Depends(get_db)
):
    SeriesMutationService.delete(
        db=db,
        tenant_id=current_user.tenant_id,
        occurrence_id=occurrence_id,
        mode=mode
    )
    return {"success": True, "occurrence_id": occurrence_id, "mode": mode.value}
