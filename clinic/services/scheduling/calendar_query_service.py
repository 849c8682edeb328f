# ============================================================================
# FILE: clinic/services/scheduling/calendar_query_service.py
# Week view of the calendar: stored rows + projected recurring occurrences
# ============================================================================
import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from clinic.models.calendar_appointment import CalendarAppointment
from clinic.services.scheduling.doctor_directory import DoctorDirectory
from clinic.services.scheduling.recurrence import Occurrence, expand_week
from clinic.services.scheduling.week_grid import DAYS_PER_WEEK, ensure_week_start

logger = logging.getLogger(__name__)


class CalendarQueryService:
    """Read side of the calendar."""

    @staticmethod
    def list_week(
            db: Session,
            tenant_id: UUID,
            week_start: date,
            doctor_id: Optional[UUID] = None
    ) -> List[Dict[str, Any]]:
        """Occurrences of ``[week_start, week_start + 7 days)`` sorted by day and slot."""
        week_start = ensure_week_start(week_start)
        window_start = datetime.combine(week_start, datetime.min.time())
        window_end = window_start + timedelta(days=DAYS_PER_WEEK)

        concrete_query = db.query(CalendarAppointment).filter(
            CalendarAppointment.tenant_id == tenant_id,
            CalendarAppointment.appointment_date >= window_start,
            CalendarAppointment.appointment_date < window_end,
        )
        recurring_query = db.query(CalendarAppointment).filter(
            CalendarAppointment.tenant_id == tenant_id,
            CalendarAppointment.is_recurring.is_(True),
            CalendarAppointment.appointment_date < window_end,
            or_(
                CalendarAppointment.end_date.is_(None),
                CalendarAppointment.end_date >= window_start,
            ),
        )
        if doctor_id:
            concrete_query = concrete_query.filter(CalendarAppointment.doctor_id == doctor_id)
            recurring_query = recurring_query.filter(CalendarAppointment.doctor_id == doctor_id)

        occurrences = expand_week(concrete_query.all(), recurring_query.all(), week_start)

        doctor_names = DoctorDirectory.get_display_names(
            db, (occurrence.template.doctor_id for occurrence in occurrences)
        )

        logger.debug(
            f"Week {week_start.isoformat()} for tenant {tenant_id}: "
            f"{len(occurrences)} occurrences ({sum(o.is_virtual_instance for o in occurrences)} virtual)"
        )

        return [
            CalendarQueryService.serialize_occurrence(occurrence, doctor_names)
            for occurrence in occurrences
        ]

    @staticmethod
    def serialize_occurrence(occurrence: Occurrence, doctor_names: Dict[UUID, str]) -> Dict[str, Any]:
        template = occurrence.template
        participants = template.participants or []
        phones = template.phones or []

        return {
            "id": occurrence.occurrence_id,
            "template_id": str(template.id),
            "doctor_id": str(template.doctor_id),
            "doctor_name": doctor_names.get(template.doctor_id, ""),
            "booking_id": template.booking_id,
            "day_index": template.day_index,
            "time_index": template.time_index,
            "end_time_index": template.end_time_index,
            "slot_count": template.slot_count,
            "appointment_date": occurrence.occurrence_date.isoformat(),
            "appointment_type": template.appointment_type,
            "description": template.description or "",
            "participants": [
                {
                    "name": participant.get("name"),
                    "phone": phones[index] if index < len(phones) else None,
                }
                for index, participant in enumerate(participants)
            ],
            "is_recurring": template.is_recurring,
            "is_virtual_instance": occurrence.is_virtual_instance,
            "recurring_parent_id": str(template.recurring_parent_id) if template.recurring_parent_id else None,
            "end_date": template.end_date.date().isoformat() if template.end_date else None,
            "status": template.status,
            "actions": template.actions,
        }
