# ============================================================================
# FILE: clinic/services/scheduling/series_mutation_service.py
# Write side of the calendar: templates, exceptions and single-week clones
# ============================================================================
"""
A recurring series is a single ``CalendarAppointment`` row. Changing one week
of it never copies the series: the week is added to the template's exceptions
and, for an edit, a standalone non-recurring row is created for that date.

Writes against one series run under its series lock and commit once, so an
exception and its replacement row land together or not at all.
"""
import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from clinic.core.exceptions import ForbiddenException, NotFoundException, ValidationException
from clinic.models.calendar_appointment import AppointmentStatus, CalendarAppointment, actions_for_status
from clinic.schemas.calendar_appointments import (
    CalendarAppointmentCreate,
    CalendarAppointmentUpdate,
    DeleteMode,
)
from clinic.services.locking import series_lock
from clinic.services.scheduling.occurrence_ids import ConcreteId, VirtualId, parse_occurrence_id
from clinic.services.scheduling.recurrence import is_series_week
from clinic.services.scheduling.week_grid import MAX_TIME_INDEX, day_in_week, local_now, slot_datetime

logger = logging.getLogger(__name__)

# Fields a clone inherits from its parent when the patch leaves them unset
_CLONED_FIELDS = (
    "doctor_id",
    "day_index",
    "time_index",
    "end_time_index",
    "slot_count",
    "appointment_type",
    "participants",
    "phones",
    "description",
    "booking_id",
    "status",
    "action_pay_now",
    "action_re_book",
    "action_edit",
    "action_view",
)


def _end_of_series(day: Optional[date]) -> Optional[datetime]:
    return datetime.combine(day, datetime.min.time()) if day else None


def _slot_count(time_index: int, end_time_index: Optional[int], current: Optional[int]) -> Optional[int]:
    if end_time_index is None:
        return current
    return end_time_index - time_index + 1


def _patch_changes(patch: CalendarAppointmentUpdate) -> Dict[str, Any]:
    # An explicit null only means something for end_date (open-ended series)
    return {
        name: value
        for name, value in patch.model_dump(exclude_unset=True).items()
        if value is not None or name == "end_date"
    }


class SeriesMutationService:
    """Create, update and delete calendar appointments and series weeks"""

    # ------------------------------------------------------------------ create

    @staticmethod
    def create(db: Session, tenant_id: UUID, fields: CalendarAppointmentCreate) -> CalendarAppointment:
        """Create a one-off appointment or the template of a weekly series."""
        if fields.appointment_date.weekday() != fields.day_index:
            raise ValidationException(
                "appointment_date does not fall on day_index",
                code="day_index_mismatch",
                details={
                    "appointment_date": fields.appointment_date.isoformat(),
                    "day_index": fields.day_index,
                },
            )

        end_time_index = fields.end_time_index if fields.end_time_index is not None else fields.time_index
        appointment_date = slot_datetime(fields.appointment_date, fields.time_index)

        # Past appointments start out waiting for payment
        status = AppointmentStatus.OPEN
        if appointment_date < local_now():
            status = AppointmentStatus.PAYMENT_PENDING
        actions = actions_for_status(status)

        template = CalendarAppointment(
            id=uuid.uuid4(),
            tenant_id=tenant_id,
            doctor_id=fields.doctor_id,
            booking_id=fields.booking_id or uuid.uuid4().hex,
            day_index=fields.day_index,
            time_index=fields.time_index,
            end_time_index=end_time_index,
            slot_count=fields.slot_count or (end_time_index - fields.time_index + 1),
            appointment_date=appointment_date,
            appointment_type=fields.appointment_type,
            participants=[participant.model_dump() for participant in fields.participants],
            phones=list(fields.phones),
            description=fields.description,
            is_recurring=fields.is_recurring,
            end_date=_end_of_series(fields.end_date) if fields.is_recurring else None,
            recurring_exceptions=[],
            status=status.value,
            action_pay_now=actions["pay_now"],
            action_re_book=actions["re_book"],
            action_edit=actions["edit"],
            action_view=actions["view"],
        )

        db.add(template)
        db.commit()
        db.refresh(template)

        logger.info(
            f"Created {'recurring' if template.is_recurring else 'one-off'} appointment {template.id} "
            f"for tenant {tenant_id} (booking {template.booking_id})"
        )
        return template

    # ------------------------------------------------------------------ update

    @staticmethod
    def update(
            db: Session,
            tenant_id: UUID,
            occurrence_id: str,
            patch: CalendarAppointmentUpdate,
            update_all_instances: bool = False
    ) -> CalendarAppointment:
        """
        Apply ``patch`` to an occurrence.

        Concrete ids and ``update_all_instances`` patch the stored row (for a
        series: every past and future week). Otherwise one week of a series is
        split off into its own row and skipped on the template.
        """
        target = parse_occurrence_id(occurrence_id)

        with series_lock(target.parent_id):
            template = SeriesMutationService._load_for_write(db, tenant_id, target.parent_id)

            if isinstance(target, ConcreteId) or update_all_instances:
                SeriesMutationService._apply_patch(template, patch)
                db.commit()
                db.refresh(template)
                logger.info(f"Updated appointment {template.id} (all_instances={update_all_instances})")
                return template

            clone = SeriesMutationService._split_instance(db, template, target, patch)
            db.commit()
            db.refresh(clone)
            logger.info(
                f"Split week {target.instance_date.isoformat()} of series {template.id} into {clone.id}"
            )
            return clone

    @staticmethod
    def _split_instance(
            db: Session,
            template: CalendarAppointment,
            target: VirtualId,
            patch: CalendarAppointmentUpdate
    ) -> CalendarAppointment:
        SeriesMutationService._check_series_week(template, target)

        values: Dict[str, Any] = {name: getattr(template, name) for name in _CLONED_FIELDS}
        changes = _patch_changes(patch)
        changes.pop("is_recurring", None)
        changes.pop("end_date", None)
        if "participants" in changes:
            changes["participants"] = [{"name": p["name"]} for p in changes["participants"]]
        values.update(changes)
        if "time_index" in changes and "end_time_index" not in changes and template.end_time_index is not None:
            values["end_time_index"] = min(
                template.end_time_index + changes["time_index"] - template.time_index, MAX_TIME_INDEX
            )
        if "slot_count" not in changes:
            values["slot_count"] = _slot_count(values["time_index"], values["end_time_index"], values["slot_count"])

        SeriesMutationService._check_slot_range(values["time_index"], values["end_time_index"])
        SeriesMutationService._check_phones_match(values["participants"], values["phones"])

        # Day and slot may move inside the instance's week
        instance_day = day_in_week(target.instance_date, values["day_index"])

        if not template.add_exception(target.instance_date):
            logger.warning(
                f"Week {target.instance_date.isoformat()} already skipped on series {template.id}"
            )

        clone = CalendarAppointment(
            id=uuid.uuid4(),
            tenant_id=template.tenant_id,
            is_recurring=False,
            recurring_parent_id=template.id,
            appointment_date=slot_datetime(instance_day, values["time_index"]),
            end_date=None,
            recurring_exceptions=[],
            **values,
        )
        db.add(clone)
        return clone

    @staticmethod
    def _apply_patch(template: CalendarAppointment, patch: CalendarAppointmentUpdate) -> None:
        changes = _patch_changes(patch)

        if "participants" in changes:
            changes["participants"] = [{"name": p["name"]} for p in changes["participants"]]
        if "end_date" in changes:
            changes["end_date"] = _end_of_series(changes["end_date"])

        time_index = changes.get("time_index", template.time_index)
        end_time_index = changes.get("end_time_index", template.end_time_index)
        if "time_index" in changes and "end_time_index" not in changes and end_time_index is not None:
            # Keep the slot length when only the start moves
            end_time_index = min(end_time_index + time_index - template.time_index, MAX_TIME_INDEX)
            changes["end_time_index"] = end_time_index
        if "slot_count" not in changes and {"time_index", "end_time_index"} & changes.keys():
            changes["slot_count"] = _slot_count(time_index, end_time_index, template.slot_count)
        SeriesMutationService._check_slot_range(time_index, end_time_index)
        SeriesMutationService._check_phones_match(
            changes.get("participants", template.participants),
            changes.get("phones", template.phones),
        )

        day_index = changes.get("day_index", template.day_index)
        appointment_date = template.appointment_date
        if day_index != template.day_index or time_index != template.time_index:
            new_day = day_in_week(template.appointment_date.date(), day_index)
            appointment_date = slot_datetime(new_day, time_index)

        end_date = changes.get("end_date", template.end_date)
        if end_date is not None and end_date.date() < appointment_date.date():
            raise ValidationException(
                "end_date must not be before appointment_date",
                code="invalid_end_date",
            )

        for name, value in changes.items():
            setattr(template, name, value)
        template.appointment_date = appointment_date

    # ------------------------------------------------------------------ delete

    @staticmethod
    def delete(
            db: Session,
            tenant_id: UUID,
            occurrence_id: str,
            mode: DeleteMode = DeleteMode.SINGLE
    ) -> None:
        """
        Remove an occurrence.

        ``allSeries`` drops the template, ``afterThis`` skips the week and ends
        the series the day before it, ``single`` only skips the week. Concrete
        ids are always deleted outright.
        """
        target = parse_occurrence_id(occurrence_id)
        mode = DeleteMode(mode)

        with series_lock(target.parent_id):
            template = SeriesMutationService._load_for_write(db, tenant_id, target.parent_id)

            if isinstance(target, ConcreteId) or mode == DeleteMode.ALL_SERIES:
                template_id = template.id
                db.delete(template)
                db.commit()
                logger.info(f"Deleted appointment {template_id} ({mode.value})")
                return

            SeriesMutationService._check_series_week(template, target)

            if not template.add_exception(target.instance_date):
                logger.warning(
                    f"Week {target.instance_date.isoformat()} already skipped on series {template.id}"
                )

            if mode == DeleteMode.AFTER_THIS:
                last_day = target.instance_date - timedelta(days=1)
                # Never lengthen a series that already ends earlier
                if template.end_date is not None:
                    last_day = min(last_day, template.end_date.date())
                template.end_date = _end_of_series(last_day)

            db.commit()
            logger.info(
                f"Removed week {target.instance_date.isoformat()} of series {template.id} ({mode.value})"
            )

    # ------------------------------------------------------------------ helpers

    @staticmethod
    def get_template(db: Session, tenant_id: UUID, template_id: UUID) -> CalendarAppointment:
        return SeriesMutationService._load_for_write(db, tenant_id, template_id)

    @staticmethod
    def _load_for_write(db: Session, tenant_id: UUID, template_id: UUID) -> CalendarAppointment:
        template = db.query(CalendarAppointment).filter(CalendarAppointment.id == template_id).first()
        if not template:
            raise NotFoundException(
                "Appointment not found",
                code="appointment_not_found",
                details={"appointment_id": str(template_id)},
            )
        if template.tenant_id != tenant_id:
            raise ForbiddenException(
                "No access to another clinic's appointments",
                code="cross_tenant_access",
            )
        return template

    @staticmethod
    def _check_series_week(template: CalendarAppointment, target: VirtualId) -> None:
        if not template.is_recurring:
            raise ValidationException(
                "Only recurring appointments have weekly instances",
                code="not_recurring",
            )
        if not is_series_week(template, target.instance_date):
            raise ValidationException(
                "The series has no occurrence on this date",
                code="not_a_series_week",
                details={
                    "appointment_id": str(template.id),
                    "instance_date": target.instance_date.isoformat(),
                },
            )

    @staticmethod
    def _check_slot_range(time_index: int, end_time_index: Optional[int]) -> None:
        if end_time_index is not None and end_time_index < time_index:
            raise ValidationException(
                "end_time_index must not be before time_index",
                code="invalid_slot_range",
            )

    @staticmethod
    def _check_phones_match(participants, phones) -> None:
        if phones and len(phones) != len(participants or []):
            raise ValidationException(
                "phones must have one entry per participant",
                code="phone_participant_mismatch",
            )

    @staticmethod
    def serialize_template(template: CalendarAppointment) -> Dict[str, Any]:
        return {
            "id": str(template.id),
            "tenant_id": str(template.tenant_id),
            "doctor_id": str(template.doctor_id),
            "booking_id": template.booking_id,
            "day_index": template.day_index,
            "time_index": template.time_index,
            "end_time_index": template.end_time_index,
            "slot_count": template.slot_count,
            "appointment_date": template.appointment_date.isoformat(),
            "appointment_type": template.appointment_type,
            "participants": template.participants or [],
            "phones": template.phones or [],
            "description": template.description or "",
            "is_recurring": template.is_recurring,
            "end_date": template.end_date.date().isoformat() if template.end_date else None,
            "recurring_parent_id": str(template.recurring_parent_id) if template.recurring_parent_id else None,
            "recurring_exceptions": list(template.recurring_exceptions or []),
            "status": template.status,
            "actions": template.actions,
            "sms_immediate_sent": template.sms_immediate_sent,
            "sms_reminder_sent": template.sms_reminder_sent,
        }
