from datetime import date, datetime

import pytest

from clinic.core.exceptions import ForbiddenException, NotFoundException, ValidationException
from clinic.models.calendar_appointment import AppointmentStatus, CalendarAppointment
from clinic.schemas.calendar_appointments import (
    CalendarAppointmentCreate,
    CalendarAppointmentUpdate,
    DeleteMode,
)
from clinic.services.scheduling.calendar_query_service import CalendarQueryService
from clinic.services.scheduling.series_mutation_service import SeriesMutationService


def week_ids(db, tenant_id, week_start):
    return [o["id"] for o in CalendarQueryService.list_week(db, tenant_id, week_start)]


@pytest.fixture
def series(make_template):
    """Weekly Tuesday 09:00 series starting 2025-01-07, no end."""
    return make_template(date(2025, 1, 7), is_recurring=True)


class TestCreate:

    def test_creates_open_recurring_template(self, db, tenant_id, doctor):
        fields = CalendarAppointmentCreate(
            doctor_id=doctor.id,
            day_index=1,
            time_index=4,
            appointment_date=date(2030, 1, 8),
            participants=[{"name": "Zeynep Kaya"}],
            phones=["05321234567"],
            is_recurring=True,
            end_date=date(2030, 3, 26),
        )

        template = SeriesMutationService.create(db, tenant_id, fields)

        assert template.appointment_date == datetime(2030, 1, 8, 10, 0)
        assert template.end_time_index == 4
        assert template.slot_count == 1
        assert template.booking_id
        assert template.end_date == datetime(2030, 3, 26)
        assert template.status == AppointmentStatus.OPEN.value
        assert template.recurring_exceptions == []

    def test_past_appointment_starts_payment_pending(self, db, tenant_id, doctor):
        fields = CalendarAppointmentCreate(
            doctor_id=doctor.id,
            day_index=0,
            time_index=0,
            appointment_date=date(2024, 1, 1),
            participants=[{"name": "Zeynep Kaya"}],
        )

        template = SeriesMutationService.create(db, tenant_id, fields)

        assert template.status == AppointmentStatus.PAYMENT_PENDING.value
        assert template.action_pay_now is True

    def test_weekday_must_match_day_index(self, db, tenant_id, doctor):
        fields = CalendarAppointmentCreate(
            doctor_id=doctor.id,
            day_index=2,
            time_index=0,
            appointment_date=date(2030, 1, 8),
            participants=[{"name": "Zeynep Kaya"}],
        )

        with pytest.raises(ValidationException) as exc_info:
            SeriesMutationService.create(db, tenant_id, fields)
        assert exc_info.value.code == "day_index_mismatch"
        assert db.query(CalendarAppointment).count() == 0

    def test_one_off_ignores_end_date(self, db, tenant_id, doctor):
        fields = CalendarAppointmentCreate(
            doctor_id=doctor.id,
            day_index=1,
            time_index=0,
            appointment_date=date(2030, 1, 8),
            participants=[{"name": "Zeynep Kaya"}],
            end_date=date(2030, 2, 5),
        )

        template = SeriesMutationService.create(db, tenant_id, fields)

        assert template.is_recurring is False
        assert template.end_date is None


class TestUpdate:

    def test_single_week_edit_splits_off_a_clone(self, db, tenant_id, series):
        patch = CalendarAppointmentUpdate(description="moved room", time_index=8)

        clone = SeriesMutationService.update(
            db, tenant_id, f"{series.id}_instance_2025-01-14", patch
        )

        db.refresh(series)
        assert series.recurring_exceptions == ["2025-01-14"]
        assert series.description == ""
        assert clone.is_recurring is False
        assert clone.recurring_parent_id == series.id
        assert clone.description == "moved room"
        assert clone.booking_id == series.booking_id
        assert clone.appointment_date == datetime(2025, 1, 14, 11, 0)
        assert clone.participants == series.participants

        assert week_ids(db, tenant_id, date(2025, 1, 13)) == [str(clone.id)]
        assert week_ids(db, tenant_id, date(2025, 1, 20)) == [f"{series.id}_instance_2025-01-21"]

    def test_editing_same_week_twice_keeps_one_exception(self, db, tenant_id, series):
        occurrence_id = f"{series.id}_instance_2025-01-14"
        SeriesMutationService.update(db, tenant_id, occurrence_id, CalendarAppointmentUpdate(description="a"))
        SeriesMutationService.update(db, tenant_id, occurrence_id, CalendarAppointmentUpdate(description="b"))

        db.refresh(series)
        assert series.recurring_exceptions == ["2025-01-14"]

    def test_update_all_instances_patches_template(self, db, tenant_id, series):
        patch = CalendarAppointmentUpdate(description="whole series")

        updated = SeriesMutationService.update(
            db, tenant_id, f"{series.id}_instance_2025-01-14", patch, update_all_instances=True
        )

        assert updated.id == series.id
        assert updated.description == "whole series"
        assert updated.recurring_exceptions == []
        assert db.query(CalendarAppointment).count() == 1

    def test_moving_day_rederives_date_in_same_week(self, db, tenant_id, series):
        updated = SeriesMutationService.update(
            db, tenant_id, str(series.id), CalendarAppointmentUpdate(day_index=3, time_index=2)
        )

        assert updated.appointment_date == datetime(2025, 1, 9, 9, 30)
        # Slot length kept when only the start moves
        assert updated.end_time_index == 5
        assert updated.slot_count == 4

    def test_start_near_closing_clamps_end_and_recounts_slots(self, db, tenant_id, series):
        updated = SeriesMutationService.update(
            db, tenant_id, str(series.id), CalendarAppointmentUpdate(time_index=46)
        )

        assert updated.end_time_index == 47
        assert updated.slot_count == 2

    def test_split_recounts_slots_of_the_clone(self, db, tenant_id, series):
        clone = SeriesMutationService.update(
            db, tenant_id, f"{series.id}_instance_2025-01-14", CalendarAppointmentUpdate(time_index=45)
        )

        assert (clone.time_index, clone.end_time_index, clone.slot_count) == (45, 47, 3)
        db.refresh(series)
        assert series.slot_count == 4

    @pytest.mark.parametrize("instance_day", ["2025-01-15", "2024-12-31"])
    def test_split_outside_the_series_is_rejected(self, db, tenant_id, series, instance_day):
        with pytest.raises(ValidationException) as exc_info:
            SeriesMutationService.update(
                db, tenant_id, f"{series.id}_instance_{instance_day}", CalendarAppointmentUpdate(description="x")
            )
        assert exc_info.value.code == "not_a_series_week"

        db.refresh(series)
        assert series.recurring_exceptions == []
        assert db.query(CalendarAppointment).count() == 1

    def test_phone_count_must_match_participants(self, db, tenant_id, series):
        patch = CalendarAppointmentUpdate(phones=["05321234567", "05329876543"])

        with pytest.raises(ValidationException) as exc_info:
            SeriesMutationService.update(db, tenant_id, str(series.id), patch)
        assert exc_info.value.code == "phone_participant_mismatch"

        db.refresh(series)
        assert series.phones == ["05321234567"]

    def test_single_week_of_one_off_is_rejected(self, db, tenant_id, make_template):
        one_off = make_template(date(2025, 1, 7))

        with pytest.raises(ValidationException):
            SeriesMutationService.update(
                db, tenant_id, f"{one_off.id}_instance_2025-01-14", CalendarAppointmentUpdate(description="x")
            )

    def test_cross_tenant_update_is_forbidden(self, db, other_tenant_id, series):
        with pytest.raises(ForbiddenException):
            SeriesMutationService.update(
                db, other_tenant_id, str(series.id), CalendarAppointmentUpdate(description="x")
            )

        db.refresh(series)
        assert series.description == ""

    def test_unknown_template_is_not_found(self, db, tenant_id, series):
        series_id = series.id
        db.delete(series)
        db.commit()

        with pytest.raises(NotFoundException):
            SeriesMutationService.update(
                db, tenant_id, str(series_id), CalendarAppointmentUpdate(description="x")
            )


class TestDelete:

    def test_single_skips_only_that_week(self, db, tenant_id, series):
        SeriesMutationService.delete(db, tenant_id, f"{series.id}_instance_2025-01-14", DeleteMode.SINGLE)

        db.refresh(series)
        assert series.recurring_exceptions == ["2025-01-14"]
        assert series.end_date is None
        assert week_ids(db, tenant_id, date(2025, 1, 13)) == []
        assert len(week_ids(db, tenant_id, date(2025, 1, 20))) == 1

    def test_after_this_truncates_the_series(self, db, tenant_id, series):
        SeriesMutationService.delete(db, tenant_id, f"{series.id}_instance_2025-01-21", DeleteMode.AFTER_THIS)

        db.refresh(series)
        assert series.end_date == datetime(2025, 1, 20)
        assert "2025-01-21" in series.recurring_exceptions
        assert week_ids(db, tenant_id, date(2025, 1, 27)) == []
        assert week_ids(db, tenant_id, date(2025, 1, 13)) == [f"{series.id}_instance_2025-01-14"]

    def test_after_this_past_the_end_keeps_the_series_short(self, db, tenant_id, make_template):
        ended = make_template(date(2025, 1, 7), is_recurring=True, end_date=date(2025, 1, 20))

        with pytest.raises(ValidationException) as exc_info:
            SeriesMutationService.delete(db, tenant_id, f"{ended.id}_instance_2025-02-11", DeleteMode.AFTER_THIS)
        assert exc_info.value.code == "not_a_series_week"

        db.refresh(ended)
        assert ended.end_date == datetime(2025, 1, 20)
        assert ended.recurring_exceptions == []
        assert week_ids(db, tenant_id, date(2025, 1, 27)) == []

    def test_after_this_on_a_skipped_week_still_truncates(self, db, tenant_id, series):
        SeriesMutationService.delete(db, tenant_id, f"{series.id}_instance_2025-01-21", DeleteMode.SINGLE)
        SeriesMutationService.delete(db, tenant_id, f"{series.id}_instance_2025-01-21", DeleteMode.AFTER_THIS)

        db.refresh(series)
        assert series.recurring_exceptions == ["2025-01-21"]
        assert series.end_date == datetime(2025, 1, 20)

    def test_single_on_an_off_weekday_is_rejected(self, db, tenant_id, series):
        with pytest.raises(ValidationException):
            SeriesMutationService.delete(db, tenant_id, f"{series.id}_instance_2025-01-16", DeleteMode.SINGLE)

        db.refresh(series)
        assert series.recurring_exceptions == []

    def test_all_series_removes_every_week(self, db, tenant_id, series):
        SeriesMutationService.delete(db, tenant_id, f"{series.id}_instance_2025-01-14", DeleteMode.ALL_SERIES)

        assert db.query(CalendarAppointment).count() == 0
        for week_start in (date(2025, 1, 6), date(2025, 1, 13), date(2026, 6, 1)):
            assert week_ids(db, tenant_id, week_start) == []

    def test_concrete_id_deletes_the_row(self, db, tenant_id, make_template):
        one_off = make_template(date(2025, 1, 7))

        SeriesMutationService.delete(db, tenant_id, str(one_off.id), DeleteMode.SINGLE)

        assert db.query(CalendarAppointment).count() == 0

    def test_cross_tenant_delete_is_forbidden(self, db, other_tenant_id, series):
        with pytest.raises(ForbiddenException):
            SeriesMutationService.delete(db, other_tenant_id, str(series.id), DeleteMode.ALL_SERIES)
        assert db.query(CalendarAppointment).count() == 1
