# ============================================================================
# FILE: clinic/services/scheduling/recurrence.py
# Pure projection of calendar templates onto one week - no database access
# ============================================================================
"""
Given the stored rows of a week and the recurring templates that may reach
into it, work out which occurrences the calendar shows.

Templates are read through attributes only (``id``, ``doctor_id``,
``day_index``, ``time_index``, ``appointment_date``, ``end_date``,
``is_recurring``, ``exception_dates``), so ORM rows and plain objects both work.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Iterable, List, Optional

from clinic.services.scheduling.occurrence_ids import format_virtual_id
from clinic.services.scheduling.week_grid import DAYS_PER_WEEK, ensure_week_start


@dataclass
class Occurrence:
    occurrence_id: str
    template: Any
    occurrence_date: date
    is_virtual_instance: bool

    @property
    def sort_key(self):
        return (self.template.day_index, self.template.time_index, self.occurrence_id)


def _as_date(value) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value


def _exception_dates(template) -> set:
    return set(getattr(template, "exception_dates", None) or ())


def _within_bounds(template, day: date) -> bool:
    start = _as_date(template.appointment_date)
    end = _as_date(template.end_date)
    if start is not None and day < start:
        return False
    return end is None or day <= end


def is_within_series(template, day: date) -> bool:
    """True if ``day`` lies in the series bounds and is not skipped."""
    return _within_bounds(template, day) and day not in _exception_dates(template)


def is_series_week(template, day: date) -> bool:
    """True if the series has a week on ``day``, skipped or not."""
    return day.weekday() == template.day_index and _within_bounds(template, day)


def project_template(template, week_start: date) -> Optional[date]:
    """Date a recurring template falls on in the week, or None if it is skipped."""
    projected = week_start + timedelta(days=template.day_index)
    if not is_within_series(template, projected):
        return None
    return projected


def is_concrete_visible(template) -> bool:
    """A stored recurring anchor obeys the same bounds as its projections."""
    if not template.is_recurring:
        return True
    return is_within_series(template, _as_date(template.appointment_date))


def _slot_key(template, day: date):
    return (template.day_index, template.time_index, day)


def expand_week(
        concrete: Iterable[Any],
        recurring: Iterable[Any],
        week_start: date,
) -> List[Occurrence]:
    """
    Merge stored rows of the week with projected recurring occurrences.

    A recurring template is not projected when a stored row already occupies
    the same weekday, slot and calendar day (its own anchor week, a
    single-week edit materialized from it, or another booking).
    """
    week_start = ensure_week_start(week_start)
    week_end = week_start + timedelta(days=DAYS_PER_WEEK)

    occurrences: List[Occurrence] = []
    occupied = set()
    concrete_ids = set()

    for template in concrete:
        day = _as_date(template.appointment_date)
        if not (week_start <= day < week_end):
            continue
        if not is_concrete_visible(template):
            continue
        occurrences.append(Occurrence(
            occurrence_id=str(template.id),
            template=template,
            occurrence_date=day,
            is_virtual_instance=False,
        ))
        occupied.add(_slot_key(template, day))
        concrete_ids.add(template.id)

    for template in recurring:
        if not template.is_recurring or template.id in concrete_ids:
            continue
        projected = project_template(template, week_start)
        if projected is None:
            continue
        if _slot_key(template, projected) in occupied:
            continue
        occurrences.append(Occurrence(
            occurrence_id=format_virtual_id(template.id, projected),
            template=template,
            occurrence_date=projected,
            is_virtual_instance=True,
        ))

    occurrences.sort(key=lambda occurrence: occurrence.sort_key)
    return occurrences
