# ============================================================================
# FILE: clinic/services/scheduling/occurrence_ids.py
# Occurrence identities and their wire format
# ============================================================================
"""
An occurrence is either a stored calendar appointment (``ConcreteId``) or one
week of a recurring series that only exists at read time (``VirtualId``).

On the wire a virtual occurrence is ``"{template_id}_instance_{yyyy-mm-dd}"``.
Parse at the boundary, pass the typed value around, format on the way out.
"""
from dataclasses import dataclass
from datetime import date
from typing import Union
from uuid import UUID

from clinic.core.exceptions import ValidationException

INSTANCE_SEPARATOR = "_instance_"


@dataclass(frozen=True)
class ConcreteId:
    template_id: UUID

    @property
    def parent_id(self) -> UUID:
        return self.template_id

    def __str__(self) -> str:
        return str(self.template_id)


@dataclass(frozen=True)
class VirtualId:
    parent_id: UUID
    instance_date: date

    def __str__(self) -> str:
        return f"{self.parent_id}{INSTANCE_SEPARATOR}{self.instance_date.isoformat()}"


OccurrenceId = Union[ConcreteId, VirtualId]


def _parse_uuid(raw: str, original: str) -> UUID:
    try:
        return UUID(raw)
    except (ValueError, AttributeError):
        raise ValidationException(
            f"Invalid occurrence id: {original}",
            code="invalid_occurrence_id",
        )


def parse_occurrence_id(raw: str) -> OccurrenceId:
    """Parse a concrete or virtual occurrence id."""
    if not raw:
        raise ValidationException("Occurrence id is required", code="invalid_occurrence_id")

    if INSTANCE_SEPARATOR not in raw:
        return ConcreteId(_parse_uuid(raw, raw))

    parent_part, date_part = raw.split(INSTANCE_SEPARATOR, 1)
    try:
        instance_date = date.fromisoformat(date_part)
    except ValueError:
        raise ValidationException(
            f"Invalid occurrence date in id: {raw}",
            code="invalid_occurrence_id",
        )
    return VirtualId(_parse_uuid(parent_part, raw), instance_date)


def format_virtual_id(template_id: UUID, instance_date: date) -> str:
    return str(VirtualId(template_id, instance_date))
