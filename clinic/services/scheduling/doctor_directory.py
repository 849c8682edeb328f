# clinic/services/scheduling/doctor_directory.py
"""Doctor id -> display name lookups, batched per request"""
from typing import Dict, Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from clinic.models.staff_user import StaffUser


class DoctorDirectory:

    @staticmethod
    def get_display_names(db: Session, doctor_ids: Iterable[UUID]) -> Dict[UUID, str]:
        """One query for every distinct doctor id; unknown ids are simply absent."""
        ids = {doctor_id for doctor_id in doctor_ids if doctor_id is not None}
        if not ids:
            return {}

        rows = db.query(StaffUser.id, StaffUser.first_name, StaffUser.last_name).filter(
            StaffUser.id.in_(ids)
        ).all()

        return {
            row.id: f"{row.first_name or ''} {row.last_name or ''}".strip()
            for row in rows
        }
