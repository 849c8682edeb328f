# ============================================================================
# FILE: clinic/models/staff_user.py
# Clinic staff; doctors double as the doctor directory for the calendar
# ============================================================================
from sqlalchemy import Column, String, Boolean, DateTime, Uuid, Enum as SQLEnum
from sqlalchemy.sql import func
import uuid
import enum
from clinic.models.base import Base


class StaffRole(str, enum.Enum):
    """Roles within a clinic tenant."""
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    MANAGER = "manager"
    CONSULTANT = "consultant"
    DOCTOR = "doctor"   # Read-only on the calendar


class StaffUser(Base):
    __tablename__ = "staff_users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), nullable=False, index=True)

    username = Column(String(150), nullable=False)
    first_name = Column(String(150), nullable=False)
    last_name = Column(String(150), nullable=False)
    phone_number = Column(String(20), nullable=True)

    role = Column(SQLEnum(StaffRole), default=StaffRole.CONSULTANT, nullable=False, index=True)

    # Status flags
    is_active = Column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def can_edit_calendar(self) -> bool:
        """Doctors may view the calendar but never write to it."""
        return self.role != StaffRole.DOCTOR

    def __repr__(self):
        return f"<StaffUser {self.username} ({self.role})>"
