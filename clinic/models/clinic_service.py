# clinic/models/clinic_service.py
"""
ClinicService Model - priced services a payment is taken for.
A payment's service fee is the sum of the fees of its services.
"""
from sqlalchemy import Column, String, Numeric, Boolean, DateTime, Text, Uuid
from sqlalchemy.sql import func
import uuid
from clinic.models.base import Base


class ClinicService(Base):
    __tablename__ = "clinic_services"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), nullable=False, index=True)

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    fee = Column(Numeric(10, 2), nullable=False, default=0)

    is_active = Column(Boolean, default=True, index=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    def __repr__(self):
        return f"<ClinicService(id={self.id}, name={self.name}, tenant_id={self.tenant_id})>"

