# ===== clinic/models/payment.py =====
from typing import Optional
import enum
import uuid

from sqlalchemy import Column, String, Boolean, Text, Date, DateTime, Numeric, JSON, Uuid, ForeignKey
from sqlalchemy.sql import func

from clinic.models.base import Base


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"

    @classmethod
    def from_label(cls, label: Optional[str]) -> Optional["PaymentStatus"]:
        """Normalize the status labels older clients still send."""
        if label is None:
            return None
        if isinstance(label, PaymentStatus):
            return label
        normalized = _LEGACY_STATUS_LABELS.get(label.strip().casefold())
        if normalized is None:
            raise ValueError(f"Unknown payment status: {label}")
        return normalized


_LEGACY_STATUS_LABELS = {
    "pending": PaymentStatus.PENDING,
    "payment_pending": PaymentStatus.PENDING,
    "open": PaymentStatus.PENDING,
    "ödeme bekleniyor": PaymentStatus.PENDING,
    "açık": PaymentStatus.PENDING,
    "completed": PaymentStatus.COMPLETED,
    "tamamlandı": PaymentStatus.COMPLETED,
}


class PaymentPeriod(str, enum.Enum):
    SINGLE = "single"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    BIANNUAL = "biannual"


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # References
    tenant_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    doctor_id = Column(Uuid(as_uuid=True), ForeignKey("staff_users.id"), nullable=False)
    appointment_id = Column(Uuid(as_uuid=True), nullable=False, index=True)  # always a template id
    service_ids = Column(JSON, default=list)

    payment_method = Column(String(50), nullable=False)
    payment_amount = Column(Numeric(10, 2), nullable=False)
    payment_date = Column(DateTime, nullable=False)
    payment_status = Column(String(30), default=PaymentStatus.PENDING.value, nullable=False)
    payment_description = Column(Text, nullable=True)

    service_fee = Column(Numeric(10, 2), nullable=False)
    service_description = Column(Text, nullable=False, default="")

    # Billing period
    payment_period = Column(String(20), nullable=True)  # NULL on rows older than billing periods
    period_end_date = Column(DateTime, nullable=True)
    occurrence_date = Column(Date, nullable=True)  # occurrence the period is counted from

    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Payment(id={self.id}, appointment_id={self.appointment_id}, amount={self.payment_amount})>"
