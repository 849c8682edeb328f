import os

# Must be set before any clinic module builds the engine or reads settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOCK_BACKEND"] = "memory"
os.environ["LOG_LEVEL"] = "WARNING"

import uuid
from datetime import date, datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinic.api.dependencies import create_access_token
from clinic.config.database import get_db
from clinic.main import app
from clinic.models import Base, CalendarAppointment, ClinicService, StaffRole, StaffUser
from clinic.models.calendar_appointment import AppointmentStatus, actions_for_status
from clinic.services.scheduling.week_grid import slot_datetime


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def tenant_id():
    return uuid.uuid4()


@pytest.fixture
def other_tenant_id():
    return uuid.uuid4()


def _staff(db, tenant_id, role, first_name, last_name):
    user = StaffUser(
        id=uuid.uuid4(),
        tenant_id=tenant_id,
        username=f"{first_name.lower()}.{last_name.lower()}",
        first_name=first_name,
        last_name=last_name,
        role=role,
        is_active=True,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def doctor(db, tenant_id):
    return _staff(db, tenant_id, StaffRole.DOCTOR, "Ayse", "Yilmaz")


@pytest.fixture
def admin(db, tenant_id):
    return _staff(db, tenant_id, StaffRole.ADMIN, "Mehmet", "Demir")


@pytest.fixture
def services(db, tenant_id):
    consultation = ClinicService(
        id=uuid.uuid4(), tenant_id=tenant_id, name="Consultation", fee=Decimal("600.00"), is_active=True
    )
    therapy = ClinicService(
        id=uuid.uuid4(), tenant_id=tenant_id, name="Therapy", fee=Decimal("400.00"), is_active=True
    )
    db.add_all([consultation, therapy])
    db.commit()
    return [consultation, therapy]


@pytest.fixture
def make_template(db, tenant_id, doctor):
    """Insert a calendar appointment row directly, bypassing the service."""

    def _make(
            appointment_day: date,
            time_index: int = 0,
            is_recurring: bool = False,
            end_date: date = None,
            booking_id: str = None,
            status: AppointmentStatus = AppointmentStatus.OPEN,
            exceptions=None,
            tenant=None,
            doctor_id=None,
            recurring_parent_id=None,
    ) -> CalendarAppointment:
        actions = actions_for_status(status)
        template = CalendarAppointment(
            id=uuid.uuid4(),
            tenant_id=tenant or tenant_id,
            doctor_id=doctor_id or doctor.id,
            booking_id=booking_id or uuid.uuid4().hex,
            day_index=appointment_day.weekday(),
            time_index=time_index,
            end_time_index=time_index + 3,
            slot_count=4,
            appointment_date=slot_datetime(appointment_day, time_index),
            appointment_type="therapy",
            participants=[{"name": "Zeynep Kaya"}],
            phones=["05321234567"],
            description="",
            is_recurring=is_recurring,
            end_date=datetime.combine(end_date, datetime.min.time()) if end_date else None,
            recurring_parent_id=recurring_parent_id,
            recurring_exceptions=list(exceptions or []),
            status=status.value,
            action_pay_now=actions["pay_now"],
            action_re_book=actions["re_book"],
            action_edit=actions["edit"],
            action_view=actions["view"],
        )
        db.add(template)
        db.commit()
        db.refresh(template)
        return template

    return _make


@pytest.fixture
def client(engine):
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    def override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers(user: StaffUser) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def doctor_headers(doctor):
    return auth_headers(doctor)


@pytest.fixture
def headers_for():
    return auth_headers
