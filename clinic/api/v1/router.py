"""
API v1 router setup
All routes require a staff JWT; writes additionally exclude the doctor role
"""
from fastapi import APIRouter

from clinic.api.v1 import calendar_appointments, payments

api_v1_router = APIRouter()

api_v1_router.include_router(
    calendar_appointments.router,
    tags=["Calendar"]
)

api_v1_router.include_router(
    payments.router,
    tags=["Payments"]
)
