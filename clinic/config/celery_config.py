# clinic/config/celery_config.py
"""Celery application factory and beat schedule"""
from celery import Celery
from celery.schedules import crontab

from clinic.config.settings import get_settings

settings = get_settings()


def create_celery_app() -> Celery:
    """Create and configure the Celery application"""
    app = Celery(
        "clinic",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
        include=["clinic.tasks.status_tasks"],
    )

    app.conf.update(
        task_serializer=settings.CELERY_TASK_SERIALIZER,
        result_serializer="json",
        accept_content=["json"],
        timezone=settings.CLINIC_TIMEZONE,
        enable_utc=True,
        task_acks_late=True,
        worker_prefetch_multiplier=1,
    )

    # Hourly, on the hour
    app.conf.beat_schedule = {
        "sweep-overdue-appointment-statuses": {
            "task": "clinic.tasks.status_tasks.sweep_overdue_statuses",
            "schedule": crontab(minute=0),
        },
    }

    return app


celery_app = create_celery_app()
