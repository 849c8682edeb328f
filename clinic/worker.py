"""
Celery worker entry point
Runs the hourly status sweep
"""
import logging
from celery.signals import worker_ready, worker_shutdown

from clinic.config.celery_config import celery_app
from clinic.utils.my_logging import setup_logging

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)

# Registers the tasks on celery_app
import clinic.tasks.status_tasks  # noqa: E402,F401


@worker_ready.connect
def worker_ready_handler(sender=None, **kwargs):
    """Handle worker startup"""
    logger.info("Celery worker ready")
    logger.info(f"Registered tasks: {[name for name in celery_app.tasks.keys() if name.startswith('clinic.')]}")


@worker_shutdown.connect
def worker_shutdown_handler(sender=None, **kwargs):
    """Handle worker shutdown"""
    logger.info("Celery worker shutting down...")


if __name__ == "__main__":
    # Worker with embedded beat for the hourly sweep
    celery_app.start([
        'worker',
        '--beat',
        '--loglevel=info',
        '--concurrency=2',
        '--max-tasks-per-child=1000'
    ])
