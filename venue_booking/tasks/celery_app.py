"""
Celery application configuration for background tasks.
"""

from celery import Celery
from ..config import get_settings

settings = get_settings()

# Create Celery app
celery_app = Celery(
    "venue_booking",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "venue_booking.tasks.notification_tasks",
    ]
)

# Notifications are fire-and-forget; results are not consulted
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_ignore_result=True,
    task_time_limit=60,
    task_soft_time_limit=30,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)
