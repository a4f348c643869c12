# backend/modules/pos/tasks/celery_config.py

"""
Celery configuration for outbound POS sync tasks.

Tasks are acknowledged only after they finish and are requeued if the
worker dies, so a shutdown never loses in-flight syncs. Each worker takes
one task at a time because a single sync can hold a connection for up to
the two-minute time limit.
"""

from celery import Celery
from kombu import Queue

from core.config import settings
from .policies import task_routes

# Create Celery app
celery_app = Celery(
    "pos_sync",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["modules.pos.tasks.sync_tasks"]
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Result backend settings
    result_expires=3600,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=120,
    task_soft_time_limit=110,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)

# Priority lanes
celery_app.conf.task_queues = (
    Queue("high"),
    Queue("default"),
    Queue("low"),
)
celery_app.conf.task_default_queue = "default"
celery_app.conf.task_routes = task_routes()


def get_celery_app() -> Celery:
    """Get configured Celery app instance."""
    return celery_app
