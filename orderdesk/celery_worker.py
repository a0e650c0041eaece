"""
Celery Worker Configuration
Sets up Celery with Redis as message broker and result backend.

Start a worker with:
    celery -A orderdesk.celery_worker worker --loglevel=info
"""

from celery import Celery

from orderdesk.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "orderdesk_worker",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["orderdesk.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    worker_prefetch_multiplier=1,  # Spreadsheet writes are serialized by a lock anyway
    worker_concurrency=2,

    result_expires=3600,

    task_acks_late=True,  # Acknowledge task after completion
    task_reject_on_worker_lost=True,  # Requeue task if worker dies

    broker_connection_retry_on_startup=True,
)


if __name__ == "__main__":
    celery_app.start()
