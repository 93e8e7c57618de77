from celery import Celery
from celery.signals import setup_logging as celery_setup_logging
from ticketbridge.core.config import get_settings
from ticketbridge.core.logging import setup_logging

settings = get_settings()

celery_app = Celery(
    "ticketbridge",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "ticketbridge.tasks.zendesk_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=10 * 60,  # 10 minutes
    task_soft_time_limit=8 * 60,  # 8 minutes
    # Sync jobs must survive a worker crash mid-run
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    result_expires=3600,  # 1 hour
    broker_connection_retry_on_startup=True,
)


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    setup_logging(settings.log_level)


if __name__ == "__main__":
    celery_app.start()
