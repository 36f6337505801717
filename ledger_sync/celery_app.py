from celery import Celery, signals
import logging

from ledger_sync.config import settings
from ledger_sync.logging_config import configure_logging

celery_app = Celery(
    "ledger_sync_workers",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["ledger_sync.workers.tasks"],
)

celery_app.conf.update(
    task_track_started=True,
    task_time_limit=settings.CELERY_TASK_TIME_LIMIT,
    task_soft_time_limit=settings.CELERY_TASK_SOFT_TIME_LIMIT,
    worker_prefetch_multiplier=1,  # Fetch one task at a time
    worker_max_tasks_per_child=1000,  # Restart worker after 1000 tasks (prevent memory leaks)
    result_expires=3600,  # Results expire after 1 hour
    task_serializer='json',
    result_serializer='json',
    accept_content=['json'],
    timezone='UTC',
    enable_utc=True,
    worker_hijack_root_logger=False,
)


@signals.worker_process_init.connect
def worker_process_init(**kwargs):
    configure_logging()
    logging.getLogger(__name__).info("Worker process initialized")
