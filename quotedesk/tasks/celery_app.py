from celery import Celery

from quotedesk.config import settings

app = Celery(
    "quotedesk",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "quotedesk.tasks.email_tasks.*": {"queue": "email"},
    },
)

app.autodiscover_tasks(["quotedesk.tasks.email_tasks"])
