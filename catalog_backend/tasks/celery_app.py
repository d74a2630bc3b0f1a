"""
Celery Application Configuration

Run a worker and the beat scheduler with:
    celery -A catalog_backend.tasks.celery_app worker -Q catalog-ingest
    celery -A catalog_backend.tasks.celery_app beat
"""

import os
from celery import Celery
from celery.schedules import crontab

# Use REDIS_URL if set, otherwise CELERY_BROKER_URL / CELERY_RESULT_BACKEND
REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", REDIS_URL)
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", REDIS_URL)

INGEST_QUEUE = "catalog-ingest"

app = Celery(
    "catalog_ingest",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
    include=[
        "catalog_backend.tasks.ingestion",
    ],
)

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_routes={"tasks.*": {"queue": INGEST_QUEUE}},
    task_default_queue=INGEST_QUEUE,
    # A job claimed by a worker that dies stays "processing"; only queued
    # jobs are re-dispatched, so late acks cannot run a job twice.
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=10 * 60,  # 10 minutes
    task_soft_time_limit=9 * 60,  # 9 minutes
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=200,
    result_expires=24 * 60 * 60,
)

app.conf.beat_schedule = {
    # Re-dispatch jobs whose first dispatch never reached a worker
    "redispatch-stale-ingest-jobs": {
        "task": "tasks.redispatch_stale_jobs",
        "schedule": crontab(minute="*/10"),
        "kwargs": {"older_than_minutes": 10},
    },
}

if __name__ == "__main__":
    app.start()
