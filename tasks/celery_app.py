"""
tasks/celery_app.py
Celery application instance, shared across all task modules.

Workers are started with:
    celery -A tasks.celery_app worker --loglevel=info --concurrency=2
"""

from celery import Celery

from config.settings import settings

celery_app = Celery(
    "ca_practice_portal",
    broker=settings.CELERY_BROKER_URL,
    include=[
        "tasks.notification_tasks",
    ],
)

# ── Configuration ─────────────────────────────────────────────────────────────

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    timezone="Asia/Kolkata",
    enable_utc=True,

    # At-most-once: ack on receipt, no retries, no publish retry
    task_acks_late=False,
    task_reject_on_worker_lost=False,
    task_publish_retry=False,
    task_ignore_result=True,

    # Rate limits (per worker per second)
    task_annotations={
        "tasks.notification_tasks.send_email": {"rate_limit": "20/s"},
    },

    # Routing
    task_routes={
        "tasks.notification_tasks.*": {"queue": "notifications"},
    },

    worker_prefetch_multiplier=1,

    # Tests and single-process dev run tasks inline
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
)
