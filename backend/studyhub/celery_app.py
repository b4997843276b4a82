"""Celery application: AI summaries and the attempt expiry sweep.

With ``CELERY_TASK_ALWAYS_EAGER`` (the default outside production) tasks run
in-process and no broker is contacted.
"""

from celery import Celery

from studyhub.config import settings

celery_app = Celery(
    "studyhub",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["studyhub.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    task_eager_propagates=True,
    # Twice the HTTP timeout of one generation call.
    task_soft_time_limit=int(settings.TEXT_GEN_TIMEOUT_SECONDS * 2),
    task_routes={
        "generate_content_summary": {"queue": "ai"},
        "generate_attempt_summary": {"queue": "ai"},
        "expire_overdue_attempts": {"queue": "maintenance"},
    },
    beat_schedule={
        "expire-overdue-attempts": {
            "task": "expire_overdue_attempts",
            "schedule": float(settings.ATTEMPT_EXPIRY_SWEEP_SECONDS),
        },
    },
)
