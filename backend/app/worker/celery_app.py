from celery import Celery

from app.core.config import settings

celery_app = Celery(
    "dataimport",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["app.worker.tasks"],
)

celery_app.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    # soft limit surfaces as SoftTimeLimitExceeded and ends the import in error
    task_soft_time_limit=int(settings.ANALYZE_TIMEOUT_SEC) + 30,
    task_time_limit=int(settings.ANALYZE_TIMEOUT_SEC) + 90,
    beat_schedule={
        "expire-stale-analyses": {
            "task": "imports.expire_stale",
            "schedule": 300.0,
        },
    },
)
