"""
Celery worker for PayFlow background jobs.

Two queues: ``rates`` keeps the cached USD/INR row warm on a beat
schedule, ``kyc`` runs verification decisions outside the request cycle.
"""

from celery import Celery

from app.config import settings

RATE_REFRESH_TASK = "app.tasks.rate_tasks.refresh_exchange_rates"
KYC_PROCESS_TASK = "app.tasks.kyc_tasks.process_kyc_verification"

celery_app = Celery(
    "payflow",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=3600,
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_routes={
        RATE_REFRESH_TASK: {"queue": "rates"},
        KYC_PROCESS_TASK: {"queue": "kyc"},
    },
    # Upstream FX call is bounded by FX_RATE_TIMEOUT_SECONDS; leave headroom for the DB write.
    task_annotations={
        RATE_REFRESH_TASK: {"time_limit": int(settings.FX_RATE_TIMEOUT_SECONDS) + 25},
    },
)

celery_app.autodiscover_tasks(["app.tasks"])

# A refresh that misses its slot is dropped rather than queued behind the next one.
celery_app.conf.beat_schedule = {
    "refresh-exchange-rates": {
        "task": RATE_REFRESH_TASK,
        "schedule": settings.FX_RATE_CACHE_TTL_SECONDS,
        "options": {"expires": settings.FX_RATE_CACHE_TTL_SECONDS},
    },
}
