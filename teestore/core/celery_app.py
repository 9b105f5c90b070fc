from __future__ import annotations

from celery import Celery
from kombu import Queue

from teestore.core.config import settings


celery_app = Celery("teestore")

celery_app.conf.update(
    broker_url=settings.CELERY_BROKER_URL,
    result_backend=settings.CELERY_RESULT_BACKEND,
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    task_eager_propagates=True,
    task_default_queue=settings.CELERY_TASK_DEFAULT_QUEUE,
    broker_connection_retry_on_startup=True,
)

celery_app.conf.task_queues = (
    Queue(settings.CELERY_TASK_DEFAULT_QUEUE),
    Queue(settings.PRICING_QUEUE),
)

celery_app.conf.task_routes = {
    "pricing.*": {"queue": settings.PRICING_QUEUE},
    "coupons.*": {"queue": settings.PRICING_QUEUE},
}

# El cache de precios es orientativo: se recalcula periodicamente.
celery_app.conf.beat_schedule = {
    "refresh-price-cache": {
        "task": "pricing.refresh_price_cache",
        "schedule": float(settings.PRICE_CACHE_REFRESH_SECONDS),
    },
    "deactivate-expired-coupons": {
        "task": "coupons.deactivate_expired",
        "schedule": 3600.0,
    },
}

celery_app.autodiscover_tasks(["teestore"])
