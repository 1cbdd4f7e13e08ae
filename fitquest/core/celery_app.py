"""
Celery Application Configuration

Celery task queue using Redis as broker and backend. Periodic jobs are
registered into beat_schedule by fitquest.core.scheduler.
"""

from __future__ import annotations

import ssl
from typing import Dict, Optional

from celery import Celery
from fitquest.core.config import settings


def _build_redis_ssl_options(url: str) -> Optional[Dict[str, int]]:
    """
    Celery requires explicit SSL options when connecting to Redis over TLS.
    Managed Redis providers hand out rediss:// URLs without extra parameters.
    """

    if not url or not url.startswith("rediss://"):
        return None

    # Respect explicit ssl_cert_reqs in the URL if provided.
    if "ssl_cert_reqs" in url:
        return None

    return {"ssl_cert_reqs": ssl.CERT_NONE}


redis_url = settings.redis_connection_url
redis_ssl_options = _build_redis_ssl_options(redis_url)

celery_app = Celery(
    "fitquest",
    broker=redis_url,
    backend=redis_url,
    include=["fitquest.services.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=120,  # ranking a large challenge can take a while
    task_soft_time_limit=100,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    result_expires=3600,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    broker_use_ssl=redis_ssl_options,
    redis_backend_use_ssl=redis_ssl_options,
    beat_schedule={},
)

celery_app.conf.task_routes = {
    "process_health_sample": {"queue": "challenge_progress"},
    "process_health_samples_chunk": {"queue": "challenge_progress"},
}
