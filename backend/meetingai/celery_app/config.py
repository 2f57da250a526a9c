"""
Celery worker settings for meeting post-processing.
"""
import httpx
from kombu import Exchange, Queue

from meetingai.core.config import settings

MEETINGS_QUEUE = "meetings"

# Summaries wait on a transcript download plus one long LLM completion
MEETING_TASK_SOFT_TIME_LIMIT = 540
MEETING_TASK_TIME_LIMIT = 600


class CeleryConfig:
    broker_url = settings.celery_broker_url
    result_backend = settings.celery_result_backend

    task_serializer = "json"
    result_serializer = "json"
    accept_content = ["json"]
    timezone = "UTC"
    enable_utc = True

    task_queues = (
        Queue("default", Exchange("default"), routing_key="default"),
        Queue(MEETINGS_QUEUE, Exchange(MEETINGS_QUEUE), routing_key=MEETINGS_QUEUE),
    )
    task_default_queue = "default"
    task_routes = {
        "meetingai.celery_app.tasks.meeting.*": {"queue": MEETINGS_QUEUE},
    }

    task_track_started = True
    task_time_limit = 900
    task_soft_time_limit = 840
    result_expires = 86400  # 24 hours

    # One long task per process; a crashed worker hands its task back
    worker_prefetch_multiplier = 1
    worker_concurrency = 2
    task_acks_late = True
    task_reject_on_worker_lost = True


RETRY_CONFIG = {
    "max_retries": 3,
    "retry_backoff": True,
    "retry_backoff_max": 600,  # seconds
    "retry_jitter": True,
}

# Network failures talking to the transcript host or the LLM provider.
# Application errors (missing meeting, bad response) are not retried.
RETRYABLE_EXCEPTIONS = (
    ConnectionError,
    TimeoutError,
    httpx.TransportError,
)
