"""
Celery application for background meeting processing.
"""
import logging

from celery import Celery
from celery.signals import setup_logging, worker_ready

from meetingai.celery_app.config import CeleryConfig
from meetingai.core.logging_config import configure_logging

logger = logging.getLogger(__name__)

celery_app = Celery("meetingai")
celery_app.config_from_object(CeleryConfig)
celery_app.autodiscover_tasks(["meetingai.celery_app.tasks"], force=True)


@setup_logging.connect
def on_setup_logging(**kwargs):
    """Use the API server's log format in workers."""
    configure_logging()


@worker_ready.connect
def on_worker_ready(sender, **kwargs):
    """
    Re-enqueue meetings whose summary job died with the previous worker.

    Runs as a task so a slow database does not delay worker startup.
    """
    logger.info("Worker ready, scheduling recovery of interrupted meetings")
    celery_app.send_task("meetingai.celery_app.tasks.base.recover_processing_meetings")
