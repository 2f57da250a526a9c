"""
Celery application package for background meeting processing.

This package provides:
- Celery app configuration
- Post-processing task for finished meetings
- Recovery of meetings interrupted by a worker restart
"""

from meetingai.celery_app.celery import celery_app

__all__ = ["celery_app"]
