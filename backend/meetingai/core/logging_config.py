"""
Process-wide logging setup shared by the API server and the Celery worker.
"""
import logging

from meetingai.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# PDF parsing and HTTP client libraries log every object/request at DEBUG
QUIET_LOGGERS = (
    "pdfminer",
    "pdfplumber",
    "httpx",
    "httpcore",
    "multipart",
    "python_multipart",
    "celery.utils.functional",
)


def configure_logging() -> None:
    level = logging.DEBUG if settings.ENV == "development" else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)

    # Child loggers (pdfminer.psparser, ...) inherit the parent level
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
