import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from meetingai import __version__
from meetingai.api.v1 import api_router
from meetingai.core.config import settings
from meetingai.core.exceptions import (
    AppException,
    app_exception_handler,
    generic_exception_handler,
    validation_exception_handler,
)
from meetingai.core.logging_config import configure_logging

configure_logging()
logger = logging.getLogger(__name__)

is_development = settings.ENV == "development"

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Agent knowledge bases and webhook-driven meeting lifecycle",
    version=__version__,
    docs_url="/api/docs" if is_development else None,
    redoc_url="/api/redoc" if is_development else None,
)

app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Webhooks are server-to-server; CORS only matters for the dashboard
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(api_router, prefix=settings.API_V1_PREFIX)

logger.info(f"{settings.PROJECT_NAME} {__version__} started ({settings.ENV})")


@app.get("/")
def read_root():
    return {
        "message": "OK",
        "service": settings.PROJECT_NAME,
        "version": __version__,
    }
