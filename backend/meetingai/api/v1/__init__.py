from fastapi import APIRouter

from meetingai.api.v1 import agents, health, meetings, webhook

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(agents.router)
api_router.include_router(meetings.router)
api_router.include_router(webhook.router)
