from fastapi import APIRouter

from src.api.devices import router as devices_router
from src.api.schedules import router as schedules_router

api_router = APIRouter()
api_router.include_router(devices_router)
api_router.include_router(schedules_router)
