"""V1 API router aggregation."""

from fastapi import APIRouter

from app.api.v1.disasters import router as disasters_router
from app.api.v1.geocoding import router as geocoding_router
from app.api.v1.realtime import router as realtime_router
from app.api.v1.system import router as system_router

v1_router = APIRouter(prefix="/v1")
v1_router.include_router(geocoding_router)
v1_router.include_router(disasters_router)
v1_router.include_router(realtime_router)
v1_router.include_router(system_router)
