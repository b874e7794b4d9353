from fastapi import APIRouter

from fanmeet.api.v1.lifecycle import router as lifecycle_router
from fanmeet.api.v1.meets import router as meets_router

api_router = APIRouter()
api_router.include_router(lifecycle_router)
api_router.include_router(meets_router)
