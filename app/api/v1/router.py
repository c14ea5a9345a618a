from fastapi import APIRouter

from app.api.v1.ai import router as ai_router
from app.api.v1.prompts import router as prompts_router
from app.api.v1.test import router as test_router

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(test_router)
api_v1_router.include_router(ai_router)
api_v1_router.include_router(prompts_router)
