"""
API router - aggregates all route modules.
"""
from fastapi import APIRouter
from src.api.meta_webhooks import router as meta_webhooks_router
from src.api.health import router as health_router

api_router = APIRouter()
api_router.include_router(meta_webhooks_router)
api_router.include_router(health_router)
