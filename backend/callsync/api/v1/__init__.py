"""API v1 路由"""

from fastapi import APIRouter

from callsync.api.v1 import dialer, health, recordings, records, transcription

router = APIRouter()

router.include_router(health.router, tags=["健康检查"])
router.include_router(dialer.router)
router.include_router(recordings.router)
router.include_router(transcription.router)
router.include_router(records.router)
