"""
API v1 Routes

1on1セッション・部下・組織分析・AIコーチング・外部サービス連携
"""

from fastapi import APIRouter
from api.app.api.v1 import (
    analytics,
    chat,
    chatwork,
    google_calendar,
    health,
    line,
    lineworks,
    media,
    messaging,
    organizations,
    pdf,
    sessions,
    slack,
    subordinates,
    transcription,
)

router = APIRouter(prefix="/v1")
router.include_router(health.router)
router.include_router(subordinates.router)
router.include_router(sessions.router)
router.include_router(organizations.router)
router.include_router(analytics.router)
router.include_router(chat.router)
router.include_router(pdf.router)
router.include_router(media.router)
router.include_router(transcription.router)
router.include_router(google_calendar.router)
router.include_router(line.router)
router.include_router(messaging.router)
router.include_router(slack.router)
router.include_router(chatwork.router)
router.include_router(lineworks.router)
