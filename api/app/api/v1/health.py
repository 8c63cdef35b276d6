"""
Health Check Endpoint

ヘルスチェック用のエンドポイント
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from memento import db
from memento.config import get_settings
from api.app.limiter import limiter

router = APIRouter(tags=["health"])


def service_status() -> dict:
    """サービス情報（DB確認なし）"""
    settings = get_settings()
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.SERVICE_NAME,
        "version": settings.APP_VERSION,
    }


@router.get("/health")
@limiter.exempt
async def health_check():
    """
    ヘルスチェック

    Returns:
        status: サービス状態
        db: データベース接続状態
    """
    return {
        **service_status(),
        "db": "healthy" if db.health_check() else "unhealthy",
    }
