"""
LiveKit アクセストークン

LiveKit のアクセストークンは API シークレットで署名した HS256 JWT。
ルーム参加権限（video grant）を含める。
"""

import time
from typing import Optional

from jose import jwt

from memento.config import get_settings

DEFAULT_TTL_SECONDS = 6 * 60 * 60
MOCK_TOKEN = "mock-token-for-demo-purposes"
MOCK_WARNING = "Env vars not set. Using mock token."


def is_configured() -> bool:
    """LiveKit の APIキー・シークレット・URLが揃っているか"""
    settings = get_settings()
    return bool(settings.LIVEKIT_API_KEY and settings.LIVEKIT_API_SECRET and settings.LIVEKIT_URL)


def create_access_token(
    room: str,
    identity: str,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
    now: Optional[int] = None,
) -> str:
    """
    ルーム参加用のアクセストークンを生成

    Args:
        room: ルーム名
        identity: 参加者ID（ユーザー名）
        ttl_seconds: 有効期間（秒）
    """
    settings = get_settings()
    issued_at = int(now if now is not None else time.time())
    claims = {
        "iss": settings.LIVEKIT_API_KEY,
        "sub": identity,
        "nbf": issued_at,
        "exp": issued_at + ttl_seconds,
        "video": {"roomJoin": True, "room": room},
    }
    return jwt.encode(claims, settings.LIVEKIT_API_SECRET, algorithm="HS256")
