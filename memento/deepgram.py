"""
Deepgram 一時トークン発行

ブラウザから Deepgram のライブ文字起こしへ直接接続するため、
APIキーから有効期限付きの一時トークンを発行する。
"""

from typing import Any, Dict

import httpx

from memento.config import get_settings
from memento.logging import get_logger

logger = get_logger(__name__)

DEEPGRAM_GRANT_URL = "https://api.deepgram.com/v1/auth/grant"
GRANT_TIMEOUT_SECONDS = 10.0

# ライブ文字起こしの接続オプション
LIVE_OPTIONS: Dict[str, Any] = {
    "model": "nova-3",
    "language": "ja",
    "smart_format": True,
    "diarize": True,
    "interim_results": True,
    "utterance_end_ms": 1000,
    "vad_events": True,
    "endpointing": 300,
}

TIMEOUT_MESSAGE = "Request timeout to Deepgram API"
FAILURE_MESSAGE = "Failed to generate temporary token"


def is_configured() -> bool:
    return bool(get_settings().DEEPGRAM_API_KEY)


def create_temporary_token() -> Dict[str, Any]:
    """
    一時トークンを発行

    Returns:
        {"key": アクセストークン, "expiresIn": 秒, "mockMode": False}

    Raises:
        DeepgramTimeoutError: タイムアウト
        DeepgramError: APIエラー、または access_token が含まれない場合
    """
    settings = get_settings()
    api_key = settings.DEEPGRAM_API_KEY
    if not api_key:
        raise DeepgramError("Deepgram API Key not configured")

    ttl = settings.DEEPGRAM_TOKEN_TTL_SECONDS
    try:
        response = httpx.post(
            DEEPGRAM_GRANT_URL,
            headers={
                "Authorization": f"Token {api_key}",
                "Content-Type": "application/json",
            },
            json={"ttl_seconds": ttl},
            timeout=GRANT_TIMEOUT_SECONDS,
        )
    except httpx.TimeoutException as e:
        logger.error("Deepgram grant request timed out")
        raise DeepgramTimeoutError(TIMEOUT_MESSAGE) from e
    except httpx.HTTPError as e:
        logger.error("Deepgram grant request failed", error=type(e).__name__)
        raise DeepgramError(FAILURE_MESSAGE) from e

    if not response.is_success:
        logger.error(
            "Deepgram grant API error",
            status_code=response.status_code,
            body=response.text[:200],
            api_key_length=len(api_key),
        )
        raise DeepgramError(f"Deepgram API error: {response.status_code}", response.status_code)

    data = response.json()
    access_token = data.get("access_token")
    if not access_token:
        logger.error("No access_token in Deepgram response")
        raise DeepgramError("No access_token in Deepgram response")

    logger.info(
        "Generated Deepgram token",
        expires_in=data.get("expires_in"),
        ttl_requested=ttl,
    )
    return {
        "key": access_token,
        "expiresIn": data.get("expires_in"),
        "mockMode": False,
    }


# =============================================================================
# 例外クラス
# =============================================================================

class DeepgramError(Exception):
    """Deepgram エラーの基底クラス"""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class DeepgramTimeoutError(DeepgramError):
    """Deepgram タイムアウト"""
    pass
