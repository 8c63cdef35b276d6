"""
LINE Works 連携

Bot API 2.0 でユーザー宛にメッセージを送信する。
送信先はOAuth連携時に取得した自身の userId（room_id カラムに保存）。
"""

from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from memento.config import get_settings
from memento.logging import get_logger
from memento.messaging.base import (
    MessagingAdapter,
    MessagingAuthError,
    MessagingConfigError,
    SendResult,
    TokenPair,
)

logger = get_logger(__name__)

LINEWORKS_AUTHORIZE_URL = "https://auth.worksmobile.com/oauth2/v2.0/authorize"
LINEWORKS_TOKEN_URL = "https://auth.worksmobile.com/oauth2/v2.0/token"
LINEWORKS_API_BASE = "https://www.worksapis.com/v1.0"
LINEWORKS_SCOPE = "bot user.read"

DEFAULT_USER_NAME = "LINE Works User"


class LineWorksAdapter(MessagingAdapter):
    """LINE Works Bot アダプター"""

    supports_refresh = True

    def __init__(self, timeout: Optional[float] = None):
        self._timeout = timeout or get_settings().HTTP_TIMEOUT_SECONDS

    @property
    def provider_name(self) -> str:
        return "lineworks"

    def missing_config_error(self, integration: Dict[str, Any]) -> Optional[str]:
        if not integration.get("api_token") or not integration.get("room_id"):
            return "LINE Works 設定が不足しています"
        return None

    def send_message(self, integration: Dict[str, Any], message: str) -> SendResult:
        raw_bot_id = get_settings().LINEWORKS_BOT_ID
        if not raw_bot_id:
            raise MessagingConfigError("LINEWORKS_BOT_ID is not configured")

        bot_id = raw_bot_id.strip()
        user_id = str(integration["room_id"]).strip()
        token = str(integration["api_token"]).strip()
        endpoint = f"{LINEWORKS_API_BASE}/bots/{bot_id}/users/{user_id}/messages"

        response = httpx.post(
            endpoint,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json; charset=UTF-8",
            },
            json={"content": {"type": "text", "text": message}},
            timeout=self._timeout,
        )
        if response.is_success:
            return SendResult(success=True, status_code=response.status_code)

        logger.warning("LINE Works send failed", status_code=response.status_code)
        return SendResult(
            success=False,
            error=f"LINE Works API error (Status: {response.status_code}). Response: {response.text[:200]}",
            status_code=response.status_code,
        )

    def refresh_access_token(self, refresh_token: str) -> TokenPair:
        settings = get_settings()
        if not settings.LINEWORKS_CLIENT_ID or not settings.LINEWORKS_CLIENT_SECRET:
            raise MessagingConfigError("LINE Works Client configuration is missing")

        response = httpx.post(
            LINEWORKS_TOKEN_URL,
            data={
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": settings.LINEWORKS_CLIENT_ID,
                "client_secret": settings.LINEWORKS_CLIENT_SECRET,
            },
            timeout=self._timeout,
        )
        data = response.json()
        if not response.is_success:
            reason = data.get("error_description") or data.get("error")
            raise MessagingAuthError(f"LINE Works token refresh failed: {reason}", response.status_code)
        return TokenPair(access_token=data["access_token"], refresh_token=data.get("refresh_token"))


# =============================================================================
# OAuth
# =============================================================================

def redirect_uri() -> str:
    return f"{get_settings().APP_URL}/api/v1/lineworks/callback"


def build_authorize_url(client_id: str, state: str) -> str:
    """LINE Works 認可URLを生成"""
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri(),
        "scope": LINEWORKS_SCOPE,
        "response_type": "code",
        "state": state,
    }
    return f"{LINEWORKS_AUTHORIZE_URL}?{urlencode(params)}"


def exchange_code(code: str, timeout: Optional[float] = None) -> TokenPair:
    """
    認可コードをアクセストークンと交換

    Raises:
        MessagingAuthError: 失敗時（メッセージはプロバイダーのエラーコード）
    """
    settings = get_settings()
    response = httpx.post(
        LINEWORKS_TOKEN_URL,
        data={
            "grant_type": "authorization_code",
            "code": code,
            "client_id": settings.LINEWORKS_CLIENT_ID or "",
            "client_secret": settings.LINEWORKS_CLIENT_SECRET or "",
            "redirect_uri": redirect_uri(),
        },
        timeout=timeout or settings.HTTP_TIMEOUT_SECONDS,
    )
    data = response.json()
    if not response.is_success:
        raise MessagingAuthError(str(data.get("error") or "token_exchange_failed"), response.status_code)
    return TokenPair(
        access_token=str(data["access_token"]).strip(),
        refresh_token=data.get("refresh_token"),
        scope=data.get("scope"),
    )


def fetch_current_user(access_token: str, timeout: Optional[float] = None) -> Dict[str, str]:
    """
    連携したユーザーの情報を取得

    Returns:
        {"userId": ..., "userName": ...}

    Raises:
        MessagingAuthError: 取得に失敗した場合
    """
    response = httpx.get(
        f"{LINEWORKS_API_BASE}/users/me",
        headers={"Authorization": f"Bearer {access_token}"},
        timeout=timeout or get_settings().HTTP_TIMEOUT_SECONDS,
    )
    if not response.is_success:
        raise MessagingAuthError("user_info_failed", response.status_code)

    data = response.json()
    return {
        "userId": data.get("userId"),
        "userName": data.get("userName") or data.get("name") or DEFAULT_USER_NAME,
    }
