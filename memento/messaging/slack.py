"""
Slack 連携

Incoming Webhook によるメッセージ送信と、OAuth v2（incoming-webhook スコープ）。
"""

from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from memento.config import get_settings
from memento.logging import get_logger
from memento.messaging.base import MessagingAdapter, MessagingAuthError, SendResult

logger = get_logger(__name__)

SLACK_AUTHORIZE_URL = "https://slack.com/oauth/v2/authorize"
SLACK_TOKEN_URL = "https://slack.com/api/oauth.v2.access"
SLACK_SCOPE = "incoming-webhook"

BOT_USERNAME = "Memento 1on1"
BOT_ICON_EMOJI = ":memo:"


class SlackAdapter(MessagingAdapter):
    """Slack Incoming Webhook アダプター"""

    def __init__(self, timeout: Optional[float] = None):
        self._timeout = timeout or get_settings().HTTP_TIMEOUT_SECONDS

    @property
    def provider_name(self) -> str:
        return "slack"

    def missing_config_error(self, integration: Dict[str, Any]) -> Optional[str]:
        if not integration.get("webhook_url"):
            return "Slack Webhook URLが設定されていません"
        return None

    def send_message(self, integration: Dict[str, Any], message: str) -> SendResult:
        payload = {
            "text": message,
            "username": BOT_USERNAME,
            "icon_emoji": BOT_ICON_EMOJI,
        }
        response = httpx.post(integration["webhook_url"], json=payload, timeout=self._timeout)
        if response.is_success:
            return SendResult(success=True, status_code=response.status_code)

        logger.warning("Slack webhook failed", status_code=response.status_code)
        return SendResult(
            success=False,
            error=f"Slack Webhook error: {response.status_code} {response.text}",
            status_code=response.status_code,
        )


# =============================================================================
# OAuth
# =============================================================================

def redirect_uri() -> str:
    return f"{get_settings().APP_URL}/api/v1/slack/callback"


def build_authorize_url(client_id: str, state: str) -> str:
    """Slack 認可URLを生成"""
    params = {
        "client_id": client_id,
        "scope": SLACK_SCOPE,
        "redirect_uri": redirect_uri(),
        "state": state,
    }
    return f"{SLACK_AUTHORIZE_URL}?{urlencode(params)}"


def exchange_code(code: str, timeout: Optional[float] = None) -> Dict[str, Any]:
    """
    認可コードをトークンと交換

    Returns:
        oauth.v2.access のレスポンス（ok=true のもの）

    Raises:
        MessagingAuthError: ok=false の場合（メッセージは Slack のエラーコード）
    """
    settings = get_settings()
    response = httpx.post(
        SLACK_TOKEN_URL,
        data={
            "code": code,
            "client_id": settings.SLACK_CLIENT_ID or "",
            "client_secret": settings.SLACK_CLIENT_SECRET or "",
            "redirect_uri": redirect_uri(),
        },
        timeout=timeout or settings.HTTP_TIMEOUT_SECONDS,
    )
    data = response.json()
    if not data.get("ok"):
        raise MessagingAuthError(str(data.get("error") or "token_exchange_failed"), response.status_code)
    return data


def build_display_name(team_name: Optional[str], channel_name: Optional[str]) -> str:
    """連携の表示名（例: "Acme #1on1"）"""
    channel_part = f"#{channel_name}" if channel_name else ""
    return f"{team_name or 'Slack'} {channel_part}".strip()
