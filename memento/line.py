"""
LINE 連携モジュール

LINE Login（OAuth 2.1）によるアカウント連携と、
Messaging API による公式アカウントからのプッシュ通知を扱う。

使用例:
    from memento import line

    state, bot_prompt = line.build_oauth_state(reconnect=False)
    url = line.build_authorize_url(channel_id, redirect_uri, state, bot_prompt)

    result = line.push_message(line_user_id, "1on1のリマインドです", access_token)
    if not result.success:
        print(result.error)

state 形式:
    "{32バイトの16進数}::{aggressive|normal}"
    bot_prompt の値をコールバック時に復元できるように埋め込む。
"""

import hmac
import secrets
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

import httpx

from memento.config import get_settings
from memento.constants import NotificationType
from memento.logging import get_logger, log_external_api_call

logger = get_logger(__name__)

LINE_AUTHORIZE_URL = "https://access.line.me/oauth2/v2.1/authorize"
LINE_TOKEN_URL = "https://api.line.me/oauth2/v2.1/token"
LINE_REVOKE_URL = "https://api.line.me/oauth2/v2.1/revoke"
LINE_PROFILE_URL = "https://api.line.me/v2/profile"
LINE_FRIENDSHIP_URL = "https://api.line.me/friendship/v1/status"
LINE_PUSH_URL = "https://api.line.me/v2/bot/message/push"

LINE_SCOPE = "profile openid"
STATE_SEPARATOR = "::"
BOT_PROMPTS = ("aggressive", "normal")

DEFAULT_LINE_USER_ID = "unknown"
DEFAULT_DISPLAY_NAME = "LINE User"

# OAuth 用 Cookie
STATE_COOKIE = "line_oauth_state"
USER_COOKIE = "line_oauth_user_id"
COOKIE_MAX_AGE_SECONDS = 60 * 10


@dataclass
class PushResult:
    """プッシュ通知の送信結果"""
    success: bool
    status_code: int = 0
    error: str = ""


# =============================================================================
# LINE Login
# =============================================================================

def build_oauth_state(reconnect: bool = False) -> Tuple[str, str]:
    """
    OAuth state と bot_prompt を生成

    再連携時は友だち追加を強く促す aggressive を使う。

    Returns:
        (state, bot_prompt)
    """
    bot_prompt = "aggressive" if reconnect else "normal"
    state = f"{secrets.token_hex(32)}{STATE_SEPARATOR}{bot_prompt}"
    return state, bot_prompt


def split_state(state: str) -> Tuple[str, Optional[str]]:
    """
    state をランダム部分と bot_prompt に分割

    Returns:
        (ランダム部分, bot_prompt)。bot_prompt が不正・なしの場合は None
    """
    if STATE_SEPARATOR not in state:
        return state, None
    base, bot_prompt = state.split(STATE_SEPARATOR, 1)
    return base, bot_prompt if bot_prompt in BOT_PROMPTS else None


def verify_state(saved_state: Optional[str], returned_state: str) -> bool:
    """Cookie に保存した state とコールバックの state のランダム部分が一致するか"""
    if not saved_state or not returned_state:
        return False
    saved_base, _ = split_state(saved_state)
    returned_base, _ = split_state(returned_state)
    return hmac.compare_digest(saved_base, returned_base)


def build_authorize_url(channel_id: str, redirect_uri: str, state: str, bot_prompt: str) -> str:
    """LINE Login の認可URLを生成"""
    params = {
        "response_type": "code",
        "client_id": channel_id,
        "redirect_uri": redirect_uri,
        "state": state,
        "scope": LINE_SCOPE,
        "bot_prompt": bot_prompt,
    }
    return f"{LINE_AUTHORIZE_URL}?{urlencode(params)}"


def exchange_code(
    code: str,
    redirect_uri: str,
    channel_id: str,
    channel_secret: str,
) -> Dict[str, Any]:
    """
    認可コードをアクセストークンと交換

    Raises:
        LineAPIError: トークン交換に失敗した場合
    """
    response = _post_form(LINE_TOKEN_URL, {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": redirect_uri,
        "client_id": channel_id,
        "client_secret": channel_secret,
    })
    if not response.is_success:
        logger.error(
            "LINE token exchange failed",
            status_code=response.status_code,
            body=response.text[:200],
        )
        raise LineAPIError("Failed to exchange token", response.status_code)
    return response.json()


def get_profile(access_token: str) -> Tuple[str, str]:
    """
    プロフィールを取得

    取得に失敗しても連携は続行するため、既定値を返す。

    Returns:
        (LINEユーザーID, 表示名)
    """
    response = httpx.get(
        LINE_PROFILE_URL,
        headers={"Authorization": f"Bearer {access_token}"},
        timeout=get_settings().HTTP_TIMEOUT_SECONDS,
    )
    if not response.is_success:
        logger.warning("LINE profile fetch failed", status_code=response.status_code)
        return DEFAULT_LINE_USER_ID, DEFAULT_DISPLAY_NAME

    data = response.json()
    return (
        data.get("userId") or DEFAULT_LINE_USER_ID,
        data.get("displayName") or DEFAULT_DISPLAY_NAME,
    )


def check_friendship(access_token: Optional[str]) -> Optional[bool]:
    """
    公式アカウントと友だちかどうかを確認

    Returns:
        True/False。API確認に失敗した場合は None
    """
    if not access_token:
        return None
    try:
        response = httpx.get(
            LINE_FRIENDSHIP_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=get_settings().HTTP_TIMEOUT_SECONDS,
        )
    except httpx.HTTPError as e:
        logger.warning("LINE friendship check error", error=type(e).__name__)
        return None

    if not response.is_success:
        logger.warning(
            "LINE friendship check failed",
            status_code=response.status_code,
            body=response.text[:100],
        )
        return None
    return response.json().get("friendFlag") is True


def decide_is_friend(
    friendship_status_changed: Optional[str],
    api_friend_flag: Optional[bool],
    existing_is_friend: Optional[bool],
) -> bool:
    """
    連携時の友だち状態を決定

    1. friendship_status_changed=true なら友だち
    2. API確認が成功していればその結果
    3. パラメータなしかつAPI確認失敗なら既存値を維持
    4. それ以外は友だちではない
    """
    if friendship_status_changed == "true":
        return True
    if api_friend_flag is not None:
        return api_friend_flag
    if friendship_status_changed is None:
        return existing_is_friend is True
    return False


def revoke_token(access_token: str, channel_id: str, channel_secret: str) -> bool:
    """
    アクセストークンを失効させる（ベストエフォート）

    Returns:
        成功した場合 True
    """
    try:
        response = _post_form(LINE_REVOKE_URL, {
            "access_token": access_token,
            "client_id": channel_id,
            "client_secret": channel_secret,
        })
    except httpx.HTTPError as e:
        logger.warning("LINE token revoke error", error=type(e).__name__)
        return False
    if not response.is_success:
        logger.warning("LINE token revoke failed", status_code=response.status_code)
        return False
    return True


# =============================================================================
# Messaging API
# =============================================================================

def push_message(to: str, text: str, channel_access_token: Optional[str] = None) -> PushResult:
    """
    公式アカウントからテキストメッセージをプッシュ送信

    Args:
        to: 送信先のLINEユーザーID
        text: メッセージ本文
        channel_access_token: Messaging API のチャネルアクセストークン
            （省略時は設定から取得）
    """
    token = channel_access_token or get_settings().LINE_MESSAGING_ACCESS_TOKEN
    if not token:
        logger.error("LINE_MESSAGING_ACCESS_TOKEN not configured")
        return PushResult(success=False, error="LINE_MESSAGING_ACCESS_TOKEN not configured")

    start = time.time()
    try:
        response = httpx.post(
            LINE_PUSH_URL,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {token}",
            },
            json={"to": to, "messages": [{"type": "text", "text": text}]},
            timeout=get_settings().HTTP_TIMEOUT_SECONDS,
        )
    except httpx.HTTPError as e:
        logger.error("Failed to send LINE notification", error=str(e))
        return PushResult(success=False, error=str(e))

    log_external_api_call(
        logger,
        service="line",
        method="POST",
        endpoint="/v2/bot/message/push",
        status_code=response.status_code,
        duration_ms=round((time.time() - start) * 1000, 2),
    )
    if not response.is_success:
        return PushResult(
            success=False,
            status_code=response.status_code,
            error=f"LINE API error: {response.status_code} {response.text}",
        )
    return PushResult(success=True, status_code=response.status_code)


def default_message(notification_type: str, display_name: Optional[str]) -> str:
    """通知タイプごとの既定メッセージ"""
    name = f"{display_name}さん" if display_name else "ユーザーさん"
    if notification_type == NotificationType.REMINDER.value:
        return f"{name}、1on1セッションが1時間後に開始されます。準備をお願いします。"
    if notification_type == NotificationType.SUMMARY.value:
        return f"{name}、1on1セッションのサマリーが作成されました。確認してください。"
    if notification_type == NotificationType.FOLLOW_UP.value:
        return f"{name}、1on1セッションのフォローアップ項目があります。確認をお願いします。"
    return f"{name}、Memento 1on1からの通知です。"


def _post_form(url: str, form: Dict[str, str]) -> httpx.Response:
    return httpx.post(
        url,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        data=form,
        timeout=get_settings().HTTP_TIMEOUT_SECONDS,
    )


# =============================================================================
# 例外クラス
# =============================================================================

class LineError(Exception):
    """LINE 連携エラーの基底クラス"""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class LineAPIError(LineError):
    """LINE API エラー"""
    pass
