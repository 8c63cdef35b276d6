"""
Chatwork 連携

REST API によるルームへのメッセージ送信と、OAuth2 によるトークン取得・更新。

使用例:
    from memento.messaging.chatwork import ChatworkClient

    client = ChatworkClient(api_token)
    client.send_message(room_id="12345", message="Hello!")
    rooms = client.get_rooms()

トークン種別:
    OAuth アクセストークン（65文字以上）は Authorization: Bearer、
    従来の API トークンは X-ChatWorkToken ヘッダーで送る。
"""

import base64
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from memento.config import get_settings
from memento.logging import get_logger
from memento.messaging.base import (
    MessagingAdapter,
    MessagingAuthError,
    MessagingConfigError,
    MessagingError,
    SendResult,
    TokenPair,
)

logger = get_logger(__name__)

CHATWORK_AUTHORIZE_URL = "https://www.chatwork.com/packages/oauth2/login.php"
CHATWORK_TOKEN_URL = "https://oauth.chatwork.com/token"
CHATWORK_SCOPE = "rooms.all:read_write"

# これより長いトークンは OAuth アクセストークンとみなす
LEGACY_TOKEN_MAX_LENGTH = 64

MY_CHAT_LABEL = "マイチャット"


@dataclass
class ChatworkRoom:
    """Chatworkルームの構造体"""
    room_id: int
    name: str
    type: str  # "my", "direct", "group"


class ChatworkClient:
    """
    Chatwork API 同期クライアント

    リトライは行わない。レート制限・エラーは例外で通知する。
    """

    API_BASE_URL = "https://api.chatwork.com/v2"

    def __init__(self, api_token: str, timeout: Optional[float] = None):
        self._api_token = api_token
        self._timeout = timeout or get_settings().HTTP_TIMEOUT_SECONDS

    def _get_headers(self) -> Dict[str, str]:
        """リクエストヘッダーを取得"""
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        if len(self._api_token) > LEGACY_TOKEN_MAX_LENGTH:
            headers["Authorization"] = f"Bearer {self._api_token}"
        else:
            headers["X-ChatWorkToken"] = self._api_token
        return headers

    def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict] = None,
    ) -> Any:
        url = f"{self.API_BASE_URL}{endpoint}"
        try:
            response = httpx.request(
                method=method,
                url=url,
                headers=self._get_headers(),
                data=data,
                timeout=self._timeout,
            )
        except httpx.TimeoutException:
            raise ChatworkTimeoutError("Request timed out")

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After", "60")
            raise ChatworkRateLimitError(
                f"Rate limited. Retry after {retry_after}s", response.status_code
            )

        if response.status_code in (200, 204):
            if response.status_code == 204:
                return None
            return response.json()

        raise ChatworkAPIError(
            f"Chatwork API error: {response.status_code} {response.text}",
            response.status_code,
        )

    def send_message(self, room_id: str, message: str) -> Dict[str, Any]:
        """
        メッセージを送信

        Returns:
            {"message_id": "..."}
        """
        result: Dict[str, Any] = self._request(
            "POST",
            f"/rooms/{room_id}/messages",
            data={"body": message},
        )
        return result or {}

    def get_rooms(self) -> List[ChatworkRoom]:
        """参加しているルーム一覧を取得"""
        result = self._request("GET", "/rooms")
        if not isinstance(result, list):
            raise ChatworkAPIError("Unexpected rooms response")
        return [
            ChatworkRoom(room_id=r["room_id"], name=r.get("name", ""), type=r.get("type", ""))
            for r in result
        ]

    def list_selectable_rooms(self) -> List[Dict[str, Any]]:
        """
        送信先として選択可能なルーム（グループチャットとマイチャット）

        Returns:
            [{"id": room_id, "name": 表示名}, ...]
        """
        return [
            {"id": r.room_id, "name": MY_CHAT_LABEL if r.type == "my" else r.name}
            for r in self.get_rooms()
            if r.type in ("group", "my")
        ]


class ChatworkAdapter(MessagingAdapter):
    """Chatwork アダプター"""

    supports_refresh = True

    def __init__(self, timeout: Optional[float] = None):
        self._timeout = timeout

    @property
    def provider_name(self) -> str:
        return "chatwork"

    def missing_config_error(self, integration: Dict[str, Any]) -> Optional[str]:
        if not integration.get("api_token") or not integration.get("room_id"):
            return "Chatwork APIトークンまたはルームIDが設定されていません"
        return None

    def send_message(self, integration: Dict[str, Any], message: str) -> SendResult:
        client = ChatworkClient(integration["api_token"], timeout=self._timeout)
        try:
            result = client.send_message(integration["room_id"], message)
        except ChatworkError as e:
            logger.warning("Chatwork send failed", status_code=e.status_code)
            return SendResult(success=False, error=str(e), status_code=e.status_code)
        return SendResult(success=True, message_id=str(result.get("message_id", "")), status_code=200)

    def refresh_access_token(self, refresh_token: str) -> TokenPair:
        return refresh_token_grant(refresh_token, timeout=self._timeout)


# =============================================================================
# OAuth
# =============================================================================

def redirect_uri() -> str:
    return f"{get_settings().APP_URL}/api/v1/chatwork/callback"


def build_authorize_url(client_id: str, state: str) -> str:
    """Chatwork 認可URLを生成"""
    params = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": redirect_uri(),
        "scope": CHATWORK_SCOPE,
        "state": state,
    }
    return f"{CHATWORK_AUTHORIZE_URL}?{urlencode(params)}"


def _basic_auth_header() -> str:
    settings = get_settings()
    if not settings.CHATWORK_CLIENT_ID or not settings.CHATWORK_CLIENT_SECRET:
        raise MessagingConfigError("Chatwork Client configuration is missing")
    raw = f"{settings.CHATWORK_CLIENT_ID}:{settings.CHATWORK_CLIENT_SECRET}".encode("utf-8")
    return f"Basic {base64.b64encode(raw).decode('ascii')}"


def _token_request(form: Dict[str, str], timeout: Optional[float]) -> httpx.Response:
    return httpx.post(
        CHATWORK_TOKEN_URL,
        headers={
            "Content-Type": "application/x-www-form-urlencoded",
            "Authorization": _basic_auth_header(),
        },
        data=form,
        timeout=timeout or get_settings().HTTP_TIMEOUT_SECONDS,
    )


def exchange_code(code: str, timeout: Optional[float] = None) -> TokenPair:
    """
    認可コードをアクセストークンと交換

    Raises:
        MessagingAuthError: access_token が返らなかった場合
    """
    response = _token_request(
        {"grant_type": "authorization_code", "code": code, "redirect_uri": redirect_uri()},
        timeout,
    )
    data = response.json()
    if not data.get("access_token"):
        raise MessagingAuthError("token_exchange_failed", response.status_code)
    return TokenPair(
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token"),
        scope=data.get("scope"),
    )


def refresh_token_grant(refresh_token: str, timeout: Optional[float] = None) -> TokenPair:
    """
    アクセストークンを更新

    Raises:
        MessagingConfigError: クライアント設定がない場合
        MessagingAuthError: 更新に失敗した場合
    """
    response = _token_request(
        {"grant_type": "refresh_token", "refresh_token": refresh_token},
        timeout,
    )
    data = response.json()
    if not response.is_success:
        reason = data.get("error_description") or data.get("error")
        raise MessagingAuthError(f"Chatwork token refresh failed: {reason}", response.status_code)
    return TokenPair(access_token=data["access_token"], refresh_token=data.get("refresh_token"))


# =============================================================================
# 例外クラス
# =============================================================================

class ChatworkError(MessagingError):
    """Chatwork API エラーの基底クラス"""
    pass


class ChatworkAPIError(ChatworkError):
    """API エラー"""
    pass


class ChatworkRateLimitError(ChatworkError):
    """レート制限エラー"""
    pass


class ChatworkTimeoutError(ChatworkError):
    """タイムアウトエラー"""
    pass
