"""
Google Calendar 連携

profiles に保存した Google OAuth トークンを使い、
次回1on1の予定をユーザーのカレンダーに登録する。

トークンは有効期限の5分前から期限切れとみなし、
リフレッシュトークンで更新して profiles に保存し直す。

使用例:
    from memento import google_calendar

    token = google_calendar.get_valid_access_token(conn, user_id)
    client = google_calendar.GoogleCalendarClient(token)
    event = client.create_event(
        summary="1on1セッション: 田中",
        start=start_at,
        end=start_at + timedelta(minutes=60),
    )
"""

import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from memento.config import get_settings
from memento.logging import get_logger, log_external_api_call
from memento.repositories import profiles

logger = get_logger(__name__)

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
CALENDAR_SCOPES = ["https://www.googleapis.com/auth/calendar.events"]
DEFAULT_CALENDAR_ID = "primary"

# 期限の5分前から期限切れとみなす
EXPIRY_MARGIN_MS = 5 * 60 * 1000


def _now_ms() -> int:
    return int(time.time() * 1000)


def is_token_expired(expires_at_ms: Optional[int], now_ms: Optional[int] = None) -> bool:
    """有効期限が未設定、または5分以内に切れる場合 True"""
    if not expires_at_ms:
        return True
    now_ms = _now_ms() if now_ms is None else now_ms
    return int(expires_at_ms) < now_ms + EXPIRY_MARGIN_MS


def refresh_access_token(refresh_token: str) -> Credentials:
    """
    リフレッシュトークンでアクセストークンを更新

    Raises:
        GoogleCalendarError: クライアント設定不足（500）、プロバイダーエラー
    """
    settings = get_settings()
    if not settings.GOOGLE_CLIENT_ID or not settings.GOOGLE_CLIENT_SECRET:
        logger.error("Missing Google OAuth credentials in env")
        raise GoogleCalendarError("Server configuration error", status_code=500)

    credentials = Credentials(
        token=None,
        refresh_token=refresh_token,
        token_uri=GOOGLE_TOKEN_URI,
        client_id=settings.GOOGLE_CLIENT_ID,
        client_secret=settings.GOOGLE_CLIENT_SECRET,
    )
    start = time.time()
    try:
        credentials.refresh(Request())
    except RefreshError as e:
        details = e.args[1] if len(e.args) > 1 else str(e)
        logger.error("Failed to refresh Google token", error=str(e.args[0]) if e.args else "")
        raise GoogleCalendarError("Failed to refresh token", status_code=400, details=details) from e

    log_external_api_call(
        logger,
        service="google",
        method="POST",
        endpoint="/token",
        status_code=200,
        duration_ms=round((time.time() - start) * 1000, 2),
    )
    return credentials


def _expiry_to_ms(expiry: Optional[datetime]) -> int:
    if expiry is None:
        return _now_ms() + 3600 * 1000
    # google-auth の expiry は naive UTC
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return int(expiry.timestamp() * 1000)


def get_valid_access_token(conn, user_id: str) -> str:
    """
    有効な Google アクセストークンを取得（必要ならリフレッシュ）

    Raises:
        GoogleCalendarError:
            404 トークンなし / 400 リフレッシュトークンなし /
            リフレッシュ失敗（プロバイダーのステータス）
    """
    tokens = profiles.get_google_tokens(conn, user_id)
    if not tokens or not tokens.get("google_access_token"):
        raise GoogleCalendarError("No Google token found", status_code=404)

    if not is_token_expired(tokens.get("google_token_expires_at")):
        return tokens["google_access_token"]

    logger.info("Google access token expired, refreshing", user_id=user_id)
    stored_refresh_token = tokens.get("google_refresh_token")
    if not stored_refresh_token:
        raise GoogleCalendarError("Token expired and no refresh token available", status_code=400)

    credentials = refresh_access_token(stored_refresh_token)
    rotated = credentials.refresh_token if credentials.refresh_token != stored_refresh_token else None
    profiles.update_google_tokens(
        conn,
        user_id,
        access_token=credentials.token,
        expires_at_ms=_expiry_to_ms(credentials.expiry),
        refresh_token=rotated,
    )
    logger.info("Successfully refreshed and saved Google token", user_id=user_id)
    return credentials.token


class GoogleCalendarClient:
    """ユーザーの OAuth トークンで Calendar API を呼ぶクライアント"""

    def __init__(self, access_token: str, calendar_id: str = DEFAULT_CALENDAR_ID):
        self.access_token = access_token
        self.calendar_id = calendar_id
        self._service = None

    def _get_service(self):
        """Lazy-init Calendar API service."""
        if self._service is not None:
            return self._service
        credentials = Credentials(token=self.access_token, scopes=CALENDAR_SCOPES)
        self._service = build("calendar", "v3", credentials=credentials, cache_discovery=False)
        return self._service

    def create_event(
        self,
        summary: str,
        start: datetime,
        end: datetime,
        description: str = "",
        attendees: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        予定を作成

        Raises:
            GoogleCalendarError: Calendar API エラー
        """
        time_zone = get_settings().TIMEZONE
        body: Dict[str, Any] = {
            "summary": summary,
            "description": description or "",
            "start": {"dateTime": start.isoformat(), "timeZone": time_zone},
            "end": {"dateTime": end.isoformat(), "timeZone": time_zone},
            "reminders": {"useDefault": True},
        }
        if attendees:
            body["attendees"] = [{"email": email} for email in attendees]

        try:
            return (
                self._get_service()
                .events()
                .insert(calendarId=self.calendar_id, body=body)
                .execute()
            )
        except HttpError as e:
            raise _calendar_error(e) from e

    def list_events(
        self,
        time_min: Optional[datetime] = None,
        time_max: Optional[datetime] = None,
        max_results: int = 10,
    ) -> List[Dict[str, Any]]:
        """開始時刻順に予定を取得"""
        params: Dict[str, Any] = {
            "calendarId": self.calendar_id,
            "maxResults": max_results,
            "singleEvents": True,
            "orderBy": "startTime",
        }
        if time_min:
            params["timeMin"] = time_min.isoformat()
        if time_max:
            params["timeMax"] = time_max.isoformat()

        try:
            result = self._get_service().events().list(**params).execute()
        except HttpError as e:
            raise _calendar_error(e) from e
        return result.get("items", [])


def _calendar_error(error: HttpError) -> "GoogleCalendarError":
    status = getattr(error.resp, "status", 500)
    logger.error("Google Calendar API error", status_code=status)
    return GoogleCalendarError(
        f"Google Calendar API error: {status}",
        status_code=int(status),
        details=str(error),
    )


# =============================================================================
# 例外クラス
# =============================================================================

class GoogleCalendarError(Exception):
    """Google Calendar 連携エラー"""

    def __init__(self, message: str, status_code: int = 500, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details
