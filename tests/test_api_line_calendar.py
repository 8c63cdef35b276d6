"""
LINE 連携・通知 API と Google Calendar API のテスト
"""

from datetime import datetime
from unittest.mock import patch
from urllib.parse import parse_qs, unquote, urlparse

import httpx
from sqlalchemy.exc import OperationalError

from api.app.api.v1.google_calendar import router as calendar_router
from api.app.api.v1.line import router as line_router
from conftest import TEST_USER_ID
from memento import line
from memento.google_calendar import GoogleCalendarError


LINE_ENV = {
    "LINE_LOGIN_CHANNEL_ID": "line-channel",
    "LINE_LOGIN_CHANNEL_SECRET": "line-secret",
    "LINE_REDIRECT_URI": "https://api.memento.example.com/api/v1/line/callback",
}

LINE_SETTINGS = {
    "user_id": TEST_USER_ID,
    "line_user_id": "U123",
    "line_access_token": "line-token",
    "line_display_name": "山田",
    "enabled": True,
    "notification_types": ["reminder", "summary"],
    "is_friend": True,
}


# ================================================================
# LINE 連携
# ================================================================

class TestLineConnect:
    """POST /line/connect"""

    def test_configuration_missing(self, make_client):
        response = make_client(line_router).post("/api/v1/line/connect", json={})
        assert response.status_code == 500
        assert response.json()["error"] == "LINE連携の設定が不足しています"

    def test_returns_oauth_url_and_cookies(self, make_client, set_env):
        set_env(**LINE_ENV)

        response = make_client(line_router).post("/api/v1/line/connect", json={"reconnect": True})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        query = parse_qs(urlparse(data["oauthUrl"]).query)
        assert query["client_id"] == ["line-channel"]
        assert query["bot_prompt"] == ["aggressive"]
        assert query["state"][0].endswith("::aggressive")
        assert response.cookies[line.STATE_COOKIE] == query["state"][0]
        assert response.cookies[line.USER_COOKIE] == TEST_USER_ID

    def test_other_user_forbidden(self, make_client, set_env):
        set_env(**LINE_ENV)
        response = make_client(line_router).post("/api/v1/line/connect", json={"userId": "other"})
        assert response.status_code == 403


class TestLineCallback:
    """GET /line/callback"""

    def _client(self, make_client, state="abc::normal", user_id=TEST_USER_ID, authenticated=True):
        client = make_client(line_router, authenticated=authenticated)
        client.cookies.set(line.STATE_COOKIE, state)
        if user_id:
            client.cookies.set(line.USER_COOKIE, user_id)
        return client

    def _redirect_query(self, response):
        assert response.status_code in (302, 307)
        location = response.headers["location"]
        assert location.startswith("https://memento.example.com/settings?")
        return unquote(urlparse(location).query)

    def test_provider_error(self, make_client):
        response = self._client(make_client).get(
            "/api/v1/line/callback",
            params={"error": "access_denied", "error_description": "user cancelled"},
        )
        assert self._redirect_query(response) == "line_error=user cancelled"

    def test_missing_params(self, make_client):
        response = self._client(make_client).get("/api/v1/line/callback", params={"code": "c"})
        assert "Missing authentication parameters" in self._redirect_query(response)

    def test_state_mismatch(self, make_client, set_env):
        set_env(**LINE_ENV)
        response = self._client(make_client, state="other::normal").get(
            "/api/v1/line/callback", params={"code": "c", "state": "abc::normal"},
        )
        assert "Invalid authentication state" in self._redirect_query(response)

    def test_session_expired(self, make_client, set_env):
        set_env(**LINE_ENV)
        response = self._client(make_client, user_id=None).get(
            "/api/v1/line/callback", params={"code": "c", "state": "abc::normal"},
        )
        assert "Session expired" in self._redirect_query(response)

    @patch("api.app.api.v1.line.line_notifications")
    @patch("api.app.api.v1.line.line.exchange_code")
    def test_requires_login(self, mock_exchange, mock_repo, make_client, set_env):
        """未ログインなら Cookie のユーザーIDがあってもログイン画面へ戻し、保存しない"""
        set_env(**LINE_ENV)

        response = self._client(make_client, user_id="victim-user-id", authenticated=False).get(
            "/api/v1/line/callback", params={"code": "c", "state": "abc::normal"},
        )

        assert response.status_code in (302, 307)
        location = response.headers["location"]
        assert unquote(location) == "https://memento.example.com/login?line_error=Please login first"
        mock_exchange.assert_not_called()
        mock_repo.upsert_settings.assert_not_called()

    @patch("api.app.api.v1.line.line_notifications")
    @patch("api.app.api.v1.line.line.exchange_code")
    def test_cookie_user_must_match_login(self, mock_exchange, mock_repo, make_client, set_env):
        """Cookie のユーザーIDがログインユーザーと異なれば連携しない"""
        set_env(**LINE_ENV)

        response = self._client(make_client, user_id="victim-user-id").get(
            "/api/v1/line/callback", params={"code": "c", "state": "abc::normal"},
        )

        assert "Invalid authentication state" in self._redirect_query(response)
        mock_exchange.assert_not_called()
        mock_repo.upsert_settings.assert_not_called()

    @patch("api.app.api.v1.line.line_notifications")
    @patch("api.app.api.v1.line.line.check_friendship", return_value=True)
    @patch("api.app.api.v1.line.line.get_profile", return_value=("U123", "山田"))
    @patch("api.app.api.v1.line.line.exchange_code", return_value={"access_token": "line-token"})
    def test_success(self, mock_exchange, mock_profile, mock_friend, mock_repo, make_client, set_env):
        set_env(**LINE_ENV)
        mock_repo.get_settings.return_value = None

        response = self._client(make_client).get(
            "/api/v1/line/callback", params={"code": "c", "state": "abc::normal"},
        )

        assert self._redirect_query(response) == "line_success=LINE連携が完了しました"
        kwargs = mock_repo.upsert_settings.call_args.kwargs
        assert kwargs["user_id"] == TEST_USER_ID
        assert kwargs["line_user_id"] == "U123"
        assert kwargs["is_friend"] is True

    @patch("api.app.api.v1.line.line_notifications")
    @patch("api.app.api.v1.line.line.check_friendship", return_value=None)
    @patch("api.app.api.v1.line.line.get_profile", side_effect=httpx.ConnectError("down"))
    @patch("api.app.api.v1.line.line.exchange_code", return_value={"access_token": "line-token"})
    def test_profile_failure_uses_defaults(self, mock_exchange, mock_profile, mock_friend, mock_repo, make_client, set_env):
        """プロフィール取得失敗時も既定値で保存する"""
        set_env(**LINE_ENV)
        mock_repo.get_settings.return_value = {"is_friend": False}

        response = self._client(make_client).get(
            "/api/v1/line/callback", params={"code": "c", "state": "abc::normal"},
        )

        assert "line_success" in self._redirect_query(response)
        kwargs = mock_repo.upsert_settings.call_args.kwargs
        assert kwargs["line_user_id"] == line.DEFAULT_LINE_USER_ID
        assert kwargs["line_display_name"] == line.DEFAULT_DISPLAY_NAME
        assert kwargs["is_friend"] is False

    @patch("api.app.api.v1.line.line.exchange_code", side_effect=line.LineAPIError("bad code", status_code=400))
    def test_token_exchange_failure(self, mock_exchange, make_client, set_env):
        set_env(**LINE_ENV)
        response = self._client(make_client).get(
            "/api/v1/line/callback", params={"code": "c", "state": "abc::normal"},
        )
        assert "Failed to exchange token" in self._redirect_query(response)
        assert "line_oauth_state=" in response.headers.get("set-cookie", "")


class TestLineDisconnect:
    """POST /line/disconnect"""

    @patch("api.app.api.v1.line.line.revoke_token")
    @patch("api.app.api.v1.line.line_notifications")
    def test_revokes_and_deletes(self, mock_repo, mock_revoke, make_client, set_env):
        set_env(**LINE_ENV)
        mock_repo.get_settings.return_value = LINE_SETTINGS

        response = make_client(line_router).post("/api/v1/line/disconnect", json={})

        assert response.status_code == 200
        assert response.json()["success"] is True
        mock_revoke.assert_called_once_with("line-token", "line-channel", "line-secret")
        mock_repo.delete_settings.assert_called_once()

    @patch("api.app.api.v1.line.line_notifications")
    def test_delete_failure(self, mock_repo, make_client):
        mock_repo.get_settings.return_value = None
        mock_repo.delete_settings.side_effect = OperationalError("DELETE", {}, Exception("down"))

        response = make_client(line_router).post("/api/v1/line/disconnect", json={})

        assert response.status_code == 500
        assert response.json()["error"] == "LINE連携の解除に失敗しました"


# ================================================================
# LINE 通知
# ================================================================

class TestLineSend:
    """POST /line/send"""

    def test_missing_type(self, make_client):
        response = make_client(line_router).post("/api/v1/line/send", json={})
        assert response.status_code == 400

    @patch("api.app.api.v1.line.line_notifications")
    def test_not_connected(self, mock_repo, make_client):
        mock_repo.get_settings.return_value = None
        response = make_client(line_router).post("/api/v1/line/send", json={"notificationType": "reminder"})
        assert response.json()["error"] == "LINE連携が設定されていません"

    @patch("api.app.api.v1.line.line_notifications")
    def test_type_not_allowed(self, mock_repo, make_client):
        mock_repo.get_settings.return_value = LINE_SETTINGS
        response = make_client(line_router).post("/api/v1/line/send", json={"notificationType": "follow_up"})
        assert response.status_code == 400
        assert "reminder, summary" in response.json()["details"]

    @patch("api.app.api.v1.line.line_notifications")
    def test_not_friend(self, mock_repo, make_client):
        mock_repo.get_settings.return_value = dict(LINE_SETTINGS, is_friend=False)
        response = make_client(line_router).post("/api/v1/line/send", json={"notificationType": "reminder"})
        data = response.json()
        assert data["action"] == "reconnect"
        assert data["reconnectUrl"] == "/api/v1/line/connect"

    @patch("api.app.api.v1.line.notification_logs")
    @patch("api.app.api.v1.line.line.push_message")
    @patch("api.app.api.v1.line.line_notifications")
    def test_sends_default_message(self, mock_repo, mock_push, mock_logs, make_client, set_env):
        set_env(LINE_MESSAGING_ACCESS_TOKEN="channel-token")
        mock_repo.get_settings.return_value = LINE_SETTINGS
        mock_push.return_value = line.PushResult(success=True, status_code=200)
        mock_logs.insert_log.return_value = "log-1"

        response = make_client(line_router).post(
            "/api/v1/line/send",
            json={"notificationType": "summary", "sessionId": "s-1"},
        )

        assert response.status_code == 200
        assert response.json()["notificationId"] == "log-1"
        to, message = mock_push.call_args[0]
        assert to == "U123"
        assert message == line.default_message("summary", "山田")
        assert mock_logs.insert_log.call_args.kwargs["status"] == "sent"

    @patch("api.app.api.v1.line.notification_logs")
    @patch("api.app.api.v1.line.line.push_message")
    @patch("api.app.api.v1.line.line_notifications")
    def test_push_failure_logged(self, mock_repo, mock_push, mock_logs, make_client, set_env):
        set_env(LINE_MESSAGING_ACCESS_TOKEN="channel-token")
        mock_repo.get_settings.return_value = LINE_SETTINGS
        mock_push.return_value = line.PushResult(success=False, status_code=400, error="bad request")

        response = make_client(line_router).post(
            "/api/v1/line/send", json={"notificationType": "reminder", "message": "明日です"},
        )

        assert response.status_code == 500
        assert response.json()["details"] == "LINE API error: 400"
        kwargs = mock_logs.insert_log.call_args.kwargs
        assert kwargs["status"] == "failed"
        assert kwargs["error_message"] == "bad request"


class TestCheckFriendStatus:
    """POST /line/check-friend-status"""

    @patch("api.app.api.v1.line.line_notifications")
    def test_not_found(self, mock_repo, make_client):
        mock_repo.get_settings.return_value = None
        response = make_client(line_router).post("/api/v1/line/check-friend-status")
        assert response.status_code == 404

    @patch("api.app.api.v1.line.line.check_friendship", return_value=None)
    @patch("api.app.api.v1.line.line_notifications")
    def test_api_failure_keeps_state(self, mock_repo, mock_check, make_client):
        mock_repo.get_settings.return_value = LINE_SETTINGS

        response = make_client(line_router).post("/api/v1/line/check-friend-status")

        data = response.json()
        assert data["isFriend"] is True
        assert "現状維持" in data["message"]
        assert mock_repo.update_friend_status.call_args.kwargs["is_friend"] is None

    @patch("api.app.api.v1.line.line.check_friendship", return_value=False)
    @patch("api.app.api.v1.line.line_notifications")
    def test_updates_state(self, mock_repo, mock_check, make_client):
        mock_repo.get_settings.return_value = LINE_SETTINGS
        response = make_client(line_router).post("/api/v1/line/check-friend-status")
        assert response.json()["isFriend"] is False


# ================================================================
# Google Calendar
# ================================================================

class TestGoogleCalendarAPI:
    """/google-calendar/*"""

    @patch("api.app.api.v1.google_calendar.get_valid_access_token", return_value="g-token")
    def test_get_token(self, mock_token, make_client):
        response = make_client(calendar_router).get("/api/v1/google-calendar/get-token")
        assert response.json() == {"accessToken": "g-token"}

    @patch("api.app.api.v1.google_calendar.get_valid_access_token")
    def test_get_token_error(self, mock_token, make_client):
        mock_token.side_effect = GoogleCalendarError("Googleアカウントが連携されていません", status_code=401)
        response = make_client(calendar_router).get("/api/v1/google-calendar/get-token")
        assert response.status_code == 401
        assert response.json() == {"error": "Googleアカウントが連携されていません"}

    def test_schedule_requires_fields(self, make_client):
        response = make_client(calendar_router).post(
            "/api/v1/google-calendar/schedule", json={"sessionId": "s-1"},
        )
        assert response.status_code == 400

    @patch("api.app.api.v1.google_calendar.session_service.schedule_next_session")
    def test_schedule(self, mock_schedule, make_client):
        mock_schedule.return_value = {"success": True, "eventId": "evt-1", "htmlLink": "https://calendar"}

        response = make_client(calendar_router).post("/api/v1/google-calendar/schedule", json={
            "sessionId": "s-1",
            "startTime": "2026-10-26T10:00:00+09:00",
            "durationMinutes": 30,
        })

        assert response.status_code == 200
        assert response.json()["eventId"] == "evt-1"
        args, kwargs = mock_schedule.call_args
        assert args[1:] == ("s-1", TEST_USER_ID)
        assert isinstance(kwargs["start"], datetime)
        assert kwargs["duration_minutes"] == 30
        assert kwargs["user_email"] == "manager@example.com"

    @patch("api.app.api.v1.google_calendar.session_service.schedule_next_session", return_value=None)
    def test_schedule_session_not_found(self, mock_schedule, make_client):
        response = make_client(calendar_router).post("/api/v1/google-calendar/schedule", json={
            "sessionId": "missing",
            "startTime": "2026-10-26T10:00:00+09:00",
        })
        assert response.status_code == 404

    @patch("memento.session_service.get_valid_access_token")
    @patch("memento.session_service.sessions")
    def test_schedule_other_users_session(self, mock_sessions, mock_token, make_client):
        """他ユーザーのセッションには予定を登録しない"""
        mock_sessions.get_session.return_value = {"id": "s-9", "userId": "someone-else"}

        response = make_client(calendar_router).post("/api/v1/google-calendar/schedule", json={
            "sessionId": "s-9",
            "startTime": "2026-10-26T10:00:00+09:00",
        })

        assert response.status_code == 404
        mock_token.assert_not_called()
        mock_sessions.update_session.assert_not_called()

    @patch("api.app.api.v1.google_calendar.session_service.schedule_next_session")
    def test_schedule_calendar_error(self, mock_schedule, make_client):
        mock_schedule.side_effect = GoogleCalendarError("forbidden", status_code=403)

        response = make_client(calendar_router).post("/api/v1/google-calendar/schedule", json={
            "sessionId": "s-1",
            "startTime": "2026-10-26T10:00:00+09:00",
        })

        assert response.status_code == 403
        assert response.json() == {"error": "Googleカレンダーイベントの作成に失敗しました", "details": "forbidden"}

    @patch("api.app.api.v1.google_calendar.GoogleCalendarClient")
    @patch("api.app.api.v1.google_calendar.get_valid_access_token", return_value="g-token")
    def test_list_events(self, mock_token, mock_client, make_client):
        mock_client.return_value.list_events.return_value = [{"id": "evt-1"}]

        response = make_client(calendar_router).get(
            "/api/v1/google-calendar/events", params={"maxResults": 5},
        )

        assert response.json() == {"events": [{"id": "evt-1"}]}
        mock_client.assert_called_once_with("g-token")
        assert mock_client.return_value.list_events.call_args.kwargs["max_results"] == 5
