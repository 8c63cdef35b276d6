"""
共通基盤のテスト

構造化ログ・リクエストユーザーコンテキスト・DB接続・シークレット取得
"""

import asyncio
import json
import logging
from unittest.mock import MagicMock, patch

import pytest

from memento import db
from memento.logging import (
    ConsoleFormatter,
    StructuredFormatter,
    get_logger,
    log_audit_event,
    log_external_api_call,
)
from memento.request_context import RequestUserContext, get_current_user_id
from memento.secrets import _secret_to_env_var, clear_secret_cache, get_secret, get_secret_cached


class TestRequestUserContext:
    """リクエストユーザーコンテキストのテスト"""

    def test_sync_context(self):
        assert get_current_user_id() is None
        with RequestUserContext("u-1"):
            assert get_current_user_id() == "u-1"
            with RequestUserContext("u-2"):
                assert get_current_user_id() == "u-2"
            assert get_current_user_id() == "u-1"
        assert get_current_user_id() is None

    def test_async_context(self):
        async def run():
            async with RequestUserContext("u-3"):
                return get_current_user_id()

        assert asyncio.run(run()) == "u-3"
        assert get_current_user_id() is None


class TestStructuredLogging:
    """構造化ログのテスト"""

    def _record(self, **extra_fields):
        record = logging.LogRecord("memento.test", logging.INFO, __file__, 10, "Session completed", (), None)
        record.extra_fields = extra_fields
        return record

    def test_format_includes_extra_and_user(self):
        with RequestUserContext("u-1"):
            entry = json.loads(StructuredFormatter().format(self._record(session_id="s-1")))

        assert entry["severity"] == "INFO"
        assert entry["message"] == "Session completed"
        assert entry["session_id"] == "s-1"
        assert entry["user_id"] == "u-1"
        assert entry["source"]["line"] == 10

    def test_format_without_user(self):
        entry = json.loads(StructuredFormatter().format(self._record()))
        assert "user_id" not in entry

    def test_logger_accepts_keyword_fields(self):
        logger = get_logger("memento.tests.keyword")
        records = []
        handler = logging.Handler()
        handler.emit = records.append
        logger.addHandler(handler)
        try:
            logger.info("hello", provider="slack")
        finally:
            logger.removeHandler(handler)

        assert records[0].getMessage() == "hello"
        assert records[0].extra_fields == {"provider": "slack"}

    def test_console_format_appends_fields(self):
        line = ConsoleFormatter().format(self._record(provider="chatwork", status_code=401))
        assert line.endswith("| Session completed | provider=chatwork status_code=401")

    def test_console_format_without_fields(self):
        line = ConsoleFormatter().format(self._record())
        assert line.endswith("| memento.test | Session completed")

    def test_external_api_error_is_warning(self):
        logger = MagicMock()
        log_external_api_call(logger, service="line", method="POST",
                              endpoint="/v2/bot/message/push", status_code=400, duration_ms=12.0)

        args, kwargs = logger.log.call_args
        assert args[0] == logging.WARNING
        assert args[1] == "External API: line POST /v2/bot/message/push -> 400"
        assert kwargs["service"] == "line"

    def test_audit_event(self):
        logger = MagicMock()
        log_audit_event(logger=logger, action="connect", resource_type="line", resource_id="u-1", user_id="u-1")

        args, kwargs = logger.info.call_args
        assert args[0] == "Audit: connect line/u-1"
        assert kwargs["audit"] is True
        assert kwargs["details"] == {}


class TestDbSession:
    """DBセッションのテスト"""

    @patch("memento.db.get_db_pool")
    def test_sets_request_user(self, mock_pool):
        conn = MagicMock()
        mock_pool.return_value.connect.return_value = conn

        with db.get_db_session(user_id="u-1") as session_conn:
            assert session_conn is conn
            sql, params = conn.execute.call_args_list[0][0]
            # セッション単位（false）で設定し、commit しても外れない
            assert "set_config('request.jwt.claim.sub', :user_id, false)" in str(sql)
            assert "set_config('role', :role, false)" in str(sql)
            assert params["user_id"] == "u-1"
            assert params["role"] == "authenticated"
            assert json.loads(params["claims"]) == {"sub": "u-1", "role": "authenticated"}
            conn.commit.assert_called_once()

        conn.close.assert_called_once()

    @patch("memento.db.get_db_pool")
    def test_request_user_survives_repository_commit(self, mock_pool):
        """リポジトリが commit した後もユーザー設定を再適用しない"""
        conn = MagicMock()
        mock_pool.return_value.connect.return_value = conn

        with db.get_db_session(user_id="u-1") as session_conn:
            session_conn.execute("UPDATE subordinates ...")
            session_conn.commit()
            session_conn.execute("DELETE FROM subordinate_tags ...")
            executed = [str(c[0][0]) for c in conn.execute.call_args_list]

        assert "is_local" not in executed[0]
        assert ", true)" not in executed[0]
        assert executed[1:] == ["UPDATE subordinates ...", "DELETE FROM subordinate_tags ..."]

    @patch("memento.db.get_db_pool")
    def test_request_user_reset_before_release(self, mock_pool):
        """プールに戻す前にロールとクレームを元に戻す"""
        conn = MagicMock()
        mock_pool.return_value.connect.return_value = conn

        with db.get_db_session(user_id="u-1"):
            pass

        executed = [str(c[0][0]) for c in conn.execute.call_args_list]
        assert "RESET ROLE" in executed[-2]
        assert "set_config('request.jwt.claim.sub', '', false)" in executed[-1]
        conn.rollback.assert_called_once()
        conn.invalidate.assert_not_called()
        conn.close.assert_called_once()

    @patch("memento.db.get_db_pool")
    def test_failed_reset_invalidates_connection(self, mock_pool):
        """元に戻せなかった接続は破棄する"""
        conn = MagicMock()
        mock_pool.return_value.connect.return_value = conn

        with db.get_db_session(user_id="u-1"):
            conn.rollback.side_effect = OSError("connection lost")

        conn.invalidate.assert_called_once()
        conn.close.assert_called_once()

    @patch("memento.db.get_db_pool")
    def test_rls_role_from_env(self, mock_pool, set_env):
        set_env(DB_RLS_ROLE="app_user")
        conn = MagicMock()
        mock_pool.return_value.connect.return_value = conn

        with db.get_db_session(user_id="u-1"):
            params = conn.execute.call_args_list[0][0][1]

        assert params["role"] == "app_user"

    @patch("memento.db.get_db_pool")
    def test_anonymous_session(self, mock_pool):
        conn = MagicMock()
        mock_pool.return_value.connect.return_value = conn

        with db.get_db_session():
            pass

        conn.execute.assert_not_called()
        conn.close.assert_called_once()

    @patch("memento.db.get_db_pool")
    def test_closes_on_error(self, mock_pool):
        conn = MagicMock()
        mock_pool.return_value.connect.return_value = conn

        with pytest.raises(RuntimeError):
            with db.get_db_session():
                raise RuntimeError("boom")

        conn.close.assert_called_once()

    @patch("memento.db.get_db_pool")
    def test_health_check_failure(self, mock_pool):
        mock_pool.return_value.connect.side_effect = OSError("refused")
        assert db.health_check() is False


class TestSecrets:
    """シークレット取得のテスト"""

    def test_env_var_name(self):
        assert _secret_to_env_var("supabase-jwt-secret") == "SUPABASE_JWT_SECRET"

    def test_env_var_preferred(self, monkeypatch):
        monkeypatch.setenv("LINE_LOGIN_CHANNEL_SECRET", " secret-value \n")
        assert get_secret("line-login-channel-secret") == "secret-value"

    @patch("memento.secrets._get_client")
    def test_secret_manager(self, mock_client):
        response = MagicMock()
        response.payload.data = b"from-manager\n"
        mock_client.return_value.access_secret_version.return_value = response

        assert get_secret("deepgram-api-key") == "from-manager"
        mock_client.return_value.access_secret_version.assert_called_once_with(
            request={"name": "projects/test-project/secrets/deepgram-api-key/versions/latest"}
        )

    @patch("memento.secrets.get_secret")
    def test_cached(self, mock_get):
        mock_get.return_value = "value"
        clear_secret_cache()

        get_secret_cached("gemini-api-key")
        get_secret_cached("gemini-api-key")

        assert mock_get.call_count == 1
