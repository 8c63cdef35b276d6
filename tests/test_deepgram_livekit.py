"""
memento/deepgram.py / memento/livekit.py のテスト

Deepgram 一時トークンと LiveKit アクセストークンの発行
"""

from unittest.mock import MagicMock, patch

import httpx
import pytest
from jose import jwt

from memento import deepgram, livekit
from memento.config import get_settings


@pytest.fixture
def deepgram_key(monkeypatch):
    monkeypatch.setenv("DEEPGRAM_API_KEY", "dg-key")
    get_settings.cache_clear()


class TestDeepgram:
    """Deepgram 一時トークンのテスト"""

    def test_not_configured(self):
        assert deepgram.is_configured() is False
        with pytest.raises(deepgram.DeepgramError):
            deepgram.create_temporary_token()

    @patch("memento.deepgram.httpx.post")
    def test_success(self, mock_post, deepgram_key):
        mock_post.return_value = MagicMock(
            is_success=True,
            status_code=200,
            json=MagicMock(return_value={"access_token": "tmp-token", "expires_in": 30}),
        )

        assert deepgram.create_temporary_token() == {"key": "tmp-token", "expiresIn": 30, "mockMode": False}
        kwargs = mock_post.call_args.kwargs
        assert kwargs["headers"]["Authorization"] == "Token dg-key"
        assert kwargs["timeout"] == deepgram.GRANT_TIMEOUT_SECONDS

    @patch("memento.deepgram.httpx.post")
    def test_timeout(self, mock_post, deepgram_key):
        mock_post.side_effect = httpx.ReadTimeout("slow")
        with pytest.raises(deepgram.DeepgramTimeoutError):
            deepgram.create_temporary_token()

    @patch("memento.deepgram.httpx.post")
    def test_api_error(self, mock_post, deepgram_key):
        mock_post.return_value = MagicMock(is_success=False, status_code=401, text="invalid")
        with pytest.raises(deepgram.DeepgramError) as exc_info:
            deepgram.create_temporary_token()
        assert exc_info.value.status_code == 401

    @patch("memento.deepgram.httpx.post")
    def test_missing_access_token(self, mock_post, deepgram_key):
        mock_post.return_value = MagicMock(is_success=True, json=MagicMock(return_value={}))
        with pytest.raises(deepgram.DeepgramError):
            deepgram.create_temporary_token()

    def test_live_options_enable_diarization(self):
        assert deepgram.LIVE_OPTIONS["diarize"] is True
        assert deepgram.LIVE_OPTIONS["language"] == "ja"


class TestLiveKit:
    """LiveKit アクセストークンのテスト"""

    def test_not_configured(self):
        assert livekit.is_configured() is False

    def test_token_claims(self, monkeypatch):
        monkeypatch.setenv("LIVEKIT_API_KEY", "lk-key")
        monkeypatch.setenv("LIVEKIT_API_SECRET", "lk-secret")
        monkeypatch.setenv("LIVEKIT_URL", "wss://livekit.example.com")
        get_settings.cache_clear()

        assert livekit.is_configured() is True
        token = livekit.create_access_token("room-1", "yamada", ttl_seconds=60, now=1_700_000_000)
        claims = jwt.get_unverified_claims(token)

        assert claims["iss"] == "lk-key"
        assert claims["sub"] == "yamada"
        assert claims["exp"] - claims["nbf"] == 60
        assert claims["video"] == {"roomJoin": True, "room": "room-1"}
