"""
pytest 共通フィクスチャ

テスト全体で共有するフィクスチャを定義します。
"""

import os
import sys
import pytest
from unittest.mock import MagicMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

# プロジェクトルートをパスに追加
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

TEST_JWT_SECRET = "test-supabase-jwt-secret-for-unit-tests"
TEST_USER_ID = "11111111-1111-1111-1111-111111111111"


# ================================================================
# 環境変数のモック
# ================================================================

@pytest.fixture(autouse=True)
def mock_env_vars(monkeypatch):
    """テスト用の環境変数を設定（設定・シークレットのキャッシュもリセット）"""
    monkeypatch.setenv("PROJECT_ID", "test-project")
    monkeypatch.setenv("DB_HOST", "localhost")
    monkeypatch.setenv("DB_NAME", "test_db")
    monkeypatch.setenv("DB_USER", "test_user")
    monkeypatch.setenv("SUPABASE_JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setenv("SITE_URL", "https://memento.example.com")
    monkeypatch.setenv("APP_URL", "https://api.memento.example.com")
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("DEBUG", "true")
    for name in (
        "GEMINI_API_KEY", "DEEPGRAM_API_KEY", "LIVEKIT_API_KEY", "LIVEKIT_API_SECRET",
        "LINE_LOGIN_CHANNEL_ID", "LINE_LOGIN_CHANNEL_SECRET", "LINE_REDIRECT_URI",
        "LINE_SITE_URL", "LINE_MESSAGING_ACCESS_TOKEN",
        "SLACK_CLIENT_ID", "SLACK_CLIENT_SECRET",
        "CHATWORK_CLIENT_ID", "CHATWORK_CLIENT_SECRET",
        "LINEWORKS_CLIENT_ID", "LINEWORKS_CLIENT_SECRET", "LINEWORKS_BOT_ID",
        "LIVEKIT_URL", "NEXT_PUBLIC_LIVEKIT_URL",
        "GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "DB_RLS_ROLE",
    ):
        monkeypatch.delenv(name, raising=False)

    from memento.config import get_settings
    from memento.secrets import clear_secret_cache
    import api.app.deps.auth as auth_module

    get_settings.cache_clear()
    clear_secret_cache()
    monkeypatch.setattr(auth_module, "_cached_secret", None)
    yield
    get_settings.cache_clear()
    clear_secret_cache()


@pytest.fixture
def set_env(monkeypatch):
    """環境変数を設定して設定キャッシュを破棄する"""
    from memento.config import get_settings

    def _set(**values):
        for name, value in values.items():
            monkeypatch.setenv(name, value)
        get_settings.cache_clear()

    return _set


# ================================================================
# データベースモック
# ================================================================

@pytest.fixture
def mock_conn():
    """SQLAlchemy コネクションのモック"""
    conn = MagicMock()
    conn.execute.return_value.fetchone.return_value = None
    conn.execute.return_value.fetchall.return_value = []
    return conn


def make_row(mapping):
    """row._mapping を持つ DB 行のモック"""
    row = MagicMock()
    row._mapping = mapping
    return row


# ================================================================
# API テスト用
# ================================================================

@pytest.fixture
def current_user():
    from api.app.deps.auth import CurrentUser
    return CurrentUser(user_id=TEST_USER_ID, email="manager@example.com")


@pytest.fixture
def make_client(mock_conn, current_user):
    """
    ルーターを組み込んだテストクライアントを作成する

    認証と DB 接続は依存性オーバーライドで差し替える。
    authenticated=False で未ログイン状態になる。
    """
    from api.app.deps.auth import get_current_user, get_optional_user
    from api.app.deps.db import (
        get_db_connection,
        get_optional_user_db_connection,
        get_user_db_connection,
    )

    def _make(router, authenticated=True):
        app = FastAPI()
        app.include_router(router, prefix="/api/v1")

        def mock_get_db_connection():
            yield mock_conn

        async def mock_get_current_user():
            return current_user

        async def mock_get_optional_user():
            return current_user if authenticated else None

        app.dependency_overrides[get_db_connection] = mock_get_db_connection
        app.dependency_overrides[get_user_db_connection] = mock_get_db_connection
        app.dependency_overrides[get_optional_user_db_connection] = mock_get_db_connection
        app.dependency_overrides[get_optional_user] = mock_get_optional_user
        if authenticated:
            app.dependency_overrides[get_current_user] = mock_get_current_user
        return TestClient(app, follow_redirects=False)

    return _make
