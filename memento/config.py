"""
設定管理モジュール

環境変数とデフォルト値を一元管理します。
Supabase / 各外部サービスの認証情報もここから取得する。

使用例:
    from memento.config import get_settings

    settings = get_settings()
    print(settings.SUPABASE_DB_HOST)
    print(settings.GEMINI_MODEL)
"""

import os
from dataclasses import dataclass, field
from typing import Optional
from functools import lru_cache


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    """環境変数を取得（前後の空白は除去、空文字は未設定扱い）"""
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value or default


@dataclass(frozen=True)
class Settings:
    """
    アプリケーション設定

    frozen=True で不変オブジェクトとし、スレッドセーフを保証。
    """

    # GCP プロジェクト（Secret Manager 用）
    PROJECT_ID: str = field(default_factory=lambda: os.getenv(
        "PROJECT_ID", "memento-1on1"
    ))

    # Supabase Postgres 設定
    DB_HOST: str = field(default_factory=lambda: os.getenv(
        "DB_HOST", "localhost"
    ))
    DB_PORT: int = field(default_factory=lambda: int(os.getenv(
        "DB_PORT", "5432"
    )))
    DB_NAME: str = field(default_factory=lambda: os.getenv(
        "DB_NAME", "postgres"
    ))
    DB_USER: str = field(default_factory=lambda: os.getenv(
        "DB_USER", "postgres"
    ))
    # ユーザー付きの接続で切り替えるロール（RLS を適用させる）
    DB_RLS_ROLE: str = field(default_factory=lambda: os.getenv(
        "DB_RLS_ROLE", "authenticated"
    ))

    # コネクションプール設定
    DB_POOL_SIZE: int = field(default_factory=lambda: int(os.getenv(
        "DB_POOL_SIZE", "5"
    )))
    DB_MAX_OVERFLOW: int = field(default_factory=lambda: int(os.getenv(
        "DB_MAX_OVERFLOW", "2"
    )))
    DB_POOL_TIMEOUT: int = field(default_factory=lambda: int(os.getenv(
        "DB_POOL_TIMEOUT", "30"
    )))
    DB_POOL_RECYCLE: int = field(default_factory=lambda: int(os.getenv(
        "DB_POOL_RECYCLE", "1800"  # 30分でリサイクル
    )))

    # Supabase Auth
    SUPABASE_URL: Optional[str] = field(default_factory=lambda: _env(
        "SUPABASE_URL", _env("NEXT_PUBLIC_SUPABASE_URL")
    ))

    # サイトURL（OAuthリダイレクト先）
    SITE_URL: str = field(default_factory=lambda: _env(
        "SITE_URL", _env("NEXT_PUBLIC_SITE_URL", "http://localhost:3000")
    ))
    APP_URL: str = field(default_factory=lambda: _env(
        "APP_URL", _env("NEXT_PUBLIC_APP_URL", _env("SITE_URL", "http://localhost:3000"))
    ))

    # Gemini
    GEMINI_API_KEY: Optional[str] = field(default_factory=lambda: _env("GEMINI_API_KEY"))
    GEMINI_MODEL: str = field(default_factory=lambda: os.getenv(
        "GEMINI_MODEL", "gemini-2.0-flash"
    ))

    # Deepgram
    DEEPGRAM_API_KEY: Optional[str] = field(default_factory=lambda: _env("DEEPGRAM_API_KEY"))
    DEEPGRAM_TOKEN_TTL_SECONDS: int = field(default_factory=lambda: int(os.getenv(
        "DEEPGRAM_TOKEN_TTL_SECONDS", "3600"
    )))

    # LiveKit
    LIVEKIT_API_KEY: Optional[str] = field(default_factory=lambda: _env("LIVEKIT_API_KEY"))
    LIVEKIT_API_SECRET: Optional[str] = field(default_factory=lambda: _env("LIVEKIT_API_SECRET"))
    LIVEKIT_URL: Optional[str] = field(default_factory=lambda: _env(
        "LIVEKIT_URL", _env("NEXT_PUBLIC_LIVEKIT_URL")
    ))

    # Google OAuth（カレンダー連携）
    GOOGLE_CLIENT_ID: Optional[str] = field(default_factory=lambda: _env(
        "GOOGLE_CLIENT_ID", _env("SUPABASE_AUTH_EXTERNAL_GOOGLE_CLIENT_ID")
    ))
    GOOGLE_CLIENT_SECRET: Optional[str] = field(default_factory=lambda: _env(
        "GOOGLE_CLIENT_SECRET", _env("SUPABASE_AUTH_EXTERNAL_GOOGLE_SECRET")
    ))

    # LINE Login / Messaging API
    LINE_LOGIN_CHANNEL_ID: Optional[str] = field(default_factory=lambda: _env("LINE_LOGIN_CHANNEL_ID"))
    LINE_LOGIN_CHANNEL_SECRET: Optional[str] = field(default_factory=lambda: _env("LINE_LOGIN_CHANNEL_SECRET"))
    LINE_REDIRECT_URI: Optional[str] = field(default_factory=lambda: _env("LINE_REDIRECT_URI"))
    LINE_SITE_URL: Optional[str] = field(default_factory=lambda: _env("LINE_SITE_URL"))
    LINE_MESSAGING_ACCESS_TOKEN: Optional[str] = field(default_factory=lambda: _env(
        "LINE_MESSAGING_ACCESS_TOKEN", _env("LINE_CHANNEL_ACCESS_TOKEN")
    ))

    # Slack
    SLACK_CLIENT_ID: Optional[str] = field(default_factory=lambda: _env("SLACK_CLIENT_ID"))
    SLACK_CLIENT_SECRET: Optional[str] = field(default_factory=lambda: _env("SLACK_CLIENT_SECRET"))

    # Chatwork 設定
    CHATWORK_API_URL: str = "https://api.chatwork.com/v2"
    CHATWORK_CLIENT_ID: Optional[str] = field(default_factory=lambda: _env("CHATWORK_CLIENT_ID"))
    CHATWORK_CLIENT_SECRET: Optional[str] = field(default_factory=lambda: _env("CHATWORK_CLIENT_SECRET"))

    # LINE Works
    LINEWORKS_CLIENT_ID: Optional[str] = field(default_factory=lambda: _env("LINEWORKS_CLIENT_ID"))
    LINEWORKS_CLIENT_SECRET: Optional[str] = field(default_factory=lambda: _env("LINEWORKS_CLIENT_SECRET"))
    LINEWORKS_BOT_ID: Optional[str] = field(default_factory=lambda: _env("LINEWORKS_BOT_ID"))

    # レート制限（slowapi 形式）
    RATE_LIMIT_DEFAULT: str = field(default_factory=lambda: os.getenv(
        "RATE_LIMIT_DEFAULT", "100/minute"
    ))

    # 外部HTTPのタイムアウト（秒）
    HTTP_TIMEOUT_SECONDS: float = field(default_factory=lambda: float(os.getenv(
        "HTTP_TIMEOUT_SECONDS", "10"
    )))

    # 環境識別
    ENVIRONMENT: str = field(default_factory=lambda: os.getenv(
        "ENVIRONMENT", "development"
    ))
    DEBUG: bool = field(default_factory=lambda: os.getenv(
        "DEBUG", "true"
    ).lower() == "true")

    # CORS設定（ローカル開発用）
    @property
    def CORS_ORIGINS(self) -> list:
        default_origins = "http://localhost:3000,http://127.0.0.1:3000"
        origins = os.getenv("CORS_ORIGINS", default_origins)
        return [o.strip() for o in origins.split(",")]

    # アプリケーション情報
    SERVICE_NAME: str = "memento-1on1"
    APP_VERSION: str = field(default_factory=lambda: os.getenv(
        "APP_VERSION", "1.0.0"
    ))

    # タイムゾーン
    TIMEZONE: str = "Asia/Tokyo"

    def is_production(self) -> bool:
        """本番環境かどうか"""
        return self.ENVIRONMENT == "production"

    def is_cloud_run(self) -> bool:
        """Cloud Run上で動作しているかどうか"""
        return os.getenv("K_SERVICE") is not None

    def is_cloud_functions(self) -> bool:
        """Cloud Functions上で動作しているかどうか"""
        return os.getenv("FUNCTION_NAME") is not None

    @property
    def line_site_url(self) -> str:
        """LINE連携後のリダイレクト先"""
        return self.LINE_SITE_URL or self.SITE_URL


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    設定を取得（シングルトン）

    lru_cache によりアプリケーション全体で1つのインスタンスを共有。
    テストでは get_settings.cache_clear() で再読込する。
    """
    return Settings()
