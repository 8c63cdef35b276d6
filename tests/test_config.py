"""
memento/config.py のテスト

環境変数からの設定読み込み
"""

from memento.config import Settings, get_settings


class TestSettings:
    """Settings のテスト"""

    def test_defaults(self, monkeypatch):
        """未設定時のデフォルト値"""
        monkeypatch.delenv("GEMINI_MODEL", raising=False)
        settings = Settings()
        assert settings.SERVICE_NAME == "memento-1on1"
        assert settings.TIMEZONE == "Asia/Tokyo"
        assert settings.GEMINI_API_KEY is None

    def test_blank_env_treated_as_unset(self, monkeypatch):
        """空白のみの環境変数は未設定扱い"""
        monkeypatch.setenv("DEEPGRAM_API_KEY", "   ")
        assert Settings().DEEPGRAM_API_KEY is None

    def test_env_value_is_trimmed(self, monkeypatch):
        """前後の空白を除去"""
        monkeypatch.setenv("SLACK_CLIENT_ID", "  slack-id  ")
        assert Settings().SLACK_CLIENT_ID == "slack-id"

    def test_line_site_url_falls_back_to_site_url(self, monkeypatch):
        """LINE_SITE_URL 未設定なら SITE_URL"""
        monkeypatch.setenv("SITE_URL", "https://site.example.com")
        assert Settings().line_site_url == "https://site.example.com"

        monkeypatch.setenv("LINE_SITE_URL", "https://line.example.com")
        assert Settings().line_site_url == "https://line.example.com"

    def test_is_production(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        assert Settings().is_production() is True

        monkeypatch.setenv("ENVIRONMENT", "test")
        assert Settings().is_production() is False

    def test_cors_origins_split(self, monkeypatch):
        """CORS_ORIGINS はカンマ区切り"""
        monkeypatch.setenv("CORS_ORIGINS", "https://a.example.com, https://b.example.com")
        assert Settings().CORS_ORIGINS == ["https://a.example.com", "https://b.example.com"]


class TestGetSettings:
    """get_settings のテスト"""

    def test_cached_instance(self):
        """同一インスタンスを返す"""
        assert get_settings() is get_settings()

    def test_cache_clear_reloads(self, monkeypatch):
        """cache_clear 後は再読込"""
        first = get_settings()
        monkeypatch.setenv("APP_VERSION", "9.9.9")
        get_settings.cache_clear()
        assert get_settings() is not first
        assert get_settings().APP_VERSION == "9.9.9"
