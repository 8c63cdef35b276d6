"""
FastAPI エントリーポイントのテスト
"""

import asyncio
import json
from unittest.mock import MagicMock

from fastapi.testclient import TestClient


class TestApp:
    """api.main"""

    def test_lightweight_health(self):
        """/api/health は DB を確認せずに応答する"""
        from api.main import app

        response = TestClient(app).get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "memento-1on1"
        assert "db" not in data

    def test_invalid_bearer_token_does_not_block_public_routes(self):
        """ユーザーコンテキスト設定時の JWT エラーは無視される"""
        from api.main import app

        response = TestClient(app).get("/api/health", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 200

    def test_protected_route_requires_token(self):
        from api.main import app

        response = TestClient(app).get("/api/v1/subordinates")

        assert response.status_code == 401

    def test_global_exception_handler(self):
        from api.main import global_exception_handler

        request = MagicMock()
        request.url.path = "/api/v1/sessions"

        response = asyncio.run(global_exception_handler(request, RuntimeError("boom")))

        assert response.status_code == 500
        body = json.loads(response.body)
        assert body["error_code"] == "INTERNAL_ERROR"
        assert "boom" not in response.body.decode()


class TestClientIpKey:
    """レート制限キー"""

    def _request(self, forwarded=None, host="10.0.0.5"):
        request = MagicMock()
        request.headers = {"X-Forwarded-For": forwarded} if forwarded else {}
        request.client.host = host
        return request

    def test_uses_last_forwarded_entry(self):
        from api.app.limiter import client_ip_key
        assert client_ip_key(self._request("1.1.1.1, 203.0.113.7")) == "203.0.113.7"

    def test_falls_back_to_client_host(self):
        from api.app.limiter import client_ip_key
        assert client_ip_key(self._request()) == "10.0.0.5"

    def test_without_client(self):
        from api.app.limiter import LOCAL_CLIENT_IP, client_ip_key
        request = self._request()
        request.client = None
        assert client_ip_key(request) == LOCAL_CLIENT_IP
