"""
ヘルスチェック・AIコーチング・PDF解析・メディアトークン API のテスト
"""

from unittest.mock import patch

from api.app.api.v1.chat import router as chat_router
from api.app.api.v1.health import router as health_router
from api.app.api.v1.media import router as media_router
from api.app.api.v1.pdf import router as pdf_router
from memento import deepgram
from memento.coaching import FALLBACK_TRAITS, CoachingError


TRANSCRIPT = [
    {"id": "1", "speaker": "manager", "text": "最近どう？", "timestamp": "10:00"},
    {"id": "2", "speaker": "subordinate", "text": "少し忙しいです", "timestamp": "10:01"},
]


class TestHealthAPI:
    """GET /health"""

    @patch("api.app.api.v1.health.db.health_check", return_value=True)
    def test_healthy(self, mock_check, make_client):
        response = make_client(health_router, authenticated=False).get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["db"] == "healthy"
        assert "version" in data

    @patch("api.app.api.v1.health.db.health_check", return_value=False)
    def test_db_unhealthy(self, mock_check, make_client):
        response = make_client(health_router, authenticated=False).get("/api/v1/health")
        assert response.json()["db"] == "unhealthy"


class TestChatAPI:
    """POST /chat/*"""

    @patch("api.app.api.v1.chat.coaching.analyze")
    def test_analyze(self, mock_analyze, make_client):
        mock_analyze.return_value = "共感を示しましょう"

        response = make_client(chat_router).post("/api/v1/chat/analyze", json={
            "transcript": TRANSCRIPT,
            "theme": "health",
            "subordinateTraits": ["慎重"],
        })

        assert response.status_code == 200
        assert response.json() == {"advice": "共感を示しましょう", "status": "success"}
        mock_analyze.assert_called_once_with(TRANSCRIPT, theme="health", traits=["慎重"])

    @patch("api.app.api.v1.chat.coaching.analyze")
    def test_analyze_uses_recent_items(self, mock_analyze, make_client):
        mock_analyze.return_value = "ok"
        transcript = [{"speaker": "manager", "text": str(i)} for i in range(20)]

        make_client(chat_router).post("/api/v1/chat/analyze", json={"transcript": transcript})

        sent = mock_analyze.call_args[0][0]
        assert len(sent) < 20
        assert sent[-1]["text"] == "19"

    def test_analyze_without_transcript(self, make_client):
        response = make_client(chat_router).post("/api/v1/chat/analyze", json={"transcript": "text"})
        assert response.status_code == 400
        assert response.json() == {"error": "No valid transcript provided"}

    @patch("api.app.api.v1.chat.coaching.analyze", side_effect=CoachingError("quota"))
    def test_analyze_failure(self, mock_analyze, make_client):
        response = make_client(chat_router).post("/api/v1/chat/analyze", json={"transcript": TRANSCRIPT})
        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error"}

    @patch("api.app.api.v1.chat.coaching.ask")
    def test_ask(self, mock_ask, make_client):
        mock_ask.return_value = "傾聴を続けましょう"

        response = make_client(chat_router).post("/api/v1/chat/ask", json={
            "transcript": TRANSCRIPT,
            "question": "次に何を聞けばいい？",
        })

        assert response.status_code == 200
        assert response.json()["answer"] == "傾聴を続けましょう"

    def test_ask_without_question(self, make_client):
        response = make_client(chat_router).post("/api/v1/chat/ask", json={
            "transcript": TRANSCRIPT,
            "question": 123,
        })
        assert response.status_code == 400
        assert response.json() == {"error": "No valid question provided"}

    @patch("api.app.api.v1.chat.coaching.summarize")
    def test_summarize(self, mock_summarize, make_client):
        mock_summarize.return_value = {"summary": "要約", "actionItems": ["来週までに資料共有"]}

        response = make_client(chat_router).post("/api/v1/chat/summarize", json={"transcript": TRANSCRIPT})

        assert response.json() == {"summary": "要約", "actionItems": ["来週までに資料共有"]}

    def test_requires_authentication(self, make_client):
        response = make_client(chat_router, authenticated=False).post(
            "/api/v1/chat/analyze", json={"transcript": TRANSCRIPT},
        )
        assert response.status_code == 401


class TestPdfAPI:
    """POST /pdf/analyze"""

    def test_not_configured(self, make_client):
        response = make_client(pdf_router).post(
            "/api/v1/pdf/analyze",
            files={"file": ("sheet.pdf", b"%PDF-1.4", "application/pdf")},
        )
        assert response.status_code == 500
        assert response.json()["traits"] == list(FALLBACK_TRAITS)

    def test_missing_file(self, make_client, set_env):
        set_env(GEMINI_API_KEY="test-key")
        response = make_client(pdf_router).post("/api/v1/pdf/analyze", data={"subordinateId": "sub-1"})
        assert response.status_code == 400
        assert response.json() == {"error": "No file provided"}

    def test_not_pdf(self, make_client, set_env):
        set_env(GEMINI_API_KEY="test-key")
        response = make_client(pdf_router).post(
            "/api/v1/pdf/analyze",
            files={"file": ("sheet.txt", b"hello", "text/plain")},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "File must be a PDF"}

    @patch("api.app.api.v1.pdf.coaching.extract_traits")
    def test_extracts_traits(self, mock_extract, make_client, set_env):
        set_env(GEMINI_API_KEY="test-key")
        mock_extract.return_value = {"traits": ["論理的", "慎重"], "originalText": "評価シート"}

        response = make_client(pdf_router).post(
            "/api/v1/pdf/analyze",
            files={"file": ("sheet.pdf", b"%PDF-1.4", "application/pdf")},
            data={"subordinateId": "sub-1"},
        )

        assert response.status_code == 200
        assert response.json()["traits"] == ["論理的", "慎重"]
        mock_extract.assert_called_once_with(b"%PDF-1.4")

    @patch("api.app.api.v1.pdf.coaching.extract_traits", side_effect=CoachingError("bad pdf"))
    def test_extract_failure_returns_fallback(self, mock_extract, make_client, set_env):
        set_env(GEMINI_API_KEY="test-key")
        response = make_client(pdf_router).post(
            "/api/v1/pdf/analyze",
            files={"file": ("sheet.pdf", b"%PDF-1.4", "application/pdf")},
        )
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to analyze PDF", "traits": list(FALLBACK_TRAITS)}


class TestMediaAPI:
    """GET /deepgram/token, GET /livekit/token"""

    def test_deepgram_mock_mode(self, make_client):
        response = make_client(media_router).get("/api/v1/deepgram/token")
        assert response.status_code == 200
        assert response.json()["mockMode"] is True

    @patch("api.app.api.v1.media.deepgram.create_temporary_token")
    def test_deepgram_token(self, mock_create, make_client, set_env):
        set_env(DEEPGRAM_API_KEY="dg-key")
        mock_create.return_value = {"key": "temp", "expiresIn": 30}

        response = make_client(media_router).get("/api/v1/deepgram/token")

        data = response.json()
        assert data["key"] == "temp"
        assert data["options"] == deepgram.LIVE_OPTIONS

    @patch("api.app.api.v1.media.deepgram.create_temporary_token")
    def test_deepgram_timeout(self, mock_create, make_client, set_env):
        set_env(DEEPGRAM_API_KEY="dg-key")
        mock_create.side_effect = deepgram.DeepgramTimeoutError("timeout")

        response = make_client(media_router).get("/api/v1/deepgram/token")

        assert response.status_code == 500
        assert response.json() == {"error": deepgram.TIMEOUT_MESSAGE, "mockMode": True}

    def test_livekit_missing_params(self, make_client):
        response = make_client(media_router).get("/api/v1/livekit/token", params={"room": "r1"})
        assert response.status_code == 400

    def test_livekit_mock_token(self, make_client):
        response = make_client(media_router).get(
            "/api/v1/livekit/token", params={"room": "r1", "username": "manager"},
        )
        assert response.json()["token"] == "mock-token-for-demo-purposes"
        assert "warning" in response.json()

    @patch("api.app.api.v1.media.livekit.create_access_token", return_value="jwt-token")
    def test_livekit_token(self, mock_create, make_client, set_env):
        set_env(
            LIVEKIT_API_KEY="lk-key",
            LIVEKIT_API_SECRET="lk-secret",
            LIVEKIT_URL="wss://livekit.example.com",
        )

        response = make_client(media_router).get(
            "/api/v1/livekit/token", params={"room": "r1", "username": "manager"},
        )

        assert response.json() == {"token": "jwt-token"}
        mock_create.assert_called_once_with("r1", "manager")
