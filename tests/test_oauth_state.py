"""
memento/oauth_state.py のテスト

署名付き state の生成・検証とルーム一覧のエンコード
"""

from memento.oauth_state import (
    build_state,
    decode_rooms,
    encode_rooms,
    generate_csrf_token,
    verify_state,
)

SECRET = "client-secret"


class TestBuildState:
    """state 生成・検証のテスト"""

    def test_roundtrip_returns_user_id(self):
        state = build_state("user-1", SECRET)
        assert verify_state(state, SECRET) == "user-1"

    def test_state_is_url_safe(self):
        """URLに埋め込める文字のみ（パディングなし）"""
        state = build_state("user-1", SECRET, csrf="a" * 32)
        assert "=" not in state
        assert "+" not in state
        assert "/" not in state

    def test_wrong_secret_rejected(self):
        state = build_state("user-1", SECRET)
        assert verify_state(state, "other-secret") is None

    def test_tampered_user_id_rejected(self):
        """別ユーザーの state と署名を組み合わせても通らない"""
        import base64
        import json

        state = build_state("user-1", SECRET, csrf="c" * 32)
        padded = state + "=" * (-len(state) % 4)
        body = json.loads(base64.urlsafe_b64decode(padded))
        body["userId"] = "attacker"
        forged = base64.urlsafe_b64encode(json.dumps(body).encode()).decode().rstrip("=")

        assert verify_state(forged, SECRET) is None

    def test_garbage_rejected(self):
        assert verify_state("not-base64-json", SECRET) is None
        assert verify_state("", SECRET) is None

    def test_csrf_token_format(self):
        token = generate_csrf_token()
        assert len(token) == 32
        int(token, 16)


class TestRooms:
    """ルーム一覧のエンコードのテスト"""

    def test_roundtrip_keeps_japanese(self):
        rooms = [{"id": 1, "name": "営業部"}, {"id": 2, "name": "マイチャット"}]
        assert decode_rooms(encode_rooms(rooms)) == rooms
