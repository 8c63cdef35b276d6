"""
OAuth state パラメータ

ユーザーIDと CSRF トークンを HMAC-SHA256 で署名し、base64url(JSON) として
state に埋め込む。Cookie に依存しないため、コールバックが別ドメインでも検証できる。

使用例:
    from memento.oauth_state import build_state, verify_state

    state = build_state(user_id, client_secret)
    user_id = verify_state(state, client_secret)  # 改ざん時は None
"""

import base64
import hashlib
import hmac
import json
import secrets
from typing import Any, List, Optional


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def _sign(secret: str, csrf: str, user_id: str) -> str:
    payload = f"{csrf}:{user_id}"
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


def generate_csrf_token() -> str:
    """CSRF トークン（32桁の16進数）を生成"""
    return secrets.token_hex(16)


def build_state(user_id: str, secret: str, csrf: Optional[str] = None) -> str:
    """
    署名付き state を生成

    Args:
        user_id: 連携を開始したユーザーID
        secret: 署名鍵（各プロバイダーのクライアントシークレット）
        csrf: CSRF トークン（省略時は生成）
    """
    csrf = csrf or generate_csrf_token()
    body = {"csrf": csrf, "userId": user_id, "sig": _sign(secret, csrf, user_id)}
    return _b64url_encode(json.dumps(body, separators=(",", ":")).encode("utf-8"))


def verify_state(state: str, secret: str) -> Optional[str]:
    """
    state を検証してユーザーIDを返す

    デコード失敗・署名不一致の場合は None。
    """
    try:
        body = json.loads(_b64url_decode(state).decode("utf-8"))
        csrf = body["csrf"]
        user_id = body["userId"]
        sig = body["sig"]
    except (ValueError, KeyError, TypeError):
        return None

    if not isinstance(csrf, str) or not isinstance(user_id, str) or not isinstance(sig, str):
        return None

    expected = _sign(secret, csrf, user_id)
    if not hmac.compare_digest(sig, expected):
        return None
    return user_id


def encode_rooms(rooms: List[Any]) -> str:
    """ルーム一覧をリダイレクト用に base64url でエンコード"""
    return _b64url_encode(json.dumps(rooms, ensure_ascii=False).encode("utf-8"))


def decode_rooms(value: str) -> List[Any]:
    """encode_rooms() の逆変換"""
    return json.loads(_b64url_decode(value).decode("utf-8"))
