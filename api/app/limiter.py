"""
APIレート制限

ルートファイルと main.py が共有する slowapi Limiter。
アプリ本体に依存しないので、どのルートからでも import できる。

既定の上限は RATE_LIMIT_DEFAULT（"100/minute"）。
ヘルスチェックと OAuth コールバック（プロバイダからのリダイレクト）は
@limiter.exempt で対象外にする。
"""
from fastapi import Request
from slowapi import Limiter

from memento.config import get_settings

LOCAL_CLIENT_IP = "127.0.0.1"


def client_ip_key(request: Request) -> str:
    """
    レート制限のキー（クライアントIP）

    Cloud Run 経由では X-Forwarded-For の末尾が実クライアント。
    """
    forwarded = [ip.strip() for ip in request.headers.get("X-Forwarded-For", "").split(",") if ip.strip()]
    if forwarded:
        return forwarded[-1]
    if request.client and request.client.host:
        return request.client.host
    return LOCAL_CLIENT_IP


limiter = Limiter(key_func=client_ip_key, default_limits=[get_settings().RATE_LIMIT_DEFAULT])
