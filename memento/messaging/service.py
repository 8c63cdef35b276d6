"""
メッセージ送信サービス

連携設定の送信と、アクセストークン失効時の1回限りのリフレッシュ・再送を行う。
"""

from datetime import datetime, timezone
from typing import Any, Dict

from memento.logging import get_logger
from memento.messaging.base import MessagingAdapter, SendResult
from memento.repositories import integrations

logger = get_logger(__name__)


def send_with_refresh(
    conn,
    adapter: MessagingAdapter,
    integration: Dict[str, Any],
    message: str,
) -> SendResult:
    """
    メッセージを送信し、401 の場合はトークンを更新して1回だけ再送する

    更新したトークンは messaging_integrations に保存する。

    Raises:
        MessagingError: トークン更新に失敗した場合
    """
    result = adapter.send_message(integration, message)
    if result.success or not result.is_unauthorized or not adapter.supports_refresh:
        return result

    metadata = dict(integration.get("metadata") or {})
    refresh_token = metadata.get("refresh_token")
    if not refresh_token:
        return result

    logger.info(
        "Access token expired, refreshing",
        provider=adapter.provider_name,
        user_id=integration.get("user_id"),
    )
    tokens = adapter.refresh_access_token(refresh_token)

    metadata["refresh_token"] = tokens.refresh_token or refresh_token
    metadata["updated_at"] = datetime.now(timezone.utc).isoformat()
    integrations.update_integration(
        conn,
        integration["user_id"],
        adapter.provider_name,
        {"api_token": tokens.access_token, "metadata": metadata},
    )

    refreshed = {**integration, "api_token": tokens.access_token, "metadata": metadata}
    return adapter.send_message(refreshed, message)
