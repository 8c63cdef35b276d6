"""
メッセージング連携

Slack / Chatwork / LINE Works へのセッション要約送信を抽象化する。

使用例:
    from memento.messaging import get_adapter

    adapter = get_adapter("slack")
    result = adapter.send_message(integration, "要約です")
"""

from typing import Optional

from memento.messaging.base import (
    MessagingAdapter,
    MessagingAuthError,
    MessagingConfigError,
    MessagingError,
    SendResult,
    TokenPair,
)
from memento.messaging.chatwork import ChatworkAdapter
from memento.messaging.lineworks import LineWorksAdapter
from memento.messaging.slack import SlackAdapter


_ADAPTERS = {
    "slack": SlackAdapter,
    "chatwork": ChatworkAdapter,
    "lineworks": LineWorksAdapter,
}


def get_adapter(provider: str) -> Optional[MessagingAdapter]:
    """プロバイダー名からアダプターを取得（不明な場合は None）"""
    adapter_class = _ADAPTERS.get(provider)
    return adapter_class() if adapter_class else None


__all__ = [
    "MessagingAdapter",
    "MessagingAuthError",
    "MessagingConfigError",
    "MessagingError",
    "SendResult",
    "TokenPair",
    "SlackAdapter",
    "ChatworkAdapter",
    "LineWorksAdapter",
    "get_adapter",
]
