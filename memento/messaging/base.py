"""
メッセージング連携アダプター基底クラス

Slack / Chatwork / LINE Works への送信を統一インターフェースに抽象化する。
連携設定（messaging_integrations の行）を受け取り、送信のみを担当する。
DB への保存や通知ログの記録は呼び出し側で行う。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional


# =============================================================================
# データクラス
# =============================================================================


@dataclass
class SendResult:
    """メッセージ送信結果"""
    success: bool
    message_id: str = ""
    error: str = ""
    status_code: int = 0

    @property
    def is_unauthorized(self) -> bool:
        """アクセストークン失効（401）かどうか"""
        return self.status_code == 401


@dataclass
class TokenPair:
    """OAuth トークン"""
    access_token: str
    refresh_token: Optional[str] = None
    scope: Optional[str] = None


# =============================================================================
# 抽象基底クラス
# =============================================================================


class MessagingAdapter(ABC):
    """
    メッセージング連携アダプター抽象基底クラス

    各プロバイダーはこのクラスを継承し、送信とトークン更新を実装する。
    """

    # refresh_access_token() を実装しているか
    supports_refresh: bool = False

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """プロバイダー名を返す（例: "chatwork"）"""
        ...

    @abstractmethod
    def missing_config_error(self, integration: Dict[str, Any]) -> Optional[str]:
        """
        送信に必要な設定が不足していればエラーメッセージを返す

        Returns:
            エラーメッセージ（設定が揃っていれば None）
        """
        ...

    @abstractmethod
    def send_message(self, integration: Dict[str, Any], message: str) -> SendResult:
        """
        メッセージを送信

        Args:
            integration: messaging_integrations の行
            message: メッセージ本文
        """
        ...

    def refresh_access_token(self, refresh_token: str) -> TokenPair:
        """アクセストークンを更新（対応プロバイダーのみ）"""
        raise MessagingError(f"{self.provider_name} does not support token refresh")


# =============================================================================
# 例外クラス
# =============================================================================


class MessagingError(Exception):
    """メッセージング連携エラーの基底クラス"""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class MessagingConfigError(MessagingError):
    """サーバー側の設定不足"""
    pass


class MessagingAuthError(MessagingError):
    """OAuth トークンの交換・更新エラー"""
    pass
