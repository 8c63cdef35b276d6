"""
Integration Schemas

LINE通知・メッセージング連携用のPydanticスキーマ

必須項目の欠落は各エンドポイントで 400 として返すため、
リクエストの項目はすべて Optional にしている。
"""

from typing import Optional, Union

from pydantic import BaseModel, Field


# =============================================================================
# LINE
# =============================================================================


class LineConnectRequest(BaseModel):
    """LINE連携開始リクエスト"""

    userId: Optional[str] = Field(None, description="ユーザーID")
    reconnect: bool = Field(False, description="再連携（友だち追加を強く促す）")


class LineDisconnectRequest(BaseModel):
    """LINE連携解除リクエスト"""

    userId: Optional[str] = Field(None, description="ユーザーID")


class LineSendRequest(BaseModel):
    """LINE通知送信リクエスト"""

    userId: Optional[str] = Field(None, description="ユーザーID")
    sessionId: Optional[str] = Field(None, description="セッションID")
    notificationType: Optional[str] = Field(None, description="通知タイプ（reminder / summary / follow_up）")
    message: Optional[str] = Field(None, description="本文（省略時は既定メッセージ）")


# =============================================================================
# メッセージング（Slack / Chatwork / LINE Works）
# =============================================================================


class MessagingConnectRequest(BaseModel):
    """連携設定の保存リクエスト"""

    userId: Optional[str] = Field(None, description="ユーザーID")
    provider: Optional[str] = Field(None, description="slack / chatwork / lineworks")
    webhookUrl: Optional[str] = Field(None, description="Slack Incoming Webhook URL")
    apiToken: Optional[str] = Field(None, description="APIトークン")
    roomId: Optional[str] = Field(None, description="送信先ルームID")
    displayName: Optional[str] = Field(None, description="表示名")


class MessagingDisconnectRequest(BaseModel):
    """連携解除リクエスト"""

    userId: Optional[str] = Field(None, description="ユーザーID")
    provider: Optional[str] = Field(None, description="slack / chatwork / lineworks")


class MessagingSendRequest(BaseModel):
    """メッセージ送信リクエスト"""

    userId: Optional[str] = Field(None, description="ユーザーID")
    provider: Optional[str] = Field(None, description="slack / chatwork / lineworks")
    message: Optional[str] = Field(None, description="本文")
    sessionId: Optional[str] = Field(None, description="セッションID")


class ChatworkSelectRoomRequest(BaseModel):
    """Chatwork 送信先ルーム選択リクエスト"""

    roomId: Optional[Union[int, str]] = Field(None, description="ルームID")
    roomName: Optional[str] = Field(None, description="ルーム名")
