"""
Messaging API

Slack / Chatwork / LINE Works 連携の保存・解除と、
セッション要約などのメッセージ送信。
"""

from datetime import datetime, timezone

import httpx
from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError

from memento.constants import MessagingProvider, NotificationStatus, NotificationType
from memento.logging import get_logger, log_audit_event
from memento.messaging import MessagingError, get_adapter
from memento.messaging.service import send_with_refresh
from memento.repositories import integrations, notification_logs
from api.app.deps.auth import CurrentUser, get_current_user, resolve_user_id
from api.app.deps.db import get_user_db_connection
from api.app.responses import error_response
from api.app.schemas.integration import (
    MessagingConnectRequest,
    MessagingDisconnectRequest,
    MessagingSendRequest,
)

router = APIRouter(prefix="/messaging", tags=["messaging"])
logger = get_logger(__name__)

MISSING_PARAMS = "必須パラメータが不足しています"
UNKNOWN_PROVIDER = "不明なプロバイダーです"
PROVIDERS = {p.value for p in MessagingProvider}


def _public_integration(integration: dict) -> dict:
    """APIトークンを除いた連携設定"""
    return {k: v for k, v in integration.items() if k != "api_token"}


@router.post("/connect")
async def connect(
    data: MessagingConnectRequest,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """
    連携設定を保存（既存があれば更新）して有効化

    - **provider**: slack / chatwork / lineworks
    - **webhookUrl** / **apiToken** / **roomId** / **displayName**
    """
    user_id = resolve_user_id(user, data.userId)
    if not data.provider:
        return error_response(400, MISSING_PARAMS)
    if data.provider not in PROVIDERS:
        return error_response(400, UNKNOWN_PROVIDER)

    try:
        integration = integrations.upsert_integration(conn, user_id, data.provider, {
            "webhook_url": data.webhookUrl or None,
            "api_token": data.apiToken or None,
            "room_id": data.roomId or None,
            "display_name": data.displayName or data.provider,
            "enabled": True,
        })
    except SQLAlchemyError as e:
        logger.error("Failed to save messaging integration", provider=data.provider, error=type(e).__name__)
        return error_response(500, "連携設定の保存に失敗しました", details=type(e).__name__)

    log_audit_event(
        logger=logger,
        action="connect",
        resource_type="messaging_integration",
        resource_id=data.provider,
        user_id=user_id,
    )
    return {"success": True, "integration": _public_integration(integration)}


@router.post("/disconnect")
async def disconnect(
    data: MessagingDisconnectRequest,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """連携を無効化"""
    user_id = resolve_user_id(user, data.userId)
    if not data.provider:
        return error_response(400, MISSING_PARAMS)

    try:
        integrations.disable_integration(conn, user_id, data.provider)
    except SQLAlchemyError as e:
        return error_response(500, "連携解除に失敗しました", details=type(e).__name__)

    log_audit_event(
        logger=logger,
        action="disconnect",
        resource_type="messaging_integration",
        resource_id=data.provider,
        user_id=user_id,
    )
    return {"success": True}


@router.post("/send")
async def send(
    data: MessagingSendRequest,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """
    連携先にメッセージを送信

    Chatwork / LINE Works はアクセストークン失効（401）時に1回だけ更新して再送する。
    送信後、通知ログ（summary / sent）を記録する。
    """
    user_id = resolve_user_id(user, data.userId)
    if not data.provider or not data.message:
        return error_response(400, MISSING_PARAMS)

    integration = integrations.get_integration(conn, user_id, data.provider, enabled_only=True)
    if integration is None:
        return error_response(400, f"{data.provider} 連携が設定されていません")

    adapter = get_adapter(data.provider)
    if adapter is None:
        return error_response(400, UNKNOWN_PROVIDER)

    missing = adapter.missing_config_error(integration)
    if missing:
        return error_response(400, missing)

    try:
        result = send_with_refresh(conn, adapter, integration, data.message)
    except (MessagingError, httpx.HTTPError) as e:
        logger.error("Messaging send error", provider=data.provider, error=str(e))
        return error_response(500, "メッセージ送信に失敗しました", details=str(e))

    if not result.success:
        logger.error("Messaging send failed", provider=data.provider, status_code=result.status_code)
        return error_response(500, "メッセージ送信に失敗しました", details=result.error)

    notification_logs.insert_log(
        conn,
        user_id=user_id,
        session_id=data.sessionId,
        notification_type=NotificationType.SUMMARY.value,
        message=data.message,
        status=NotificationStatus.SENT.value,
    )
    logger.info("Message sent", provider=data.provider, user_id=user_id)
    return {
        "success": True,
        "provider": data.provider,
        "sentAt": datetime.now(timezone.utc).isoformat(),
    }
