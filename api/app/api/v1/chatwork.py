"""
Chatwork OAuth API

OAuth2 認可 → トークン交換 → ルーム一覧取得 → 送信先ルーム選択の順で連携する。
ルーム選択前は連携を無効（enabled=false）のまま保存する。
"""

from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote

import httpx
from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError

from memento import oauth_state
from memento.config import get_settings
from memento.constants import MessagingProvider
from memento.logging import get_logger, log_audit_event
from memento.messaging import MessagingError, chatwork
from memento.repositories import integrations
from api.app.deps.auth import CurrentUser, get_current_user, get_optional_user
from api.app.deps.db import get_db_connection, get_user_db_connection
from api.app.limiter import limiter
from api.app.responses import error_response
from api.app.schemas.integration import ChatworkSelectRoomRequest

router = APIRouter(prefix="/chatwork", tags=["chatwork"])
logger = get_logger(__name__)

PROVIDER = MessagingProvider.CHATWORK.value
PENDING_DISPLAY_NAME = "Chatwork (ルーム未選択)"


def _settings_redirect(query: str) -> RedirectResponse:
    return RedirectResponse(f"{get_settings().SITE_URL}/settings?chatwork={query}")


@router.get("/authorize")
async def authorize(user: Optional[CurrentUser] = Depends(get_optional_user)):
    """Chatwork 認可画面へリダイレクト（state にユーザーIDを署名付きで埋め込む）"""
    settings = get_settings()
    if not settings.CHATWORK_CLIENT_ID:
        return error_response(500, "CHATWORK_CLIENT_ID が設定されていません")
    if not settings.CHATWORK_CLIENT_SECRET:
        return error_response(500, "CHATWORK_CLIENT_SECRET が設定されていません")

    if user is None:
        return RedirectResponse(f"{settings.APP_URL}/login?error=not_authenticated")

    state = oauth_state.build_state(user.user_id, settings.CHATWORK_CLIENT_SECRET)
    return RedirectResponse(chatwork.build_authorize_url(settings.CHATWORK_CLIENT_ID, state))


@router.get("/callback")
@limiter.exempt
async def callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    conn=Depends(get_db_connection),
):
    """
    Chatwork OAuth コールバック

    選択可能なルーム（グループチャット・マイチャット）を設定画面に渡す。
    """
    if error:
        return _settings_redirect("cancelled")
    if not code or not state:
        return _settings_redirect("error&reason=missing_params")

    secret = get_settings().CHATWORK_CLIENT_SECRET
    user_id = oauth_state.verify_state(state, secret) if secret else None
    if not user_id:
        logger.warning("Chatwork OAuth state verification failed")
        return _settings_redirect("error&reason=invalid_state")

    try:
        tokens = chatwork.exchange_code(code)
    except (MessagingError, httpx.HTTPError) as e:
        logger.error("Chatwork token exchange failed", user_id=user_id, error=str(e))
        return _settings_redirect("error&reason=token_exchange_failed")

    try:
        rooms = chatwork.ChatworkClient(tokens.access_token).list_selectable_rooms()
    except (MessagingError, httpx.HTTPError) as e:
        logger.error("Chatwork rooms fetch failed", user_id=user_id, error=str(e))
        return _settings_redirect("error&reason=rooms_fetch_failed")

    try:
        integrations.upsert_integration(conn, user_id, PROVIDER, {
            "api_token": tokens.access_token,
            "webhook_url": None,
            "room_id": None,
            "display_name": PENDING_DISPLAY_NAME,
            "enabled": False,
            "metadata": {
                "rooms": rooms,
                "scope": tokens.scope,
                "refresh_token": tokens.refresh_token,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
        })
    except SQLAlchemyError as e:
        logger.error("Failed to save Chatwork integration", user_id=user_id, error=type(e).__name__)
        return _settings_redirect("error&reason=db_error_upsert")

    logger.info("Chatwork connected, waiting for room selection", user_id=user_id, room_count=len(rooms))
    return _settings_redirect(f"select_room&rooms={quote(oauth_state.encode_rooms(rooms))}&v=2")


@router.post("/select-room")
async def select_room(
    data: ChatworkSelectRoomRequest,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """送信先ルームを保存して連携を有効化"""
    if not data.roomId:
        return error_response(400, "roomId が必要です")

    try:
        integrations.update_integration(conn, user.user_id, PROVIDER, {
            "room_id": str(data.roomId),
            "display_name": f"Chatwork #{data.roomName}",
            "enabled": True,
        })
    except SQLAlchemyError as e:
        logger.error("Failed to save Chatwork room", user_id=user.user_id, error=type(e).__name__)
        return error_response(500, "ルームの保存に失敗しました")

    log_audit_event(
        logger=logger,
        action="select_room",
        resource_type="messaging_integration",
        resource_id=PROVIDER,
        user_id=user.user_id,
        details={"room_id": str(data.roomId)},
    )
    return {"ok": True}
