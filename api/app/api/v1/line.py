"""
LINE API

LINE Login による連携（connect / callback / disconnect）と、
公式アカウントからの通知送信・友だち状態の確認。

callback は LINE からのリダイレクトで呼ばれる。保存先はログイン中のユーザーで、
connect 時に Cookie へ保存した state とユーザーIDが一致する場合だけ連携する。
"""

import time
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote

import httpx
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError

from memento import line
from memento.config import get_settings
from memento.constants import DEFAULT_NOTIFICATION_TYPES, NotificationStatus
from memento.logging import get_logger, log_audit_event
from memento.repositories import line_notifications, notification_logs
from api.app.deps.auth import CurrentUser, get_current_user, get_optional_user, resolve_user_id
from api.app.deps.db import get_optional_user_db_connection, get_user_db_connection
from api.app.limiter import limiter
from api.app.responses import error_response
from api.app.schemas.integration import (
    LineConnectRequest,
    LineDisconnectRequest,
    LineSendRequest,
)

router = APIRouter(prefix="/line", tags=["line"])
logger = get_logger(__name__)

RECONNECT_URL = "/api/v1/line/connect"
SUCCESS_MESSAGE = "LINE連携が完了しました"
LOGIN_REQUIRED = "Please login first"


# =============================================================================
# 連携
# =============================================================================


@router.post("/connect")
async def connect(
    data: LineConnectRequest,
    user: CurrentUser = Depends(get_current_user),
):
    """
    LINE連携を開始

    state（ランダム値::bot_prompt）とユーザーIDを Cookie に保存し、認可URLを返す。
    再連携（reconnect=true）の場合は友だち追加を強く促す。
    """
    user_id = resolve_user_id(user, data.userId)

    settings = get_settings()
    if not settings.LINE_LOGIN_CHANNEL_ID or not settings.LINE_REDIRECT_URI:
        logger.error(
            "LINE OAuth configuration missing",
            has_channel_id=bool(settings.LINE_LOGIN_CHANNEL_ID),
            has_redirect_uri=bool(settings.LINE_REDIRECT_URI),
        )
        return error_response(
            500, "LINE連携の設定が不足しています",
            details="環境変数LINE_LOGIN_CHANNEL_IDとLINE_REDIRECT_URIを確認してください",
        )

    state, bot_prompt = line.build_oauth_state(reconnect=data.reconnect)
    oauth_url = line.build_authorize_url(
        settings.LINE_LOGIN_CHANNEL_ID,
        settings.LINE_REDIRECT_URI,
        state,
        bot_prompt,
    )
    logger.info("LINE OAuth started", user_id=user_id, bot_prompt=bot_prompt)

    response = JSONResponse(content={
        "success": True,
        "message": "LINE認証ページにリダイレクトします",
        "oauthUrl": oauth_url,
        "isMock": False,
    })
    for name, value in ((line.STATE_COOKIE, state), (line.USER_COOKIE, user_id)):
        response.set_cookie(
            name,
            value,
            max_age=line.COOKIE_MAX_AGE_SECONDS,
            path="/",
            httponly=True,
            secure=settings.is_production(),
            samesite="lax",
        )
    return response


def _redirect(path: str) -> RedirectResponse:
    """フロントエンドへリダイレクトし、連携用 Cookie を削除する"""
    response = RedirectResponse(f"{get_settings().line_site_url}{path}")
    response.delete_cookie(line.STATE_COOKIE, path="/")
    response.delete_cookie(line.USER_COOKIE, path="/")
    return response


def _settings_redirect(query: str) -> RedirectResponse:
    return _redirect(f"/settings?{query}")


def _error_redirect(message: str) -> RedirectResponse:
    return _settings_redirect(f"line_error={quote(message)}")


def _login_redirect() -> RedirectResponse:
    return _redirect(f"/login?line_error={quote(LOGIN_REQUIRED)}")


@router.get("/callback")
@limiter.exempt
async def callback(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    error_description: Optional[str] = Query(None),
    friendship_status_changed: Optional[str] = Query(None),
    user: Optional[CurrentUser] = Depends(get_optional_user),
    conn=Depends(get_optional_user_db_connection),
):
    """
    LINE Login コールバック

    トークン交換・プロフィール取得・友だち状態の確認を行い、
    ログイン中ユーザーの line_notifications に保存して設定画面へリダイレクトする。
    未ログインならログイン画面へ戻す。
    """
    if error:
        logger.warning("LINE OAuth returned error", error=error)
        return _error_redirect(error_description or error)

    if not code or not state:
        return _error_redirect("Missing authentication parameters")

    saved_state = request.cookies.get(line.STATE_COOKIE)
    cookie_user_id = request.cookies.get(line.USER_COOKIE)

    if not line.verify_state(saved_state, state):
        logger.warning("LINE OAuth state mismatch")
        return _error_redirect("Invalid authentication state")

    if not cookie_user_id:
        return _error_redirect("Session expired")

    if user is None:
        logger.warning("LINE OAuth callback without login")
        return _login_redirect()

    user_id = user.user_id
    if cookie_user_id != user_id:
        logger.warning("LINE OAuth user mismatch", user_id=user_id)
        return _error_redirect("Invalid authentication state")

    settings = get_settings()
    channel_id = settings.LINE_LOGIN_CHANNEL_ID
    channel_secret = settings.LINE_LOGIN_CHANNEL_SECRET
    redirect_uri = settings.LINE_REDIRECT_URI
    if not channel_id or not channel_secret or not redirect_uri:
        return _error_redirect("LINE configuration missing")

    try:
        token_data = line.exchange_code(code, redirect_uri, channel_id, channel_secret)
    except line.LineAPIError:
        return _error_redirect("Failed to exchange token")
    except httpx.HTTPError as e:
        logger.error("LINE token request failed", error=type(e).__name__)
        return _error_redirect("Failed to exchange token")

    access_token = token_data.get("access_token")
    try:
        line_user_id, display_name = line.get_profile(access_token)
    except httpx.HTTPError as e:
        logger.warning("LINE profile request failed", error=type(e).__name__)
        line_user_id, display_name = line.DEFAULT_LINE_USER_ID, line.DEFAULT_DISPLAY_NAME
    api_friend_flag = line.check_friendship(access_token)

    try:
        existing = line_notifications.get_settings(conn, user_id)
        is_friend = line.decide_is_friend(
            friendship_status_changed,
            api_friend_flag,
            existing.get("is_friend") if existing else None,
        )
        line_notifications.upsert_settings(
            conn,
            user_id=user_id,
            line_user_id=line_user_id,
            line_access_token=access_token,
            line_display_name=display_name,
            is_friend=is_friend,
            checked_at=datetime.now(timezone.utc),
        )
    except SQLAlchemyError as e:
        logger.error("Failed to save LINE settings", user_id=user_id, error=type(e).__name__)
        return _error_redirect("Failed to save LINE settings")

    log_audit_event(
        logger=logger,
        action="connect",
        resource_type="line_notifications",
        resource_id=user_id,
        user_id=user_id,
        details={"is_friend": is_friend, "friendship_status_changed": friendship_status_changed},
    )
    return _settings_redirect(f"line_success={quote(SUCCESS_MESSAGE)}")


@router.post("/disconnect")
async def disconnect(
    data: LineDisconnectRequest,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """
    LINE連携を解除

    アクセストークンの失効はベストエフォートで行い、設定を削除する。
    """
    user_id = resolve_user_id(user, data.userId)

    try:
        current = line_notifications.get_settings(conn, user_id)
    except SQLAlchemyError as e:
        return error_response(500, "LINE連携の解除に失敗しました", details=type(e).__name__)

    settings = get_settings()
    if current and current.get("line_access_token"):
        if settings.LINE_LOGIN_CHANNEL_ID and settings.LINE_LOGIN_CHANNEL_SECRET:
            line.revoke_token(
                current["line_access_token"],
                settings.LINE_LOGIN_CHANNEL_ID,
                settings.LINE_LOGIN_CHANNEL_SECRET,
            )

    try:
        line_notifications.delete_settings(conn, user_id)
    except SQLAlchemyError as e:
        logger.error("Failed to delete LINE settings", user_id=user_id, error=type(e).__name__)
        return error_response(
            500, "LINE連携の解除に失敗しました",
            details="データベースの削除中にエラーが発生しました",
        )

    log_audit_event(
        logger=logger,
        action="disconnect",
        resource_type="line_notifications",
        resource_id=user_id,
        user_id=user_id,
    )
    return {"success": True, "message": "LINE連携を解除しました", "isMock": False}


# =============================================================================
# 通知
# =============================================================================


def _log_notification(conn, **fields) -> Optional[str]:
    """通知ログを記録（失敗しても送信結果は返す）"""
    try:
        return notification_logs.insert_log(conn, **fields)
    except SQLAlchemyError as e:
        logger.warning("Failed to write notification log", error=type(e).__name__)
        return None


@router.post("/send")
async def send(
    data: LineSendRequest,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """
    LINE通知を送信

    - **notificationType**: 設定で許可された通知タイプ
    - **message**: 省略時は通知タイプごとの既定メッセージ
    """
    user_id = resolve_user_id(user, data.userId)
    notification_type = data.notificationType
    if not notification_type:
        return error_response(400, "必須パラメータが不足しています")

    current = line_notifications.get_settings(conn, user_id, enabled_only=True)
    if not current or not current.get("line_user_id"):
        return error_response(
            400, "LINE連携が設定されていません",
            details="ユーザーがLINE連携を設定していないか、設定が無効です",
        )

    allowed_types = current.get("notification_types")
    if not isinstance(allowed_types, list):
        allowed_types = list(DEFAULT_NOTIFICATION_TYPES)
    if notification_type not in allowed_types:
        return error_response(
            400, "通知タイプが許可されていません",
            details=f"許可されている通知タイプ: {', '.join(allowed_types)}",
        )

    if current.get("is_friend") is False:
        return error_response(
            400, "LINE公式アカウントと友だちになっていません",
            details="メッセージを送信するには公式アカウントを友だち追加してください",
            action="reconnect",
            reconnectUrl=RECONNECT_URL,
        )

    message = data.message or line.default_message(notification_type, current.get("line_display_name"))

    if not get_settings().LINE_MESSAGING_ACCESS_TOKEN:
        return error_response(
            500, "LINE通知設定が不足しています",
            details="LINE_MESSAGING_ACCESS_TOKEN環境変数を設定してください",
        )

    result = line.push_message(current["line_user_id"], message)
    if not result.success:
        _log_notification(
            conn,
            user_id=user_id,
            session_id=data.sessionId,
            notification_type=notification_type,
            message=message,
            status=NotificationStatus.FAILED.value,
            error_message=result.error,
        )
        logger.error("LINE push failed", user_id=user_id, status_code=result.status_code)
        return JSONResponse(status_code=500, content={
            "success": False,
            "error": "LINE通知の送信に失敗しました",
            "details": f"LINE API error: {result.status_code}",
            "notificationId": None,
            "sentAt": None,
            "isMock": False,
        })

    log_id = _log_notification(
        conn,
        user_id=user_id,
        session_id=data.sessionId,
        notification_type=notification_type,
        message=message,
        status=NotificationStatus.SENT.value,
    )
    logger.info(
        "LINE notification sent",
        user_id=user_id,
        notification_type=notification_type,
        message_length=len(message),
        log_id=log_id,
    )
    return {
        "success": True,
        "message": "LINE通知を送信しました",
        "notificationId": log_id or f"notification-{int(time.time() * 1000)}",
        "sentAt": datetime.now(timezone.utc).isoformat(),
        "isMock": False,
    }


@router.post("/check-friend-status")
async def check_friend_status(
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """
    公式アカウントとの友だち状態を再確認

    API確認に失敗した場合は is_friend を更新せず、確認日時のみ更新する。
    """
    current = line_notifications.get_settings(conn, user.user_id, enabled_only=True)
    if not current or not current.get("line_access_token"):
        return JSONResponse(status_code=404, content={
            "success": False,
            "error": "LINE設定が見つかりません",
        })

    api_friend_flag = line.check_friendship(current["line_access_token"])
    checked_at = datetime.now(timezone.utc)
    try:
        line_notifications.update_friend_status(
            conn, user.user_id, checked_at, is_friend=api_friend_flag
        )
    except SQLAlchemyError as e:
        logger.error("Failed to update friend status", user_id=user.user_id, error=type(e).__name__)
        return JSONResponse(status_code=500, content={
            "success": False,
            "error": "データベースの更新に失敗しました",
            "details": type(e).__name__,
        })

    if api_friend_flag is None:
        is_friend = current.get("is_friend")
        message = "状態を確認しました（APIチェック失敗のため現状維持）"
    else:
        is_friend = api_friend_flag
        message = f"友達状態を更新しました: {'友達です' if api_friend_flag else '友達ではありません'}"

    return {
        "success": True,
        "isFriend": is_friend,
        "checkedAt": checked_at.isoformat(),
        "message": message,
    }
