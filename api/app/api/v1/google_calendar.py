"""
Google Calendar API

Googleログイン時に保存したOAuthトークンで、
次回1on1をユーザーのカレンダーに登録する。
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from memento import session_service
from memento.google_calendar import (
    GoogleCalendarClient,
    GoogleCalendarError,
    get_valid_access_token,
)
from memento.logging import get_logger, log_audit_event
from api.app.deps.auth import CurrentUser, get_current_user
from api.app.deps.db import get_user_db_connection
from api.app.responses import error_response
from api.app.schemas.calendar import AccessTokenResponse, CalendarScheduleRequest

router = APIRouter(prefix="/google-calendar", tags=["google-calendar"])
logger = get_logger(__name__)

SCHEDULE_FAILED = "Googleカレンダーイベントの作成に失敗しました"


def _token_error(e: GoogleCalendarError):
    if e.details is not None:
        return error_response(e.status_code, str(e), details=e.details)
    return error_response(e.status_code, str(e))


@router.get("/get-token", response_model=AccessTokenResponse)
async def get_token(
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """
    有効なアクセストークンを取得

    期限切れ（5分前から）の場合はリフレッシュして保存し直す。
    """
    try:
        access_token = get_valid_access_token(conn, user.user_id)
    except GoogleCalendarError as e:
        logger.warning("Google token unavailable", user_id=user.user_id, error=str(e))
        return _token_error(e)
    return AccessTokenResponse(accessToken=access_token)


@router.post("/schedule")
async def schedule(
    data: CalendarScheduleRequest,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """
    次回セッションをカレンダーに登録

    - **sessionId**: 前回セッションID
    - **startTime**: 開始日時
    - **durationMinutes**: 30 / 45 / 60 / 90

    登録後、セッションの次回日時を更新しLINEリマインダーを未送信に戻す。
    """
    if not data.sessionId or data.startTime is None:
        return error_response(400, "イベントデータとセッションIDが必要です")

    try:
        result = session_service.schedule_next_session(
            conn,
            data.sessionId,
            user.user_id,
            start=data.startTime,
            duration_minutes=data.durationMinutes,
            user_email=user.email,
        )
    except ValueError as e:
        return error_response(400, SCHEDULE_FAILED, details=str(e))
    except GoogleCalendarError as e:
        logger.error("Calendar scheduling failed", session_id=data.sessionId, error=str(e))
        return error_response(e.status_code, SCHEDULE_FAILED, details=str(e))

    if result is None:
        return error_response(404, "Session not found")

    log_audit_event(
        logger=logger,
        action="schedule_next_session",
        resource_type="session",
        resource_id=data.sessionId,
        user_id=user.user_id,
        details={"event_id": result["eventId"], "duration_minutes": data.durationMinutes},
    )
    return result


@router.get("/events")
async def list_events(
    timeMin: Optional[datetime] = Query(None, description="取得開始日時"),
    timeMax: Optional[datetime] = Query(None, description="取得終了日時"),
    maxResults: int = Query(10, ge=1, le=250, description="最大件数"),
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """カレンダーの予定一覧（開始時刻順）"""
    try:
        access_token = get_valid_access_token(conn, user.user_id)
        events = GoogleCalendarClient(access_token).list_events(
            time_min=timeMin,
            time_max=timeMax,
            max_results=maxResults,
        )
    except GoogleCalendarError as e:
        logger.warning("Calendar events unavailable", user_id=user.user_id, error=str(e))
        return _token_error(e)
    return {"events": events}
