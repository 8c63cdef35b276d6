"""
1on1セッションのライフサイクル

セッション終了（AI要約して completed に更新）と、
次回セッションの予約（Google Calendar 登録＋リマインダー再設定）を扱う。
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from memento import coaching
from memento.constants import (
    DEFAULT_ACTION_ITEMS,
    DEFAULT_SESSION_SUMMARY,
    SESSION_DURATION_OPTIONS,
    SessionStatus,
)
from memento.google_calendar import GoogleCalendarClient, get_valid_access_token
from memento.logging import get_logger
from memento.repositories import sessions, subordinates

logger = get_logger(__name__)


def summarize_or_default(transcript: List[Dict[str, Any]], theme: Optional[str]) -> Dict[str, Any]:
    """
    AI要約を生成（失敗時は既定の要約とアクションアイテム）

    Returns:
        {"summary": str, "actionItems": [str, ...]}
    """
    summary = DEFAULT_SESSION_SUMMARY
    action_items = list(DEFAULT_ACTION_ITEMS)
    try:
        result = coaching.summarize(transcript, theme)
    except coaching.CoachingError as e:
        logger.warning("AI summary generation failed, using default", error=str(e))
        return {"summary": summary, "actionItems": action_items}

    if result.get("summary"):
        summary = result["summary"]
    if isinstance(result.get("actionItems"), list):
        action_items = result["actionItems"]
    return {"summary": summary, "actionItems": action_items}


def get_owned_session(conn, session_id: str, user_id: str) -> Optional[Dict[str, Any]]:
    """ユーザー自身のセッションを取得（他ユーザーのものは存在しない扱い）"""
    session = sessions.get_session(conn, session_id)
    if session is None or session.get("userId") != str(user_id):
        return None
    return session


def complete_session(
    conn,
    session_id: str,
    transcript: Optional[List[Dict[str, Any]]] = None,
    mind_map: Optional[Dict[str, Any]] = None,
    notes: Optional[List[Dict[str, Any]]] = None,
    user_id: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    セッションを終了

    文字起こしを要約し、status=completed・要約・マインドマップ
    （アクションアイテム付き）・メモを保存する。

    user_id を渡した場合は、そのユーザーのセッションだけを対象にする。

    Returns:
        更新後のセッション。存在しなければ None
    """
    if user_id:
        session = get_owned_session(conn, session_id, user_id)
    else:
        session = sessions.get_session(conn, session_id)
    if session is None:
        return None

    transcript = transcript if transcript is not None else session["transcript"]
    current_map = mind_map if mind_map is not None else session["mindMapData"]
    result = summarize_or_default(transcript, session.get("theme"))

    updated = sessions.update_session(conn, session_id, {
        "status": SessionStatus.COMPLETED.value,
        "transcript": transcript,
        "summary": result["summary"],
        "mindMapData": {
            "nodes": current_map.get("nodes") or [],
            "edges": current_map.get("edges") or [],
            "actionItems": result["actionItems"],
        },
        "notes": notes if notes is not None else session["notes"],
    })
    logger.info("Session completed", session_id=session_id)
    return updated


def build_event_summary(subordinate_name: Optional[str]) -> str:
    return f"1on1セッション: {subordinate_name or ''}"


def build_event_description(session_id: str) -> str:
    return f"Memento 1on1セッション\n前回のセッションID: {session_id}"


def schedule_next_session(
    conn,
    session_id: str,
    user_id: str,
    start: datetime,
    duration_minutes: int,
    user_email: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    次回セッションを予約

    Google Calendar に予定を登録し、セッションの次回日時を更新して
    LINEリマインダーを未送信に戻す。

    Returns:
        {"success", "eventId", "htmlLink", "startTime", "endTime", "session"}。
        user_id のセッションとして存在しなければ None

    Raises:
        ValueError: 所要時間が選択肢にない場合
        GoogleCalendarError: トークン取得・予定登録の失敗
    """
    if duration_minutes not in SESSION_DURATION_OPTIONS:
        raise ValueError(f"duration_minutes must be one of {SESSION_DURATION_OPTIONS}")

    session = get_owned_session(conn, session_id, user_id)
    if session is None:
        return None

    subordinate = None
    if session.get("subordinateId"):
        subordinate = subordinates.get_subordinate(conn, session["subordinateId"])

    end = start + timedelta(minutes=duration_minutes)
    access_token = get_valid_access_token(conn, user_id)
    event = GoogleCalendarClient(access_token).create_event(
        summary=build_event_summary(subordinate["name"] if subordinate else None),
        description=build_event_description(session_id),
        start=start,
        end=end,
        attendees=[user_email] if user_email else None,
    )

    updated = sessions.update_session(conn, session_id, {
        "nextSessionDate": start.isoformat(),
        "nextSessionDurationMinutes": duration_minutes,
        "lineReminderScheduled": False,
        "lineReminderSentAt": None,
        "userId": user_id,
    })
    logger.info("Next session scheduled", session_id=session_id, event_id=event.get("id"))
    return {
        "success": True,
        "eventId": event.get("id"),
        "htmlLink": event.get("htmlLink"),
        "startTime": start.isoformat(),
        "endTime": end.isoformat(),
        "session": updated,
    }
