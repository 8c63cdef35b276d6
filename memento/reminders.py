"""
LINEリマインダー送信

次回1on1セッションの約1時間前に、LINE公式アカウントからリマインドを送る。
Cloud Scheduler から5分ごとに呼ばれる想定のため、25〜75分後の
セッションを対象とし、送信済みフラグで二重送信を防ぐ。

使用例:
    from memento.db import get_db_session
    from memento.reminders import send_due_reminders

    with get_db_session() as conn:
        result = send_due_reminders(conn)
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from memento import line
from memento.constants import (
    NotificationStatus,
    NotificationType,
    REMINDER_WINDOW_END_MINUTES,
    REMINDER_WINDOW_START_MINUTES,
)
from memento.logging import get_logger
from memento.repositories import line_notifications, notification_logs, sessions

logger = get_logger(__name__)


def build_reminder_message(subordinate_name: Optional[str]) -> str:
    """リマインドメッセージ"""
    return f"1時間後に1on1セッション「{subordinate_name or '部下'}」が予定されています。準備をしましょう！"


def reminder_window(now: datetime) -> tuple:
    """送信対象となる next_session_date の範囲"""
    return (
        now + timedelta(minutes=REMINDER_WINDOW_START_MINUTES),
        now + timedelta(minutes=REMINDER_WINDOW_END_MINUTES),
    )


def send_due_reminders(conn, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    対象セッションのリマインダーを送信

    セッション単位の例外は結果に記録して処理を続ける。
    対象セッションの検索に失敗した場合は例外を送出する。

    Returns:
        {"success": True, "processed": 件数, "results": [...], "timestamp": ISO8601}
    """
    now = now or datetime.now(timezone.utc)
    window_start, window_end = reminder_window(now)

    due = sessions.list_due_reminders(conn, window_start, window_end)
    logger.info(
        f"Found {len(due)} sessions needing LINE reminders",
        window_start=window_start.isoformat(),
        window_end=window_end.isoformat(),
    )

    results: List[Dict[str, Any]] = []
    for session in due:
        session_id = str(session["id"])
        user_id = str(session["user_id"])
        try:
            recipients = line_notifications.list_reminder_recipients(conn, user_id)
            recipient = recipients[0] if recipients else None
            if not recipient or not recipient.get("line_user_id"):
                logger.info("No LINE notification settings", session_id=session_id, user_id=user_id)
                continue

            line_user_id = recipient["line_user_id"]
            message = build_reminder_message(session.get("subordinate_name"))
            push = line.push_message(line_user_id, message)

            if push.success:
                # 送信済みの更新に失敗しても、送った事実は記録する
                try:
                    sessions.mark_reminder_sent(conn, session_id, now)
                except Exception:
                    logger.exception("Failed to update session", session_id=session_id)
                    conn.rollback()
                notification_logs.insert_log(
                    conn,
                    user_id=user_id,
                    session_id=session_id,
                    notification_type=NotificationType.REMINDER.value,
                    message=message,
                    status=NotificationStatus.SENT.value,
                )
                logger.info("LINE reminder sent", session_id=session_id)
            else:
                notification_logs.insert_log(
                    conn,
                    user_id=user_id,
                    session_id=session_id,
                    notification_type=NotificationType.REMINDER.value,
                    message=message,
                    status=NotificationStatus.FAILED.value,
                    error_message="LINE API error",
                )
                logger.error("LINE reminder failed", session_id=session_id, error=push.error)

            results.append({
                "sessionId": session_id,
                "sent": push.success,
                "lineUserId": line_user_id,
                "message": message,
            })
        except Exception as e:
            logger.exception("Error processing session", session_id=session_id)
            conn.rollback()
            results.append({
                "sessionId": session_id,
                "sent": False,
                "error": str(e),
            })

    return {
        "success": True,
        "processed": len(results),
        "results": results,
        "timestamp": now.isoformat(),
    }
