"""
通知ログ（notification_logs）リポジトリ
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import text

from memento.constants import NotificationStatus


def insert_log(
    conn,
    user_id: str,
    notification_type: str,
    status: str,
    session_id: Optional[str] = None,
    message: Optional[str] = None,
    error_message: Optional[str] = None,
) -> Optional[str]:
    """
    通知ログを記録

    sent_at は送信成功時のみ設定する。

    Returns:
        作成したログのID
    """
    sent_at = datetime.now(timezone.utc) if status == NotificationStatus.SENT.value else None
    result = conn.execute(
        text("""
            INSERT INTO notification_logs (
                user_id, session_id, notification_type, message,
                status, error_message, sent_at
            )
            VALUES (
                :user_id, :session_id, :notification_type, :message,
                :status, :error_message, :sent_at
            )
            RETURNING id
        """),
        {
            "user_id": user_id,
            "session_id": session_id,
            "notification_type": notification_type,
            "message": message,
            "status": status,
            "error_message": error_message,
            "sent_at": sent_at,
        },
    )
    log_id = result.scalar()
    conn.commit()
    return str(log_id) if log_id is not None else None
