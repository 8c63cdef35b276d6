"""
LINE通知設定（line_notifications）リポジトリ

ユーザーごとに1行（user_id でユニーク）。
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import text

from memento.constants import DEFAULT_NOTIFICATION_TYPES, DEFAULT_REMIND_BEFORE_MINUTES
from memento.repositories.base import decode_json, json_param, row_to_dict, rows_to_dicts


_COLUMNS = """
    id, user_id, line_user_id, line_access_token, line_display_name, enabled,
    notification_types, remind_before_minutes, is_friend,
    friend_status_checked_at, updated_at
"""


def _normalize(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    row["notification_types"] = decode_json(row.get("notification_types"))
    return row


def get_settings(conn, user_id: str, enabled_only: bool = False) -> Optional[Dict[str, Any]]:
    """ユーザーのLINE通知設定を取得"""
    query = f"SELECT {_COLUMNS} FROM line_notifications WHERE user_id = :user_id"
    if enabled_only:
        query += " AND enabled = true"
    query += " ORDER BY updated_at DESC NULLS LAST LIMIT 1"

    result = conn.execute(text(query), {"user_id": user_id})
    return _normalize(row_to_dict(result.fetchone()))


def upsert_settings(
    conn,
    user_id: str,
    line_user_id: str,
    line_access_token: str,
    line_display_name: str,
    is_friend: Optional[bool],
    checked_at: datetime,
) -> None:
    """
    LINE連携結果を保存（user_id で upsert）

    連携時は有効化し、通知タイプ・リマインド時間は既定値に戻す。
    """
    conn.execute(
        text("""
            INSERT INTO line_notifications (
                user_id, line_user_id, line_access_token, line_display_name,
                enabled, notification_types, remind_before_minutes,
                is_friend, friend_status_checked_at, updated_at
            )
            VALUES (
                :user_id, :line_user_id, :line_access_token, :line_display_name,
                true, CAST(:notification_types AS jsonb), :remind_before_minutes,
                :is_friend, :checked_at, :checked_at
            )
            ON CONFLICT (user_id) DO UPDATE SET
                line_user_id = EXCLUDED.line_user_id,
                line_access_token = EXCLUDED.line_access_token,
                line_display_name = EXCLUDED.line_display_name,
                enabled = EXCLUDED.enabled,
                notification_types = EXCLUDED.notification_types,
                remind_before_minutes = EXCLUDED.remind_before_minutes,
                is_friend = EXCLUDED.is_friend,
                friend_status_checked_at = EXCLUDED.friend_status_checked_at,
                updated_at = EXCLUDED.updated_at
        """),
        {
            "user_id": user_id,
            "line_user_id": line_user_id,
            "line_access_token": line_access_token,
            "line_display_name": line_display_name,
            "notification_types": json_param(DEFAULT_NOTIFICATION_TYPES),
            "remind_before_minutes": DEFAULT_REMIND_BEFORE_MINUTES,
            "is_friend": is_friend,
            "checked_at": checked_at,
        },
    )
    conn.commit()


def update_friend_status(
    conn,
    user_id: str,
    checked_at: datetime,
    is_friend: Optional[bool] = None,
) -> None:
    """
    友だち状態の確認日時を更新

    is_friend が None の場合（API確認失敗）は現状の値を維持する。
    """
    sets = ["friend_status_checked_at = :checked_at", "updated_at = :checked_at"]
    params: Dict[str, Any] = {"user_id": user_id, "checked_at": checked_at}
    if is_friend is not None:
        sets.append("is_friend = :is_friend")
        params["is_friend"] = is_friend

    conn.execute(
        text(f"UPDATE line_notifications SET {', '.join(sets)} WHERE user_id = :user_id"),
        params,
    )
    conn.commit()


def delete_settings(conn, user_id: str) -> None:
    """LINE連携設定を削除"""
    conn.execute(
        text("DELETE FROM line_notifications WHERE user_id = :user_id"),
        {"user_id": user_id},
    )
    conn.commit()


def list_reminder_recipients(conn, user_id: str) -> List[Dict[str, Any]]:
    """リマインダー通知が有効な設定を取得"""
    result = conn.execute(
        text("""
            SELECT line_user_id, line_display_name
            FROM line_notifications
            WHERE user_id = :user_id
              AND enabled = true
              AND notification_types @> CAST(:types AS jsonb)
        """),
        {"user_id": user_id, "types": json_param(["reminder"])},
    )
    return rows_to_dicts(result.fetchall())
