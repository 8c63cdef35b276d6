"""
1on1セッション（sessions）リポジトリ

セッションの作成・取得・部分更新と、LINEリマインダー対象の抽出を扱う。
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import text

from memento.constants import SessionStatus
from memento.repositories.base import decode_json, json_param, row_to_dict, rows_to_dicts


_COLUMNS = """
    id, subordinate_id, date, mode, theme, summary, status, transcript,
    mind_map_data, agenda_items, notes, next_session_date,
    next_session_duration_minutes, line_reminder_scheduled,
    line_reminder_sent_at, user_id, created_at
"""

# camelCase キー → (カラム名, JSONBか)
# 値が truthy のときだけ更新するフィールド
_TRUTHY_FIELDS = {
    "status": ("status", False),
    "summary": ("summary", False),
    "transcript": ("transcript", True),
    "mindMapData": ("mind_map_data", True),
    "agendaItems": ("agenda_items", True),
    "notes": ("notes", True),
}

# キーが存在すれば None でも更新するフィールド
_NULLABLE_FIELDS = {
    "nextSessionDate": "next_session_date",
    "nextSessionDurationMinutes": "next_session_duration_minutes",
    "lineReminderScheduled": "line_reminder_scheduled",
    "lineReminderSentAt": "line_reminder_sent_at",
    "userId": "user_id",
}


def to_session(row: Dict[str, Any]) -> Dict[str, Any]:
    """DB行をAPI表現（camelCase）に変換"""
    return {
        "id": str(row["id"]),
        "subordinateId": str(row["subordinate_id"]) if row.get("subordinate_id") else None,
        "date": row.get("date"),
        "mode": row.get("mode"),
        "theme": row.get("theme"),
        "summary": row.get("summary"),
        "status": row.get("status"),
        "transcript": decode_json(row.get("transcript"), default=[]) or [],
        "mindMapData": decode_json(row.get("mind_map_data"), default={}) or {},
        "agendaItems": decode_json(row.get("agenda_items"), default=[]) or [],
        "notes": decode_json(row.get("notes"), default=[]) or [],
        "nextSessionDate": row.get("next_session_date"),
        "nextSessionDurationMinutes": row.get("next_session_duration_minutes"),
        "lineReminderScheduled": row.get("line_reminder_scheduled"),
        "lineReminderSentAt": row.get("line_reminder_sent_at"),
        "userId": str(row["user_id"]) if row.get("user_id") else None,
    }


def list_sessions(
    conn,
    user_id: Optional[str] = None,
    subordinate_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """セッション一覧を取得（日付の新しい順）"""
    query = f"SELECT {_COLUMNS} FROM sessions WHERE 1 = 1"
    params: Dict[str, Any] = {}
    if user_id:
        query += " AND user_id = :user_id"
        params["user_id"] = user_id
    if subordinate_id:
        query += " AND subordinate_id = :subordinate_id"
        params["subordinate_id"] = subordinate_id
    query += " ORDER BY date DESC"

    result = conn.execute(text(query), params)
    return [to_session(row) for row in rows_to_dicts(result.fetchall())]


def get_session(conn, session_id: str) -> Optional[Dict[str, Any]]:
    """セッションを1件取得"""
    result = conn.execute(
        text(f"SELECT {_COLUMNS} FROM sessions WHERE id = :id"),
        {"id": session_id},
    )
    row = row_to_dict(result.fetchone())
    return to_session(row) if row else None


def create_session(
    conn,
    subordinate_id: str,
    date: str,
    mode: str,
    theme: str,
    user_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    セッションを作成

    作成直後から live 状態とし、空の文字起こしとマインドマップを持つ。
    """
    columns = ["subordinate_id", "date", "mode", "theme", "status", "transcript", "mind_map_data"]
    values = [
        ":subordinate_id", ":date", ":mode", ":theme", ":status",
        "CAST(:transcript AS jsonb)", "CAST(:mind_map_data AS jsonb)",
    ]
    params: Dict[str, Any] = {
        "subordinate_id": subordinate_id,
        "date": date,
        "mode": mode,
        "theme": theme,
        "status": SessionStatus.LIVE.value,
        "transcript": json_param([]),
        "mind_map_data": json_param({}),
    }
    if user_id:
        columns.append("user_id")
        values.append(":user_id")
        params["user_id"] = user_id

    result = conn.execute(
        text(f"""
            INSERT INTO sessions ({', '.join(columns)})
            VALUES ({', '.join(values)})
            RETURNING {_COLUMNS}
        """),
        params,
    )
    row = row_to_dict(result.fetchone())
    conn.commit()
    return to_session(row)


def build_session_updates(updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    camelCase の更新内容をカラム名の dict に変換

    status / summary / transcript / mindMapData / agendaItems / notes は
    値が truthy のときのみ、次回セッション・リマインダー関連と userId は
    キーが存在すれば None でも対象にする。
    """
    db_updates: Dict[str, Any] = {}
    for key, (column, _) in _TRUTHY_FIELDS.items():
        if updates.get(key):
            db_updates[column] = updates[key]
    for key, column in _NULLABLE_FIELDS.items():
        if key in updates:
            db_updates[column] = updates[key]
    return db_updates


_JSON_COLUMNS = {column for column, is_json in _TRUTHY_FIELDS.values() if is_json}


def update_session(conn, session_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    セッションを部分更新

    Returns:
        更新後のセッション（更新対象がなければ現在の値、存在しなければ None）
    """
    db_updates = build_session_updates(updates)
    if not db_updates:
        return get_session(conn, session_id)

    sets = []
    params: Dict[str, Any] = {"id": session_id}
    for column, value in db_updates.items():
        if column in _JSON_COLUMNS:
            sets.append(f"{column} = CAST(:{column} AS jsonb)")
            params[column] = json_param(value)
        else:
            sets.append(f"{column} = :{column}")
            params[column] = value

    result = conn.execute(
        text(f"""
            UPDATE sessions SET {', '.join(sets)}
            WHERE id = :id
            RETURNING {_COLUMNS}
        """),
        params,
    )
    row = row_to_dict(result.fetchone())
    conn.commit()
    return to_session(row) if row else None


# =============================================================================
# LINEリマインダー
# =============================================================================

def list_due_reminders(conn, window_start: datetime, window_end: datetime) -> List[Dict[str, Any]]:
    """
    リマインダー送信対象のセッションを取得

    未送信・ユーザー設定済みで、次回セッションが時間窓内にあるもの。
    """
    result = conn.execute(
        text("""
            SELECT
                s.id,
                s.next_session_date,
                s.user_id,
                s.subordinate_id,
                sub.name AS subordinate_name
            FROM sessions s
            JOIN subordinates sub ON sub.id = s.subordinate_id
            WHERE s.line_reminder_scheduled = false
              AND s.line_reminder_sent_at IS NULL
              AND s.next_session_date IS NOT NULL
              AND s.user_id IS NOT NULL
              AND s.next_session_date >= :window_start
              AND s.next_session_date <= :window_end
        """),
        {"window_start": window_start, "window_end": window_end},
    )
    return rows_to_dicts(result.fetchall())


def mark_reminder_sent(conn, session_id: str, sent_at: datetime) -> None:
    """リマインダー送信済みにする"""
    conn.execute(
        text("""
            UPDATE sessions
            SET line_reminder_scheduled = true,
                line_reminder_sent_at = :sent_at
            WHERE id = :id
        """),
        {"id": session_id, "sent_at": sent_at},
    )
    conn.commit()
