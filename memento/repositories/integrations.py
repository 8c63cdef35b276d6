"""
メッセージング連携（messaging_integrations）リポジトリ

(user_id, provider) でユニーク。
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import text

from memento.repositories.base import decode_json, json_param, row_to_dict


_COLUMNS = """
    id, user_id, provider, webhook_url, api_token, room_id,
    display_name, enabled, metadata, updated_at
"""

_UPDATABLE = {"webhook_url", "api_token", "room_id", "display_name", "enabled", "metadata"}


def _normalize(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    row["metadata"] = decode_json(row.get("metadata"), default={}) or {}
    if row.get("id") is not None:
        row["id"] = str(row["id"])
    return row


def get_integration(
    conn,
    user_id: str,
    provider: str,
    enabled_only: bool = False,
) -> Optional[Dict[str, Any]]:
    """連携設定を取得"""
    query = f"""
        SELECT {_COLUMNS} FROM messaging_integrations
        WHERE user_id = :user_id AND provider = :provider
    """
    if enabled_only:
        query += " AND enabled = true"

    result = conn.execute(text(query), {"user_id": user_id, "provider": provider})
    return _normalize(row_to_dict(result.fetchone()))


def upsert_integration(conn, user_id: str, provider: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    連携設定を upsert（(user_id, provider) で競合時は更新）

    Args:
        fields: webhook_url / api_token / room_id / display_name / enabled / metadata
    """
    values = {k: v for k, v in fields.items() if k in _UPDATABLE}
    values["updated_at"] = datetime.now(timezone.utc)

    columns = ["user_id", "provider"] + list(values.keys())
    placeholders = [":user_id", ":provider"] + [
        f"CAST(:{k} AS jsonb)" if k == "metadata" else f":{k}" for k in values
    ]
    updates = [f"{k} = EXCLUDED.{k}" for k in values]

    params: Dict[str, Any] = {"user_id": user_id, "provider": provider}
    for key, value in values.items():
        params[key] = json_param(value) if key == "metadata" else value

    result = conn.execute(
        text(f"""
            INSERT INTO messaging_integrations ({', '.join(columns)})
            VALUES ({', '.join(placeholders)})
            ON CONFLICT (user_id, provider) DO UPDATE SET {', '.join(updates)}
            RETURNING {_COLUMNS}
        """),
        params,
    )
    row = _normalize(row_to_dict(result.fetchone()))
    conn.commit()
    return row


def update_integration(conn, user_id: str, provider: str, fields: Dict[str, Any]) -> bool:
    """連携設定の一部を更新"""
    values = {k: v for k, v in fields.items() if k in _UPDATABLE}
    values["updated_at"] = datetime.now(timezone.utc)

    sets = [
        f"{k} = CAST(:{k} AS jsonb)" if k == "metadata" else f"{k} = :{k}"
        for k in values
    ]
    params: Dict[str, Any] = {"user_id": user_id, "provider": provider}
    for key, value in values.items():
        params[key] = json_param(value) if key == "metadata" else value

    result = conn.execute(
        text(f"""
            UPDATE messaging_integrations SET {', '.join(sets)}
            WHERE user_id = :user_id AND provider = :provider
        """),
        params,
    )
    conn.commit()
    return result.rowcount > 0


def disable_integration(conn, user_id: str, provider: str) -> bool:
    """連携を無効化"""
    return update_integration(conn, user_id, provider, {"enabled": False})
