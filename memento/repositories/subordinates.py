"""
部下（subordinates）リポジトリ

部下の一覧・作成・更新・削除と、タグ（subordinate_tags）の紐付けを扱う。
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import text

from memento.repositories.base import decode_json, json_param, row_to_dict, rows_to_dicts


_SELECT_WITH_TAGS = """
    SELECT
        s.id,
        s.name,
        s.traits,
        s.user_id,
        s.last_one_on_one,
        s.created_at,
        COALESCE(
            (
                SELECT json_agg(json_build_object('id', t.id, 'name', t.name, 'color', t.color))
                FROM subordinate_tags st
                JOIN tags t ON t.id = st.tag_id
                WHERE st.subordinate_id = s.id
            ),
            '[]'::json
        ) AS tags
    FROM subordinates s
"""


def _to_subordinate(row: Dict[str, Any]) -> Dict[str, Any]:
    traits = decode_json(row.get("traits"), default=[])
    return {
        "id": str(row["id"]),
        "name": row["name"],
        "traits": traits if isinstance(traits, list) else [],
        "tags": decode_json(row.get("tags"), default=[]) or [],
        "userId": str(row["user_id"]) if row.get("user_id") else None,
        "lastOneOnOne": row.get("last_one_on_one"),
        "createdAt": row.get("created_at"),
    }


def list_subordinates(conn, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    部下一覧を取得（新しい順）

    Args:
        conn: DBコネクション
        user_id: 指定時はそのユーザーの部下のみ
    """
    query = _SELECT_WITH_TAGS
    params: Dict[str, Any] = {}
    if user_id:
        query += " WHERE s.user_id = :user_id"
        params["user_id"] = user_id
    query += " ORDER BY s.created_at DESC"

    result = conn.execute(text(query), params)
    return [_to_subordinate(row) for row in rows_to_dicts(result.fetchall())]


def get_subordinate(conn, subordinate_id: str) -> Optional[Dict[str, Any]]:
    """部下を1件取得"""
    result = conn.execute(
        text(_SELECT_WITH_TAGS + " WHERE s.id = :id"),
        {"id": subordinate_id},
    )
    row = row_to_dict(result.fetchone())
    return _to_subordinate(row) if row else None


def create_subordinate(
    conn,
    name: str,
    traits: List[str],
    user_id: Optional[str],
    tag_ids: Optional[List[str]] = None,
) -> str:
    """
    部下を作成し、タグを紐付ける

    Returns:
        作成した部下のID
    """
    result = conn.execute(
        text("""
            INSERT INTO subordinates (name, traits, user_id)
            VALUES (:name, CAST(:traits AS jsonb), :user_id)
            RETURNING id
        """),
        {"name": name, "traits": json_param(traits or []), "user_id": user_id},
    )
    subordinate_id = str(result.scalar())

    if tag_ids:
        _insert_tag_links(conn, subordinate_id, tag_ids)

    conn.commit()
    return subordinate_id


def update_subordinate(conn, subordinate_id: str, updates: Dict[str, Any]) -> bool:
    """
    部下を更新

    name / traits / lastOneOnOne のうち、値が指定されたものだけを更新する。

    Returns:
        更新対象があれば True
    """
    sets = []
    params: Dict[str, Any] = {"id": subordinate_id}

    if updates.get("name"):
        sets.append("name = :name")
        params["name"] = updates["name"]
    if updates.get("traits"):
        sets.append("traits = CAST(:traits AS jsonb)")
        params["traits"] = json_param(updates["traits"])
    if updates.get("lastOneOnOne"):
        sets.append("last_one_on_one = :last_one_on_one")
        params["last_one_on_one"] = updates["lastOneOnOne"]

    if not sets:
        return False

    conn.execute(
        text(f"UPDATE subordinates SET {', '.join(sets)} WHERE id = :id"),
        params,
    )
    conn.commit()
    return True


def set_subordinate_tags(conn, subordinate_id: str, tag_ids: List[str]) -> None:
    """部下のタグを置き換える"""
    conn.execute(
        text("DELETE FROM subordinate_tags WHERE subordinate_id = :id"),
        {"id": subordinate_id},
    )
    if tag_ids:
        _insert_tag_links(conn, subordinate_id, tag_ids)
    conn.commit()


def delete_subordinate(conn, subordinate_id: str) -> bool:
    """部下を削除（タグの紐付けも削除）"""
    conn.execute(
        text("DELETE FROM subordinate_tags WHERE subordinate_id = :id"),
        {"id": subordinate_id},
    )
    result = conn.execute(
        text("DELETE FROM subordinates WHERE id = :id"),
        {"id": subordinate_id},
    )
    conn.commit()
    return result.rowcount > 0


def _insert_tag_links(conn, subordinate_id: str, tag_ids: List[str]) -> None:
    for tag_id in tag_ids:
        conn.execute(
            text("""
                INSERT INTO subordinate_tags (subordinate_id, tag_id)
                VALUES (:subordinate_id, :tag_id)
            """),
            {"subordinate_id": subordinate_id, "tag_id": tag_id},
        )
