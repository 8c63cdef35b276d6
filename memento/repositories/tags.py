"""
タグ（tags）リポジトリ

タグは組織単位で管理する。
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import text

from memento.constants import DEFAULT_TAG_COLOR
from memento.repositories.base import row_to_dict, rows_to_dicts


def _to_tag(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(row["id"]),
        "name": row["name"],
        "color": row.get("color") or DEFAULT_TAG_COLOR,
        "organizationId": str(row["organization_id"]) if row.get("organization_id") else None,
        "createdAt": row.get("created_at"),
    }


def list_tags(conn, organization_id: str) -> List[Dict[str, Any]]:
    """組織のタグ一覧（作成順）"""
    result = conn.execute(
        text("""
            SELECT id, name, color, organization_id, created_at
            FROM tags
            WHERE organization_id = :organization_id
            ORDER BY created_at ASC
        """),
        {"organization_id": organization_id},
    )
    return [_to_tag(row) for row in rows_to_dicts(result.fetchall())]


def create_tag(
    conn,
    organization_id: str,
    name: str,
    color: Optional[str] = None,
) -> Dict[str, Any]:
    """タグを作成"""
    result = conn.execute(
        text("""
            INSERT INTO tags (name, color, organization_id)
            VALUES (:name, :color, :organization_id)
            RETURNING id, name, color, organization_id, created_at
        """),
        {
            "name": name,
            "color": color or DEFAULT_TAG_COLOR,
            "organization_id": organization_id,
        },
    )
    row = row_to_dict(result.fetchone())
    conn.commit()
    return _to_tag(row)


def delete_tag(conn, organization_id: str, tag_id: str) -> bool:
    """タグを削除（組織内のタグのみ）"""
    result = conn.execute(
        text("DELETE FROM tags WHERE id = :id AND organization_id = :organization_id"),
        {"id": tag_id, "organization_id": organization_id},
    )
    conn.commit()
    return result.rowcount > 0
