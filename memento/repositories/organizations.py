"""
組織（organizations）リポジトリ
"""

from typing import Any, Dict, Optional

from sqlalchemy import text

from memento.repositories.base import decode_json, row_to_dict


def _to_organization(row: Dict[str, Any]) -> Dict[str, Any]:
    organization = {"id": str(row["id"]), "name": row["name"]}
    if "code" in row:
        organization["code"] = row["code"]
    return organization


def find_by_code(conn, code: str) -> Optional[Dict[str, Any]]:
    """招待コードから組織を取得（id と name のみ）"""
    result = conn.execute(
        text("SELECT id, name FROM organizations WHERE code = :code"),
        {"code": code},
    )
    row = row_to_dict(result.fetchone())
    return _to_organization(row) if row else None


def get_organization(conn, organization_id: str) -> Optional[Dict[str, Any]]:
    """組織を1件取得"""
    result = conn.execute(
        text("SELECT id, name, code FROM organizations WHERE id = :id"),
        {"id": organization_id},
    )
    row = row_to_dict(result.fetchone())
    return _to_organization(row) if row else None


def create_and_link(conn, name: str, code: str) -> Dict[str, Any]:
    """
    組織を作成し、リクエストユーザーのプロフィールに紐付ける

    create_organization_and_link は auth.uid() を参照するため、
    事前に set_request_user() でユーザーを設定しておくこと。
    """
    result = conn.execute(
        text("SELECT create_organization_and_link(:org_name, :org_code) AS organization"),
        {"org_name": name, "org_code": code},
    )
    organization = decode_json(result.scalar(), default={}) or {}
    conn.commit()
    return _to_organization(organization) if organization.get("id") else organization
