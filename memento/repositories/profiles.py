"""
プロフィール（profiles）リポジトリ

所属組織と Google OAuth トークンを扱う。
"""

from typing import Any, Dict, Optional

from sqlalchemy import text

from memento.repositories.base import row_to_dict


def get_organization_id(conn, user_id: str) -> Optional[str]:
    """ユーザーの所属組織IDを取得"""
    result = conn.execute(
        text("SELECT organization_id FROM profiles WHERE id = :id"),
        {"id": user_id},
    )
    row = result.fetchone()
    if row is None or row[0] is None:
        return None
    return str(row[0])


def set_organization_id(conn, user_id: str, organization_id: str) -> bool:
    """ユーザーの所属組織を設定"""
    result = conn.execute(
        text("UPDATE profiles SET organization_id = :organization_id WHERE id = :id"),
        {"id": user_id, "organization_id": organization_id},
    )
    conn.commit()
    return result.rowcount > 0


def get_google_tokens(conn, user_id: str) -> Optional[Dict[str, Any]]:
    """
    Google OAuth トークンを取得

    Returns:
        google_access_token / google_refresh_token / google_token_expires_at
        （プロフィールが存在しなければ None）
    """
    result = conn.execute(
        text("""
            SELECT google_access_token, google_refresh_token, google_token_expires_at
            FROM profiles
            WHERE id = :id
        """),
        {"id": user_id},
    )
    return row_to_dict(result.fetchone())


def update_google_tokens(
    conn,
    user_id: str,
    access_token: str,
    expires_at_ms: int,
    refresh_token: Optional[str] = None,
) -> None:
    """
    Google OAuth トークンを更新

    refresh_token はプロバイダーが新しい値を返した場合のみ更新する。
    """
    sets = [
        "google_access_token = :access_token",
        "google_token_expires_at = :expires_at",
    ]
    params: Dict[str, Any] = {
        "id": user_id,
        "access_token": access_token,
        "expires_at": expires_at_ms,
    }
    if refresh_token:
        sets.append("google_refresh_token = :refresh_token")
        params["refresh_token"] = refresh_token

    conn.execute(
        text(f"UPDATE profiles SET {', '.join(sets)} WHERE id = :id"),
        params,
    )
    conn.commit()
