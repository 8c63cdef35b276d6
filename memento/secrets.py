"""
シークレット取得

Supabase の DB パスワードや JWT 署名鍵など、設定ファイルに置かない値を取得する。
同名の環境変数（大文字・アンダースコア区切り）があればそれを使い、
なければ GCP Secret Manager の最新バージョンを読む。

    supabase-db-password → SUPABASE_DB_PASSWORD
    supabase-jwt-secret  → SUPABASE_JWT_SECRET

使用例:
    from memento.secrets import get_secret_cached

    jwt_secret = get_secret_cached("supabase-jwt-secret")
"""

import os
from functools import lru_cache
from typing import Optional

from memento.config import get_settings


@lru_cache(maxsize=1)
def _get_client():
    """Secret Manager クライアント（プロセスで1つ）"""
    from google.cloud import secretmanager
    return secretmanager.SecretManagerServiceClient()


def _secret_to_env_var(secret_id: str) -> str:
    return secret_id.upper().replace("-", "_")


def secret_version_path(secret_id: str, version: str = "latest", project_id: Optional[str] = None) -> str:
    project = project_id or get_settings().PROJECT_ID
    return f"projects/{project}/secrets/{secret_id}/versions/{version}"


def get_secret(secret_id: str, version: str = "latest", project_id: Optional[str] = None) -> str:
    """
    シークレットを取得（前後の空白・改行は除去）

    Raises:
        google.api_core.exceptions.NotFound: Secret Manager に存在しない
        google.api_core.exceptions.PermissionDenied: 参照権限がない
    """
    from_env = os.getenv(_secret_to_env_var(secret_id))
    if from_env:
        return from_env.strip()

    response = _get_client().access_secret_version(
        request={"name": secret_version_path(secret_id, version, project_id)}
    )
    return response.payload.data.decode("UTF-8").strip()


@lru_cache(maxsize=32)
def get_secret_cached(secret_id: str, version: str = "latest", project_id: Optional[str] = None) -> str:
    """
    キャッシュ付きの get_secret

    ローテーション後は clear_secret_cache() を呼ぶか、プロセスを再起動する。
    """
    return get_secret(secret_id, version, project_id)


def clear_secret_cache() -> None:
    get_secret_cached.cache_clear()
