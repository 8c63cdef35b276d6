"""api/app/deps/auth.py - Supabase JWT認証依存モジュール

Supabase Auth が発行するアクセストークン（HS256, aud=authenticated）を検証し、
リクエストユーザーを取得する。

トークンは Authorization: Bearer ヘッダー、または sb-access-token Cookie から取得する。
"""

import datetime
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from memento.logging import get_logger
from memento.secrets import get_secret_cached

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"
JWT_SECRET_ID = "supabase-jwt-secret"
ACCESS_TOKEN_COOKIE = "sb-access-token"

_bearer_scheme = HTTPBearer(auto_error=False)

# 遅延初期化キャッシュ（Cold Start後の環境変数設定に対応）
_cached_secret: Optional[str] = None


@dataclass
class CurrentUser:
    """認証済みユーザー"""
    user_id: str
    email: Optional[str] = None
    role: str = JWT_AUDIENCE


def _get_jwt_secret() -> str:
    """JWT秘密鍵を取得。環境変数→Secret Manager の優先順位。

    一度取得した秘密鍵はキャッシュする。
    """
    global _cached_secret
    if _cached_secret:
        return _cached_secret

    try:
        secret = get_secret_cached(JWT_SECRET_ID)
    except Exception as e:
        logger.error("Failed to retrieve JWT secret", error=type(e).__name__)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="JWT secret key is not configured",
        )
    _cached_secret = secret
    return secret


def decode_jwt(token: str) -> dict:
    """JWTトークンをデコード・検証する。

    Returns:
        dict: JWT claims (sub, email, role, aud, exp, iat)

    Raises:
        HTTPException: トークンが無効・期限切れの場合
    """
    secret = _get_jwt_secret()
    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM], audience=JWT_AUDIENCE)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing required claim: sub",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return payload


def extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """Bearer ヘッダー優先、なければ Cookie からトークンを取得"""
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(ACCESS_TOKEN_COOKIE)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> CurrentUser:
    """アクセストークンから認証済みユーザーを取得する。

    Raises:
        HTTPException(401): トークンなし/無効/期限切れ
    """
    token = extract_token(request, credentials)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_jwt(token)
    return CurrentUser(
        user_id=payload["sub"],
        email=payload.get("email"),
        role=payload.get("role", JWT_AUDIENCE),
    )


def create_access_token(
    user_id: str,
    email: Optional[str] = None,
    role: str = JWT_AUDIENCE,
    expires_minutes: int = 60,
) -> str:
    """Supabase 互換のアクセストークンを生成する（テスト・内部利用）。"""
    now = datetime.datetime.now(datetime.timezone.utc)
    payload = {
        "sub": user_id,
        "aud": JWT_AUDIENCE,
        "role": role,
        "iat": now,
        "exp": now + datetime.timedelta(minutes=expires_minutes),
    }
    if email:
        payload["email"] = email

    secret = _get_jwt_secret()
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def resolve_user_id(user: CurrentUser, requested_user_id: Optional[str]) -> str:
    """
    リクエストボディの userId を認証ユーザーと照合する

    省略時は認証ユーザーのIDを使う。

    Raises:
        HTTPException(403): 他のユーザーIDが指定された場合
    """
    if requested_user_id and requested_user_id != user.user_id:
        logger.warning(
            "userId does not match authenticated user",
            user_id=user.user_id,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot act on behalf of another user",
        )
    return user.user_id


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Optional[CurrentUser]:
    """
    ログインしていれば認証済みユーザー、なければ None

    ブラウザ遷移で呼ばれる OAuth 開始・コールバック用。
    秘密鍵の設定不足（500）はそのまま送出する。
    """
    try:
        return await get_current_user(request, credentials)
    except HTTPException as e:
        if e.status_code != status.HTTP_401_UNAUTHORIZED:
            raise
        return None
