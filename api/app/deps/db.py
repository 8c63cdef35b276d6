"""api/app/deps/db.py - DB接続依存モジュール"""

from typing import Optional

from fastapi import Depends

from memento.db import get_db_session
from api.app.deps.auth import CurrentUser, get_current_user, get_optional_user


def get_db_connection():
    """DB接続を取得（認証不要のエンドポイント用）"""
    with get_db_session() as conn:
        yield conn


def get_user_db_connection(user: CurrentUser = Depends(get_current_user)):
    """リクエストユーザーを設定したDB接続を取得"""
    with get_db_session(user_id=user.user_id) as conn:
        yield conn


def get_optional_user_db_connection(user: Optional[CurrentUser] = Depends(get_optional_user)):
    """ログイン中ならユーザーを設定したDB接続（未ログインでもエラーにしない）"""
    with get_db_session(user_id=user.user_id if user else None) as conn:
        yield conn
