"""
リクエストユーザーコンテキスト管理モジュール

認証済みユーザー（Supabase の sub）をリクエストスコープで保持する。
ログへの自動付与と、DB接続への RLS 用クレーム設定に使用。

使用例:
    from memento.request_context import RequestUserContext, get_current_user_id

    with RequestUserContext("0b9c...-uuid"):
        user_id = get_current_user_id()
"""

from contextvars import ContextVar
from typing import Optional


# コンテキスト変数（スレッド/非同期セーフ）
_current_user: ContextVar[Optional[str]] = ContextVar(
    "current_user", default=None
)


class RequestUserContext:
    """
    ユーザーコンテキストマネージャー

    with ブロック内でユーザーIDを設定し、ブロック終了時に元に戻す。
    """

    def __init__(self, user_id: Optional[str]):
        self.user_id = user_id
        self._token = None

    def __enter__(self):
        self._token = _current_user.set(self.user_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _current_user.reset(self._token)
        return False

    async def __aenter__(self):
        """非同期版 enter"""
        self._token = _current_user.set(self.user_id)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """非同期版 exit"""
        _current_user.reset(self._token)
        return False


def get_current_user_id() -> Optional[str]:
    """現在のユーザーIDを取得（未設定の場合は None）"""
    return _current_user.get()


def set_current_user_id(user_id: Optional[str]) -> None:
    """
    ユーザーIDを設定

    注意: 通常は RequestUserContext を使用すること。
    """
    _current_user.set(user_id)
