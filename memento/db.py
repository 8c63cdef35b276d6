"""
データベース接続モジュール

Supabase Postgres への同期コネクションプールを提供。
FastAPI のリクエストハンドラと Cloud Functions の両方から使用する。

使用例:
    from sqlalchemy import text
    from memento.db import get_db_pool

    pool = get_db_pool()
    with pool.connect() as conn:
        result = conn.execute(text("SELECT 1"))
        conn.commit()

RLS:
    get_db_session(user_id) は接続を DB_RLS_ROLE に切り替えて request.jwt.claim.sub を設定する。
    auth.uid() を参照する RLS ポリシーがこの接続に適用される。
"""

import json
import threading
from typing import Optional
from contextlib import contextmanager

import sqlalchemy
from sqlalchemy import text
from sqlalchemy.pool import QueuePool

from memento.config import get_settings
from memento.logging import get_logger
from memento.secrets import get_secret_cached

logger = get_logger(__name__)

_sync_pool: Optional[sqlalchemy.Engine] = None
_sync_pool_lock = threading.Lock()


def _get_db_password() -> str:
    """DBパスワードを取得"""
    return get_secret_cached("supabase-db-password")


def get_db_pool() -> sqlalchemy.Engine:
    """
    SQLAlchemy コネクションプールを取得

    アプリケーション全体で1つのプールを共有。

    Returns:
        sqlalchemy.Engine: コネクションプール
    """
    global _sync_pool

    if _sync_pool is None:
        with _sync_pool_lock:
            if _sync_pool is None:
                settings = get_settings()
                db_url = sqlalchemy.URL.create(
                    "postgresql+pg8000",
                    username=settings.DB_USER,
                    password=_get_db_password(),
                    host=settings.DB_HOST,
                    port=settings.DB_PORT,
                    database=settings.DB_NAME,
                )
                _sync_pool = sqlalchemy.create_engine(
                    db_url,
                    poolclass=QueuePool,
                    pool_size=settings.DB_POOL_SIZE,
                    max_overflow=settings.DB_MAX_OVERFLOW,
                    pool_timeout=settings.DB_POOL_TIMEOUT,
                    pool_recycle=settings.DB_POOL_RECYCLE,
                    pool_pre_ping=True,
                )
                logger.info(
                    "DB pool created",
                    host=settings.DB_HOST,
                    pool_size=settings.DB_POOL_SIZE,
                )

    return _sync_pool


@contextmanager
def get_db_session(user_id: Optional[str] = None):
    """
    DBセッションをコンテキストマネージャーで取得

    user_id を渡すと、接続を RLS 用のロールに切り替えてユーザークレームを設定する。
    設定はセッション単位なので、途中で commit しても外れない。
    プールに戻す前に必ず元に戻す。

    使用例:
        with get_db_session(user_id) as conn:
            rows = conn.execute(text("SELECT * FROM sessions")).fetchall()
            conn.commit()
    """
    pool = get_db_pool()
    conn = pool.connect()
    try:
        if user_id:
            set_request_user(conn, user_id)
        yield conn
    finally:
        if user_id:
            clear_request_user(conn)
        conn.close()


def set_request_user(conn, user_id: str) -> None:
    """
    接続にリクエストユーザーを設定

    ロール（DB_RLS_ROLE）と request.jwt.claim.sub / request.jwt.claims を
    セッション単位（is_local=false）で設定し、すぐに commit する。
    auth.uid() を参照する RLS ポリシーは、以降のトランザクションすべてに適用される。

    Args:
        conn: DBコネクション
        user_id: Supabase のユーザーID（JWT の sub）
    """
    role = get_settings().DB_RLS_ROLE
    conn.execute(
        text("""
            SELECT
                set_config('role', :role, false),
                set_config('request.jwt.claim.sub', :user_id, false),
                set_config('request.jwt.claims', :claims, false)
        """),
        {
            "role": role,
            "user_id": user_id,
            "claims": json.dumps({"sub": user_id, "role": role}),
        },
    )
    conn.commit()


def clear_request_user(conn) -> None:
    """
    set_request_user の設定を外す

    失敗した場合は接続を破棄し、ユーザー設定が残った接続をプールに戻さない。
    """
    try:
        conn.rollback()
        conn.execute(text("RESET ROLE"))
        conn.execute(text("""
            SELECT
                set_config('request.jwt.claim.sub', '', false),
                set_config('request.jwt.claims', '', false)
        """))
        conn.commit()
    except Exception as e:
        logger.warning("Failed to reset request user", error=type(e).__name__)
        conn.invalidate()


# =============================================================================
# ユーティリティ
# =============================================================================

def close_all_connections() -> None:
    """
    コネクションプールを閉じる

    アプリケーション終了時やテスト後のクリーンアップに使用。
    """
    global _sync_pool

    if _sync_pool is not None:
        _sync_pool.dispose()
        _sync_pool = None


def health_check() -> bool:
    """
    DB接続のヘルスチェック

    Returns:
        True: 接続成功
        False: 接続失敗
    """
    try:
        pool = get_db_pool()
        with pool.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning("DB health check failed", error=type(e).__name__)
        return False
