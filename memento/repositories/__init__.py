"""
Supabase テーブルのリポジトリ

各モジュールは SQLAlchemy のコネクションを受け取る関数のみで構成する。

使用例:
    from memento.db import get_db_session
    from memento.repositories import sessions

    with get_db_session(user_id) as conn:
        session = sessions.get_session(conn, session_id)
"""
