"""
LINEリマインダー送信 Cloud Function

Cloud Scheduler から定期的に呼び出され、約1時間後に始まる
1on1セッションのリマインダーを LINE で送信する。
"""

import functions_framework
from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError

from memento.db import get_db_session
from memento.logging import get_logger
from memento.reminders import send_due_reminders

logger = get_logger(__name__)


# ============================================
# HTTPエンドポイント
# ============================================

@functions_framework.http
def send_line_reminders(request):
    """
    リマインダー送信エンドポイント

    Returns:
        {"success", "processed", "results", "timestamp"}
    """
    logger.info("LINE reminder job started")

    try:
        with get_db_session() as conn:
            result = send_due_reminders(conn)
    except SQLAlchemyError as e:
        logger.error("LINE reminder job failed", exc_info=True, error=type(e).__name__)
        return jsonify({"success": False, "error": "Internal server error"}), 500

    logger.info("LINE reminder job finished", processed=result["processed"])
    return jsonify(result), 200
