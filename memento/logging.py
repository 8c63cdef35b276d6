"""
ログ出力

logger.info("...", session_id=...) のようにキーワード引数で項目を添えて記録する。
Cloud Run / Cloud Functions 上では Cloud Logging が解釈できる JSON を1行で出力し、
ローカルでは読みやすいテキストに項目を key=value で付け足す。
どちらの形式でもリクエストユーザーIDを自動で付与する。

使用例:
    from memento.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Session completed", session_id=session_id)
    logger.error("LINE push failed", exc_info=True, status_code=400)
"""

import json
import logging
import sys
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, Optional, cast

from memento.config import get_settings
from memento.request_context import get_current_user_id

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def _fields(record: logging.LogRecord) -> Dict[str, Any]:
    fields = dict(getattr(record, "extra_fields", None) or {})
    user_id = get_current_user_id()
    if user_id and "user_id" not in fields:
        fields["user_id"] = user_id
    return fields


class StructuredFormatter(logging.Formatter):
    """Cloud Logging 用の JSON フォーマッター"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "severity": record.levelname,
            "message": record.getMessage(),
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "logger": record.name,
        }
        entry.update(_fields(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }
        return json.dumps(entry, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """ローカル開発用（メッセージの後ろに key=value を並べる）"""

    def __init__(self):
        super().__init__(CONSOLE_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = _fields(record)
        if not fields:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in fields.items())
        head, sep, tail = line.partition("\n")
        return f"{head} | {pairs}{sep}{tail}"


class StructuredLogger(logging.Logger):
    """
    キーワード引数を項目として受け取るロガー

    debug/info/warning/error/critical/exception はいずれも _log を経由するため、
    ここで余分なキーワード引数を extra_fields にまとめる。
    """

    def _log(self, level, msg, args, exc_info=None, extra=None, stack_info=False,  # type: ignore[override]
             stacklevel=1, **fields):
        merged = dict(extra or {})
        if fields:
            merged["extra_fields"] = fields
        super()._log(
            level, msg, args,
            exc_info=exc_info,
            extra=merged,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )


logging.setLoggerClass(StructuredLogger)


def _handler() -> logging.Handler:
    settings = get_settings()
    handler = logging.StreamHandler(sys.stdout)
    if settings.is_cloud_run() or settings.is_cloud_functions():
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(ConsoleFormatter())
    return handler


@lru_cache(maxsize=64)
def get_logger(name: str) -> StructuredLogger:
    """
    ロガーを取得（名前ごとに1回だけハンドラーを設定）

    DEBUG=true なら DEBUG レベル、それ以外は INFO。
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(logging.DEBUG if get_settings().DEBUG else logging.INFO)
        logger.addHandler(_handler())
        logger.propagate = False
    return cast(StructuredLogger, logger)


# =============================================================================
# 定型ログ
# =============================================================================

def log_api_request(logger: StructuredLogger, method: str, path: str,
                    status_code: int, duration_ms: float, **extra):
    """APIリクエスト1件（リクエストログミドルウェアから呼ぶ）"""
    logger.info(
        f"{method} {path} -> {status_code}",
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=duration_ms,
        **extra,
    )


def log_external_api_call(logger: StructuredLogger, service: str, method: str,
                          endpoint: str, status_code: int, duration_ms: float, **extra):
    """
    外部サービス呼び出し1件

    4xx/5xx は WARNING で記録する。

    使用例:
        log_external_api_call(logger, service="line", method="POST",
                              endpoint="/v2/bot/message/push",
                              status_code=200, duration_ms=320.5)
    """
    level = logging.WARNING if status_code >= 400 else logging.INFO
    logger.log(
        level,
        f"External API: {service} {method} {endpoint} -> {status_code}",
        service=service,
        method=method,
        endpoint=endpoint,
        status_code=status_code,
        duration_ms=duration_ms,
        **extra,
    )


def log_audit_event(
    logger: StructuredLogger,
    action: str,
    resource_type: str,
    resource_id: str,
    user_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
):
    """ユーザーによる作成・削除・連携の変更などの監査ログ"""
    logger.info(
        f"Audit: {action} {resource_type}/{resource_id}",
        audit=True,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        user_id=user_id,
        details=details or {},
    )
