"""
エラーレスポンス

クライアントは {"error": メッセージ, ...} 形式のエラーを前提にしているため、
エンドポイント固有のエラーはこの形式で返す。
認証エラー（HTTPException）と未処理例外はそれぞれのハンドラーに任せる。
"""

from typing import Any

from fastapi.responses import JSONResponse


def error_response(status_code: int, error: str, **extra: Any) -> JSONResponse:
    """{"error": error, **extra} を返す"""
    return JSONResponse(status_code=status_code, content={"error": error, **extra})
