"""
Memento 1on1 API - FastAPI Entry Point

使用方法（ローカル開発）:
    uvicorn api.main:app --reload --port 8080

使用方法（Cloud Run）:
    gunicorn api.main:app -k uvicorn.workers.UvicornWorker
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
import time

from memento.config import get_settings
from memento.db import close_all_connections
from memento.logging import get_logger, log_api_request
from memento.request_context import RequestUserContext
from api.app.api.v1 import router as v1_router
from api.app.api.v1.health import service_status
from api.app.deps.auth import decode_jwt
from api.app.limiter import limiter

logger = get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """アプリケーションのライフサイクル管理"""
    logger.info("Memento 1on1 API starting up...")
    yield
    close_all_connections()
    logger.info("Memento 1on1 API shutting down...")


app = FastAPI(
    title="Memento 1on1 API",
    description="マネージャー向け 1on1 支援アプリ API",
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# レート制限（slowapi）
# SlowAPIMiddleware が全ルートに既定の上限（RATE_LIMIT_DEFAULT）を適用
# ヘルスチェックと OAuth コールバックは @limiter.exempt
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS設定
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_user_context(request: Request, call_next):
    """リクエストにユーザーコンテキストを設定（ログ用、認証エラーはルートハンドラで処理）"""
    user_id = None

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        try:
            user_id = decode_jwt(auth_header[7:]).get("sub")
        except HTTPException as e:
            logger.debug(f"JWT decode in user middleware: {type(e).__name__}")

    with RequestUserContext(user_id):
        response = await call_next(request)

    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """リクエストログ"""
    start_time = time.time()

    response = await call_next(request)

    duration_ms = (time.time() - start_time) * 1000
    log_api_request(
        logger,
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(duration_ms, 2),
    )

    return response


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """グローバル例外ハンドラー"""
    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=True,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=500,
        content={
            "status": "error",
            "error_code": "INTERNAL_ERROR",
            "error_message": "内部エラーが発生しました",
        },
    )


# API v1 ルーターを登録
app.include_router(v1_router, prefix="/api")


@app.get("/api/health")
@limiter.exempt
async def health():
    """ヘルスチェック（DB を確認しない軽量版）"""
    return service_status()
