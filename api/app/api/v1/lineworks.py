"""
LINE Works OAuth API

Bot からの個別メッセージで通知するため、連携したユーザー自身の userId を送信先として保存する。
"""

from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote

import httpx
from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError

from memento import oauth_state
from memento.config import get_settings
from memento.constants import MessagingProvider
from memento.logging import get_logger, log_audit_event
from memento.messaging import MessagingError, lineworks
from memento.repositories import integrations
from api.app.deps.auth import CurrentUser, get_optional_user
from api.app.deps.db import get_db_connection
from api.app.limiter import limiter
from api.app.responses import error_response

router = APIRouter(prefix="/lineworks", tags=["lineworks"])
logger = get_logger(__name__)

PROVIDER = MessagingProvider.LINEWORKS.value


def _settings_redirect(query: str) -> RedirectResponse:
    return RedirectResponse(f"{get_settings().SITE_URL}/settings?lineworks={query}")


@router.get("/authorize")
async def authorize(user: Optional[CurrentUser] = Depends(get_optional_user)):
    """LINE Works 認可画面へリダイレクト"""
    if user is None:
        return error_response(401, "Unauthorized")

    settings = get_settings()
    if not settings.LINEWORKS_CLIENT_ID or not settings.LINEWORKS_CLIENT_SECRET:
        return error_response(500, "LINE Works configuration missing")

    state = oauth_state.build_state(user.user_id, settings.LINEWORKS_CLIENT_SECRET)
    return RedirectResponse(lineworks.build_authorize_url(settings.LINEWORKS_CLIENT_ID, state))


@router.get("/callback")
@limiter.exempt
async def callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    conn=Depends(get_db_connection),
):
    """LINE Works OAuth コールバック"""
    if error == "access_denied":
        return _settings_redirect("cancelled")
    if not code or not state:
        return _settings_redirect("error&reason=missing_params")

    secret = get_settings().LINEWORKS_CLIENT_SECRET
    user_id = oauth_state.verify_state(state, secret) if secret else None
    if not user_id:
        logger.warning("LINE Works OAuth state verification failed")
        return _settings_redirect("error&reason=invalid_state")

    try:
        tokens = lineworks.exchange_code(code)
    except MessagingError as e:
        logger.error("LINE Works token exchange failed", user_id=user_id, error=str(e))
        return _settings_redirect(f"error&reason={quote(str(e))}")
    except httpx.HTTPError as e:
        logger.error("LINE Works token request failed", user_id=user_id, error=type(e).__name__)
        return _settings_redirect("error&reason=token_exchange_failed")

    try:
        works_user = lineworks.fetch_current_user(tokens.access_token)
    except (MessagingError, httpx.HTTPError) as e:
        logger.error("LINE Works user lookup failed", user_id=user_id, error=str(e))
        return _settings_redirect("error&reason=user_info_failed")

    try:
        integrations.upsert_integration(conn, user_id, PROVIDER, {
            "api_token": tokens.access_token,
            "webhook_url": None,
            "room_id": works_user["userId"],
            "display_name": f"LINE Works ({works_user['userName']})",
            "enabled": True,
            "metadata": {
                "refresh_token": tokens.refresh_token,
                "scope": tokens.scope,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
        })
    except SQLAlchemyError as e:
        logger.error("Failed to save LINE Works integration", user_id=user_id, error=type(e).__name__)
        return _settings_redirect("error&reason=db_error_upsert")

    log_audit_event(
        logger=logger,
        action="connect",
        resource_type="messaging_integration",
        resource_id=PROVIDER,
        user_id=user_id,
    )
    return _settings_redirect("connected&v=1")
