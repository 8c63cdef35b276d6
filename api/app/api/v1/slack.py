"""
Slack OAuth API

Incoming Webhook の OAuth v2 でチャンネルを選んでもらい、Webhook URLを保存する。
"""

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
from memento.messaging import MessagingError, slack
from memento.repositories import integrations
from api.app.deps.auth import CurrentUser, get_optional_user
from api.app.deps.db import get_db_connection
from api.app.limiter import limiter
from api.app.responses import error_response

router = APIRouter(prefix="/slack", tags=["slack"])
logger = get_logger(__name__)

PROVIDER = MessagingProvider.SLACK.value


def _settings_redirect(query: str) -> RedirectResponse:
    return RedirectResponse(f"{get_settings().SITE_URL}/settings?slack={query}")


@router.get("/authorize")
async def authorize(user: Optional[CurrentUser] = Depends(get_optional_user)):
    """Slack 認可画面へリダイレクト"""
    settings = get_settings()
    if not settings.SLACK_CLIENT_ID:
        return error_response(500, "SLACK_CLIENT_ID が設定されていません")
    if not settings.SLACK_CLIENT_SECRET:
        return error_response(500, "SLACK_CLIENT_SECRET が設定されていません")

    if user is None:
        return RedirectResponse(f"{settings.APP_URL}/login?error=not_authenticated")

    state = oauth_state.build_state(user.user_id, settings.SLACK_CLIENT_SECRET)
    return RedirectResponse(slack.build_authorize_url(settings.SLACK_CLIENT_ID, state))


@router.get("/callback")
@limiter.exempt
async def callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    conn=Depends(get_db_connection),
):
    """Slack OAuth コールバック"""
    if error == "access_denied":
        return _settings_redirect("cancelled")
    if not code or not state:
        return _settings_redirect("error&reason=missing_params")

    secret = get_settings().SLACK_CLIENT_SECRET
    user_id = oauth_state.verify_state(state, secret) if secret else None
    if not user_id:
        logger.warning("Slack OAuth state verification failed")
        return _settings_redirect("error&reason=invalid_state")

    try:
        token_data = slack.exchange_code(code)
    except MessagingError as e:
        logger.error("Slack token exchange failed", user_id=user_id, error=str(e))
        return _settings_redirect(f"error&reason={quote(str(e))}")
    except httpx.HTTPError as e:
        logger.error("Slack token request failed", user_id=user_id, error=type(e).__name__)
        return _settings_redirect("error&reason=token_exchange_failed")

    incoming_webhook = token_data.get("incoming_webhook") or {}
    webhook_url = incoming_webhook.get("url")
    channel_name = incoming_webhook.get("channel")
    team_name = (token_data.get("team") or {}).get("name")

    if not webhook_url:
        return _settings_redirect("error&reason=no_webhook")

    try:
        integrations.upsert_integration(conn, user_id, PROVIDER, {
            "webhook_url": webhook_url,
            "api_token": None,
            "room_id": None,
            "display_name": slack.build_display_name(team_name, channel_name),
            "enabled": True,
            "metadata": {
                "team_name": team_name,
                "channel_name": channel_name,
                "access_token": token_data.get("access_token"),
            },
        })
    except SQLAlchemyError as e:
        logger.error("Failed to save Slack integration", user_id=user_id, error=type(e).__name__)
        return _settings_redirect("error&reason=db_error_upsert")

    log_audit_event(
        logger=logger,
        action="connect",
        resource_type="messaging_integration",
        resource_id=PROVIDER,
        user_id=user_id,
        details={"channel": channel_name},
    )
    return _settings_redirect(f"connected&channel={quote(channel_name or '')}")
