"""
Media Token API

ライブ文字起こし（Deepgram）とビデオ通話（LiveKit）の
クライアント用トークンを発行する。
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from memento import deepgram, livekit
from memento.logging import get_logger
from api.app.deps.auth import CurrentUser, get_current_user
from api.app.responses import error_response

router = APIRouter(tags=["media"])
logger = get_logger(__name__)


@router.get("/deepgram/token")
async def deepgram_token(user: CurrentUser = Depends(get_current_user)):
    """
    Deepgram 一時トークン

    APIキー未設定時は mockMode=true を返し、クライアントはモック文字起こしに切り替える。
    接続オプション（options）も併せて返す。
    """
    if not deepgram.is_configured():
        return {"error": "Deepgram API Key not configured", "mockMode": True}

    try:
        token = deepgram.create_temporary_token()
    except deepgram.DeepgramTimeoutError:
        return error_response(500, deepgram.TIMEOUT_MESSAGE, mockMode=True)
    except deepgram.DeepgramError as e:
        logger.error("Deepgram token error", user_id=user.user_id, error=str(e))
        return error_response(500, deepgram.FAILURE_MESSAGE, mockMode=True)

    return {**token, "options": deepgram.LIVE_OPTIONS}


@router.get("/livekit/token")
async def livekit_token(
    room: Optional[str] = Query(None, description="ルーム名"),
    username: Optional[str] = Query(None, description="参加者名"),
    user: CurrentUser = Depends(get_current_user),
):
    """
    LiveKit ルーム参加トークン

    環境変数が揃っていない場合はモックトークンを返す。
    """
    if not room or not username:
        return error_response(400, 'Missing "room" or "username"')

    if not livekit.is_configured():
        logger.warning("LiveKit env vars not set. Using mock token.")
        return {"token": livekit.MOCK_TOKEN, "warning": livekit.MOCK_WARNING}

    return {"token": livekit.create_access_token(room, username)}
