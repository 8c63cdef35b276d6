"""
Chat API

1on1中のAIコーチング（リアルタイム助言・質問への回答・セッション要約）
"""

from fastapi import APIRouter, Depends

from memento import coaching
from memento.constants import RECENT_TRANSCRIPT_LIMIT
from memento.logging import get_logger
from api.app.deps.auth import CurrentUser, get_current_user
from api.app.responses import error_response
from api.app.schemas.coaching import (
    AdviceResponse,
    AnswerResponse,
    ChatAnalyzeRequest,
    ChatAskRequest,
    ChatSummarizeRequest,
)

router = APIRouter(prefix="/chat", tags=["chat"])
logger = get_logger(__name__)

INVALID_TRANSCRIPT = "No valid transcript provided"
INVALID_QUESTION = "No valid question provided"
INTERNAL_ERROR = "Internal Server Error"


@router.post("/analyze", response_model=AdviceResponse)
async def analyze(
    data: ChatAnalyzeRequest,
    user: CurrentUser = Depends(get_current_user),
):
    """
    リアルタイム助言

    直近の発言からマネージャーへの助言を1つ返す。
    """
    if not data.transcript or not isinstance(data.transcript, list):
        return error_response(400, INVALID_TRANSCRIPT)

    try:
        advice = coaching.analyze(
            data.transcript[-RECENT_TRANSCRIPT_LIMIT:],
            theme=data.theme,
            traits=data.subordinateTraits,
        )
    except coaching.CoachingError as e:
        logger.error("Advice generation failed", user_id=user.user_id, error=str(e))
        return error_response(500, INTERNAL_ERROR)

    return AdviceResponse(advice=advice)


@router.post("/ask", response_model=AnswerResponse)
async def ask(
    data: ChatAskRequest,
    user: CurrentUser = Depends(get_current_user),
):
    """マネージャーの質問に回答"""
    if not data.transcript or not isinstance(data.transcript, list):
        return error_response(400, INVALID_TRANSCRIPT)
    if not data.question or not isinstance(data.question, str):
        return error_response(400, INVALID_QUESTION)

    try:
        answer = coaching.ask(
            data.transcript,
            data.question,
            theme=data.theme,
            traits=data.subordinateTraits,
        )
    except coaching.CoachingError as e:
        logger.error("Answer generation failed", user_id=user.user_id, error=str(e))
        return error_response(500, INTERNAL_ERROR)

    return AnswerResponse(answer=answer)


@router.post("/summarize")
async def summarize(
    data: ChatSummarizeRequest,
    user: CurrentUser = Depends(get_current_user),
):
    """
    セッション要約

    Returns:
        {"summary": str, "actionItems": [str, ...]}
    """
    if not data.transcript or not isinstance(data.transcript, list):
        return error_response(400, INVALID_TRANSCRIPT)

    try:
        return coaching.summarize(data.transcript, theme=data.theme)
    except coaching.CoachingError as e:
        logger.error("Summary generation failed", user_id=user.user_id, error=str(e))
        return error_response(500, INTERNAL_ERROR)
