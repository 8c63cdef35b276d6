"""
Transcription API

Deepgram のストリーミング結果（話者分離付き）を 1on1 の発言に変換する。
話者番号とロールの対応はクライアントが保持し、毎回送り返す。
"""

from fastapi import APIRouter, Depends, HTTPException

from memento.transcription import SpeakerRoleMapper
from api.app.deps.auth import CurrentUser, get_current_user
from api.app.schemas.session import TranscriptionSegmentsRequest, TranscriptionSegmentsResponse

router = APIRouter(prefix="/transcription", tags=["transcription"])


@router.post("/segments", response_model=TranscriptionSegmentsResponse)
async def map_segments(
    data: TranscriptionSegmentsRequest,
    user: CurrentUser = Depends(get_current_user),
):
    """
    確定した結果だけを manager / subordinate の発言に変換

    - **results**: Deepgram の Results メッセージ
    - **speakerMapping**: これまでの話者番号→ロール対応（"0": "manager" など）
    """
    try:
        mapping = {int(speaker): role for speaker, role in data.speakerMapping.items()}
    except ValueError:
        raise HTTPException(status_code=400, detail="speakerMapping keys must be speaker numbers")

    mapper = SpeakerRoleMapper(mapping)
    items = mapper.map_results(data.results)
    return {
        "items": items,
        "speakerMapping": {str(speaker): role for speaker, role in mapper.mapping.items()},
    }
