"""
Pydantic Schemas for Memento 1on1 API

セッション・部下・組織・連携・AIコーチング用スキーマ
"""

from api.app.schemas.calendar import (
    AccessTokenResponse,
    CalendarScheduleRequest,
)

from api.app.schemas.coaching import (
    AdviceResponse,
    AnswerResponse,
    ChatAnalyzeRequest,
    ChatAskRequest,
    ChatSummarizeRequest,
)

from api.app.schemas.integration import (
    ChatworkSelectRoomRequest,
    LineConnectRequest,
    LineDisconnectRequest,
    LineSendRequest,
    MessagingConnectRequest,
    MessagingDisconnectRequest,
    MessagingSendRequest,
)

from api.app.schemas.organization import (
    OrganizationCreateRequest,
    OrganizationJoinRequest,
    OrganizationJoinResponse,
    OrganizationResponse,
    TagCreateRequest,
)

from api.app.schemas.session import (
    AgendaItem,
    MindMapOperation,
    MindMapOpsRequest,
    MindMapUpdateRequest,
    NoteItem,
    ScheduleNextSessionRequest,
    SessionCompleteRequest,
    SessionCreateRequest,
    SessionUpdateRequest,
    TranscriptionSegmentsRequest,
    TranscriptionSegmentsResponse,
    TranscriptItem,
)

from api.app.schemas.subordinate import (
    SubordinateCreateRequest,
    SubordinateUpdateRequest,
)

__all__ = [
    # Calendar schemas
    "AccessTokenResponse",
    "CalendarScheduleRequest",
    # Coaching schemas
    "AdviceResponse",
    "AnswerResponse",
    "ChatAnalyzeRequest",
    "ChatAskRequest",
    "ChatSummarizeRequest",
    # Integration schemas
    "ChatworkSelectRoomRequest",
    "LineConnectRequest",
    "LineDisconnectRequest",
    "LineSendRequest",
    "MessagingConnectRequest",
    "MessagingDisconnectRequest",
    "MessagingSendRequest",
    # Organization schemas
    "OrganizationCreateRequest",
    "OrganizationJoinRequest",
    "OrganizationJoinResponse",
    "OrganizationResponse",
    "TagCreateRequest",
    # Session schemas
    "AgendaItem",
    "MindMapOperation",
    "MindMapOpsRequest",
    "MindMapUpdateRequest",
    "NoteItem",
    "ScheduleNextSessionRequest",
    "SessionCompleteRequest",
    "SessionCreateRequest",
    "SessionUpdateRequest",
    "TranscriptionSegmentsRequest",
    "TranscriptionSegmentsResponse",
    "TranscriptItem",
    # Subordinate schemas
    "SubordinateCreateRequest",
    "SubordinateUpdateRequest",
]
