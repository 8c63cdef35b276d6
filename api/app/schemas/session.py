"""
Session Schemas

1on1セッション・マインドマップ・文字起こし用のPydanticスキーマ
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from memento.constants import DEFAULT_THEME_LABEL


# =============================================================================
# 共通
# =============================================================================


class TranscriptItem(BaseModel):
    """文字起こしの1発言"""

    speaker: str = Field(..., description="話者（manager / subordinate）")
    text: str = Field(..., description="発言内容")
    timestamp: Optional[str] = Field(None, description="発言時刻（HH:MM）")


class AgendaItem(BaseModel):
    """アジェンダ項目"""

    id: str = Field(..., description="アジェンダID")
    text: str = Field(..., description="内容")
    completed: bool = Field(False, description="完了フラグ")


class NoteItem(BaseModel):
    """セッション中のメモ"""

    id: str = Field(..., description="メモID")
    content: str = Field(..., description="内容")
    timestamp: Optional[str] = Field(None, description="記録時刻")


# =============================================================================
# リクエストスキーマ
# =============================================================================


class SessionCreateRequest(BaseModel):
    """セッション作成リクエスト"""

    subordinateId: str = Field(..., description="部下ID")
    date: Optional[str] = Field(None, description="実施日時（ISO 8601、省略時は現在時刻）")
    mode: Literal["face-to-face", "web"] = Field("face-to-face", description="実施形態")
    theme: str = Field(DEFAULT_THEME_LABEL, description="1on1テーマ")


class SessionUpdateRequest(BaseModel):
    """
    セッション部分更新リクエスト

    送信されたフィールドのみ更新する（model_dump(exclude_unset=True)）。
    """

    status: Optional[Literal["scheduled", "live", "completed"]] = Field(None, description="状態")
    summary: Optional[str] = Field(None, description="要約")
    transcript: Optional[List[TranscriptItem]] = Field(None, description="文字起こし")
    mindMapData: Optional[Dict[str, Any]] = Field(None, description="マインドマップ")
    agendaItems: Optional[List[AgendaItem]] = Field(None, description="アジェンダ")
    notes: Optional[List[NoteItem]] = Field(None, description="メモ")
    nextSessionDate: Optional[str] = Field(None, description="次回セッション日時")
    nextSessionDurationMinutes: Optional[int] = Field(None, description="次回セッションの所要時間（分）")
    lineReminderScheduled: Optional[bool] = Field(None, description="LINEリマインダー送信済み")
    lineReminderSentAt: Optional[str] = Field(None, description="LINEリマインダー送信日時")


class SessionCompleteRequest(BaseModel):
    """セッション終了リクエスト（省略した項目は保存済みの値を使う）"""

    transcript: Optional[List[TranscriptItem]] = Field(None, description="文字起こし")
    mindMapData: Optional[Dict[str, Any]] = Field(None, description="マインドマップ")
    notes: Optional[List[NoteItem]] = Field(None, description="メモ")


class ScheduleNextSessionRequest(BaseModel):
    """次回セッション予約リクエスト"""

    startTime: datetime = Field(..., description="開始日時")
    durationMinutes: Literal[30, 45, 60, 90] = Field(60, description="所要時間（分）")


class MindMapUpdateRequest(BaseModel):
    """マインドマップ保存リクエスト（React Flow 形式）"""

    nodes: List[Dict[str, Any]] = Field(default_factory=list, description="ノード")
    edges: List[Dict[str, Any]] = Field(default_factory=list, description="エッジ")
    actionItems: Optional[List[str]] = Field(None, description="アクションアイテム")


class MindMapOperation(BaseModel):
    """マインドマップ編集操作"""

    op: Literal[
        "add_child", "add_sibling", "rename", "delete",
        "toggle", "select", "navigate", "layout", "undo", "redo",
    ] = Field(..., description="操作種別")
    nodeId: Optional[str] = Field(None, description="対象ノードID")
    label: Optional[str] = Field(None, description="新しいラベル（rename）")
    expand: Optional[bool] = Field(None, description="展開状態（toggle、省略時は反転）")
    direction: Optional[Literal["parent", "child", "prev", "next"]] = Field(
        None, description="選択の移動方向（navigate）",
    )


class MindMapOpsRequest(BaseModel):
    """マインドマップ編集操作の一括適用リクエスト"""

    operations: List[MindMapOperation] = Field(..., min_length=1, description="順に適用する操作")


class TranscriptionSegmentsRequest(BaseModel):
    """Deepgram 結果の話者ロール変換リクエスト"""

    results: List[Dict[str, Any]] = Field(..., description="Deepgram の Results メッセージ")
    speakerMapping: Dict[str, str] = Field(
        default_factory=dict,
        description="これまでの話者番号→ロール対応（前回レスポンスの値）",
    )


# =============================================================================
# レスポンススキーマ
# =============================================================================


class TranscriptionSegmentsResponse(BaseModel):
    """話者ロール変換レスポンス"""

    items: List[TranscriptItem] = Field(..., description="確定した発言")
    speakerMapping: Dict[str, str] = Field(..., description="更新後の話者番号→ロール対応")
