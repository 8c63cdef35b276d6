"""
Sessions API

1on1セッションの作成・取得・更新・終了・次回予約と、
セッションに紐づくマインドマップの取得・保存・編集操作
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from memento import session_service
from memento.google_calendar import GoogleCalendarError
from memento.logging import get_logger, log_audit_event
from memento.mindmap import MindMap, MindMapEditor, initial_mind_map
from memento.repositories import sessions, subordinates
from api.app.deps.auth import CurrentUser, get_current_user
from api.app.deps.db import get_user_db_connection
from api.app.responses import error_response
from api.app.schemas.session import (
    MindMapOpsRequest,
    MindMapUpdateRequest,
    ScheduleNextSessionRequest,
    SessionCompleteRequest,
    SessionCreateRequest,
    SessionUpdateRequest,
)

router = APIRouter(prefix="/sessions", tags=["sessions"])
logger = get_logger(__name__)

NOT_FOUND = "Session not found"
NODE_ID_REQUIRED_OPS = {"rename", "toggle", "select"}


def _get_session_or_404(conn, session_id: str, user: CurrentUser) -> dict:
    """ログインユーザーのセッションを取得（他ユーザーのものは 404）"""
    session = sessions.get_session(conn, session_id)
    if session is None or session.get("userId") != user.user_id:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return session


def _current_mind_map(session: dict) -> MindMap:
    """保存済みマインドマップ（ノードがなければテーマから初期化）"""
    data = session.get("mindMapData") or {}
    if not data.get("nodes"):
        return initial_mind_map(session.get("theme"))
    return MindMap.from_dict(data)


# =============================================================================
# セッション
# =============================================================================

@router.get("")
async def list_sessions(
    subordinateId: Optional[str] = Query(None, description="部下IDで絞り込み"),
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """ログインユーザーのセッション一覧（日付の新しい順）"""
    return {"sessions": sessions.list_sessions(conn, user_id=user.user_id, subordinate_id=subordinateId)}


@router.post("", status_code=201)
async def create_session(
    data: SessionCreateRequest,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """
    セッションを開始

    作成直後から live 状態。date 省略時は現在時刻。
    部下はログインユーザーのものに限る。
    """
    subordinate = subordinates.get_subordinate(conn, data.subordinateId)
    if subordinate is None or subordinate.get("userId") != user.user_id:
        raise HTTPException(status_code=404, detail="Subordinate not found")

    session = sessions.create_session(
        conn,
        subordinate_id=data.subordinateId,
        date=data.date or datetime.now(timezone.utc).isoformat(),
        mode=data.mode,
        theme=data.theme,
        user_id=user.user_id,
    )
    log_audit_event(
        logger=logger,
        action="create",
        resource_type="session",
        resource_id=session["id"],
        user_id=user.user_id,
        details={"mode": data.mode},
    )
    return session


@router.get("/{session_id}")
async def get_session(
    session_id: str,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    return _get_session_or_404(conn, session_id, user)


@router.patch("/{session_id}")
async def update_session(
    session_id: str,
    data: SessionUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """指定されたフィールドのみ更新"""
    _get_session_or_404(conn, session_id, user)
    updated = sessions.update_session(conn, session_id, data.model_dump(exclude_unset=True))
    if updated is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return updated


@router.post("/{session_id}/complete")
async def complete_session(
    session_id: str,
    data: SessionCompleteRequest,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """
    セッションを終了

    文字起こしをAIで要約し（失敗時は既定の要約）、completed として保存する。
    """
    payload = data.model_dump(exclude_unset=True)
    completed = session_service.complete_session(
        conn,
        session_id,
        transcript=payload.get("transcript"),
        mind_map=payload.get("mindMapData"),
        notes=payload.get("notes"),
        user_id=user.user_id,
    )
    if completed is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    log_audit_event(
        logger=logger,
        action="complete",
        resource_type="session",
        resource_id=session_id,
        user_id=user.user_id,
    )
    return completed


@router.post("/{session_id}/schedule")
async def schedule_next_session(
    session_id: str,
    data: ScheduleNextSessionRequest,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """次回セッションを Google Calendar に登録し、リマインダーを再設定"""
    try:
        result = session_service.schedule_next_session(
            conn,
            session_id,
            user_id=user.user_id,
            start=data.startTime,
            duration_minutes=data.durationMinutes,
            user_email=user.email,
        )
    except GoogleCalendarError as e:
        logger.error("Failed to schedule next session", session_id=session_id, error=str(e))
        return error_response(e.status_code, "Googleカレンダーイベントの作成に失敗しました", details=str(e))

    if result is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return result


# =============================================================================
# マインドマップ
# =============================================================================

@router.get("/{session_id}/mindmap")
async def get_mind_map(
    session_id: str,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """マインドマップを取得（未作成ならテーマから初期化したもの）"""
    session = _get_session_or_404(conn, session_id, user)
    return _current_mind_map(session).to_dict()


@router.put("/{session_id}/mindmap")
async def save_mind_map(
    session_id: str,
    data: MindMapUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    session = _get_session_or_404(conn, session_id, user)
    mind_map = MindMap.from_dict({
        "nodes": data.nodes,
        "edges": data.edges,
        "actionItems": data.actionItems if data.actionItems is not None
        else (session.get("mindMapData") or {}).get("actionItems"),
    })
    updated = sessions.update_session(conn, session_id, {"mindMapData": mind_map.to_dict()})
    return updated["mindMapData"] if updated else mind_map.to_dict()


@router.post("/{session_id}/mindmap/ops")
async def apply_mind_map_operations(
    session_id: str,
    data: MindMapOpsRequest,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """
    マインドマップに編集操作を順に適用して保存

    undo / redo はこのリクエスト内の操作履歴に対して働く。
    """
    session = _get_session_or_404(conn, session_id, user)
    editor = MindMapEditor(_current_mind_map(session))

    results = []
    for operation in data.operations:
        if operation.op in NODE_ID_REQUIRED_OPS and not operation.nodeId:
            raise HTTPException(status_code=400, detail=f"nodeId is required for {operation.op}")
        if operation.op == "navigate" and not operation.direction:
            raise HTTPException(status_code=400, detail="direction is required for navigate")
        try:
            results.append(editor.apply(operation.model_dump()))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    mind_map = editor.mind_map.to_dict()
    sessions.update_session(conn, session_id, {"mindMapData": mind_map})
    return {"mindMapData": mind_map, "focusId": editor.focus_id, "results": results}
