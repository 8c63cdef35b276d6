"""
Subordinates API

部下（1on1 の相手）の一覧・作成・更新・削除
"""

from fastapi import APIRouter, Depends, HTTPException

from memento.logging import get_logger, log_audit_event
from memento.repositories import subordinates
from api.app.deps.auth import CurrentUser, get_current_user
from api.app.deps.db import get_user_db_connection
from api.app.schemas.subordinate import SubordinateCreateRequest, SubordinateUpdateRequest

router = APIRouter(prefix="/subordinates", tags=["subordinates"])
logger = get_logger(__name__)

NOT_FOUND = "Subordinate not found"


def _get_subordinate_or_404(conn, subordinate_id: str, user: CurrentUser) -> dict:
    subordinate = subordinates.get_subordinate(conn, subordinate_id)
    if subordinate is None or subordinate.get("userId") != user.user_id:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return subordinate


@router.get("")
async def list_subordinates(
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """ログインユーザーの部下一覧（新しい順、タグ付き）"""
    return {"subordinates": subordinates.list_subordinates(conn, user_id=user.user_id)}


@router.get("/{subordinate_id}")
async def get_subordinate(
    subordinate_id: str,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    return _get_subordinate_or_404(conn, subordinate_id, user)


@router.post("", status_code=201)
async def create_subordinate(
    data: SubordinateCreateRequest,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """部下を登録し、指定タグを紐付ける"""
    subordinate_id = subordinates.create_subordinate(
        conn,
        name=data.name,
        traits=data.traits,
        user_id=user.user_id,
        tag_ids=data.tagIds,
    )
    log_audit_event(
        logger=logger,
        action="create",
        resource_type="subordinate",
        resource_id=subordinate_id,
        user_id=user.user_id,
    )
    return subordinates.get_subordinate(conn, subordinate_id)


@router.patch("/{subordinate_id}")
async def update_subordinate(
    subordinate_id: str,
    data: SubordinateUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """
    部下を更新

    tagIds を指定した場合はタグの紐付けを置き換える。
    """
    _get_subordinate_or_404(conn, subordinate_id, user)

    subordinates.update_subordinate(conn, subordinate_id, data.model_dump(exclude_unset=True))
    if data.tagIds is not None:
        subordinates.set_subordinate_tags(conn, subordinate_id, data.tagIds)

    return subordinates.get_subordinate(conn, subordinate_id)


@router.delete("/{subordinate_id}")
async def delete_subordinate(
    subordinate_id: str,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    _get_subordinate_or_404(conn, subordinate_id, user)
    if not subordinates.delete_subordinate(conn, subordinate_id):
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    log_audit_event(
        logger=logger,
        action="delete",
        resource_type="subordinate",
        resource_id=subordinate_id,
        user_id=user.user_id,
    )
    return {"success": True}
