"""
Organizations API

組織の作成・招待コードでの参加と、組織単位のタグ管理
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from memento import analytics
from memento.logging import get_logger, log_audit_event
from memento.repositories import organizations, profiles, tags
from api.app.deps.auth import CurrentUser, get_current_user
from api.app.deps.db import get_user_db_connection
from api.app.responses import error_response
from api.app.schemas.organization import (
    OrganizationCreateRequest,
    OrganizationJoinRequest,
    OrganizationJoinResponse,
    OrganizationResponse,
    TagCreateRequest,
)

router = APIRouter(prefix="/organizations", tags=["organizations"])
logger = get_logger(__name__)

NO_ORGANIZATION = "Organization not found"


def require_organization_id(conn, user_id: str) -> str:
    """ログインユーザーの所属組織ID（未所属なら 404）"""
    organization_id = profiles.get_organization_id(conn, user_id)
    if not organization_id:
        raise HTTPException(status_code=404, detail=NO_ORGANIZATION)
    return organization_id


@router.post("", status_code=201, response_model=OrganizationResponse)
async def create_organization(
    data: OrganizationCreateRequest,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """
    組織を作成してログインユーザーを所属させる

    招待コードが重複している場合は 409 を返す。
    """
    try:
        organization = organizations.create_and_link(conn, data.name, data.code)
    except IntegrityError:
        return error_response(409, "Organization code already exists")
    except SQLAlchemyError as e:
        logger.error("Failed to create organization", user_id=user.user_id, error=type(e).__name__)
        return error_response(500, "Failed to create organization")

    log_audit_event(
        logger=logger,
        action="create",
        resource_type="organization",
        resource_id=organization.get("id"),
        user_id=user.user_id,
    )
    return organization


@router.post("/join", response_model=OrganizationJoinResponse)
async def join_organization(
    data: OrganizationJoinRequest,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """招待コードで組織に参加"""
    if not data.code:
        return error_response(400, "Organization code is required")

    try:
        organization = analytics.join_organization(conn, user.user_id, data.code)
    except analytics.OrganizationJoinError:
        return error_response(500, "Failed to join organization")

    if organization is None:
        return error_response(404, NO_ORGANIZATION)

    log_audit_event(
        logger=logger,
        action="join",
        resource_type="organization",
        resource_id=organization["id"],
        user_id=user.user_id,
    )
    return {"success": True, "organization": organization}


@router.get("/me", response_model=OrganizationResponse)
async def get_my_organization(
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """所属組織を取得"""
    organization = organizations.get_organization(conn, require_organization_id(conn, user.user_id))
    if organization is None:
        raise HTTPException(status_code=404, detail=NO_ORGANIZATION)
    return organization


# =============================================================================
# タグ
# =============================================================================

@router.get("/me/tags")
async def list_tags(
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    return {"tags": tags.list_tags(conn, require_organization_id(conn, user.user_id))}


@router.post("/me/tags", status_code=201)
async def create_tag(
    data: TagCreateRequest,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    organization_id = require_organization_id(conn, user.user_id)
    return tags.create_tag(conn, organization_id, data.name, data.color)


@router.delete("/me/tags/{tag_id}")
async def delete_tag(
    tag_id: str,
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    if not tags.delete_tag(conn, require_organization_id(conn, user.user_id), tag_id):
        raise HTTPException(status_code=404, detail="Tag not found")
    return {"success": True}
