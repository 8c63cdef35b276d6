"""
Organization Schemas

組織・タグ用のPydanticスキーマ
"""

from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# リクエストスキーマ
# =============================================================================


class OrganizationCreateRequest(BaseModel):
    """組織作成リクエスト（作成者は自動的に所属する）"""

    name: str = Field(..., min_length=1, description="組織名")
    code: str = Field(..., min_length=1, description="招待コード")


class OrganizationJoinRequest(BaseModel):
    """組織参加リクエスト"""

    code: Optional[str] = Field(None, description="招待コード")


class TagCreateRequest(BaseModel):
    """タグ作成リクエスト"""

    name: str = Field(..., min_length=1, description="タグ名")
    color: Optional[str] = Field(None, description="表示色（省略時は geekblue）")


# =============================================================================
# レスポンススキーマ
# =============================================================================


class OrganizationResponse(BaseModel):
    """組織"""

    id: str = Field(..., description="組織ID")
    name: str = Field(..., description="組織名")
    code: Optional[str] = Field(None, description="招待コード")


class OrganizationJoinResponse(BaseModel):
    """組織参加レスポンス"""

    success: bool = Field(True, description="成功フラグ")
    organization: OrganizationResponse = Field(..., description="参加した組織")
