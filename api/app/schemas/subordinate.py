"""
Subordinate Schemas

部下管理用のPydanticスキーマ
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class SubordinateCreateRequest(BaseModel):
    """部下作成リクエスト"""

    name: str = Field(..., min_length=1, description="氏名")
    traits: List[str] = Field(default_factory=list, description="特性")
    tagIds: List[str] = Field(default_factory=list, description="タグID")


class SubordinateUpdateRequest(BaseModel):
    """
    部下更新リクエスト

    tagIds を指定した場合はタグを置き換える。
    """

    name: Optional[str] = Field(None, description="氏名")
    traits: Optional[List[str]] = Field(None, description="特性")
    lastOneOnOne: Optional[str] = Field(None, description="最終1on1日時")
    tagIds: Optional[List[str]] = Field(None, description="タグID")
