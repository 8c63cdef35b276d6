"""
Calendar Schemas

Google Calendar 連携用のPydanticスキーマ
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CalendarScheduleRequest(BaseModel):
    """
    次回セッションのカレンダー登録リクエスト

    sessionId と startTime がなければ 400 を返す。
    """

    sessionId: Optional[str] = Field(None, description="前回セッションID")
    startTime: Optional[datetime] = Field(None, description="開始日時")
    durationMinutes: int = Field(60, description="所要時間（30 / 45 / 60 / 90 分）")


class AccessTokenResponse(BaseModel):
    """Google アクセストークン"""

    accessToken: str = Field(..., description="有効なアクセストークン")
