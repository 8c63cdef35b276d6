"""
Coaching Schemas

AIコーチング（助言・質問・要約）用のPydanticスキーマ

transcript は配列でなければ 400 を返すため、型は Any で受ける。
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class ChatAnalyzeRequest(BaseModel):
    """リアルタイム助言リクエスト"""

    transcript: Optional[Any] = Field(None, description="直近の文字起こし（TranscriptItem の配列）")
    theme: Optional[str] = Field(None, description="1on1テーマ")
    subordinateTraits: Optional[List[str]] = Field(None, description="部下の特性")


class ChatAskRequest(ChatAnalyzeRequest):
    """マネージャーの質問リクエスト"""

    question: Optional[Any] = Field(None, description="質問")


class ChatSummarizeRequest(BaseModel):
    """要約リクエスト"""

    transcript: Optional[Any] = Field(None, description="文字起こし（TranscriptItem の配列）")
    theme: Optional[str] = Field(None, description="1on1テーマ")


class AdviceResponse(BaseModel):
    """助言レスポンス"""

    advice: str = Field(..., description="助言")
    status: str = Field("success", description="処理結果")


class AnswerResponse(BaseModel):
    """回答レスポンス"""

    answer: str = Field(..., description="回答")
    status: str = Field("success", description="処理結果")
