"""
PDF Analyze API

評価シート・性格診断PDFから部下の特性を抽出する
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from memento import coaching
from memento.logging import get_logger
from api.app.deps.auth import CurrentUser, get_current_user
from api.app.responses import error_response

router = APIRouter(prefix="/pdf", tags=["pdf"])
logger = get_logger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


@router.post("/analyze")
async def analyze_pdf(
    file: Optional[UploadFile] = File(None),
    subordinateId: Optional[str] = Form(None),
    user: CurrentUser = Depends(get_current_user),
):
    """
    PDFから特性を抽出

    - **file**: PDFファイル（multipart/form-data）
    - **subordinateId**: 対象の部下ID（任意）

    失敗時も既定の特性（traits）を返す。
    """
    if not coaching.is_configured():
        return error_response(
            500, "Gemini API Key not configured",
            traits=list(coaching.FALLBACK_TRAITS),
        )

    if file is None:
        return error_response(400, "No file provided")
    if file.content_type != PDF_CONTENT_TYPE:
        return error_response(400, "File must be a PDF")

    try:
        pdf_bytes = await file.read()
        result = coaching.extract_traits(pdf_bytes)
    except coaching.CoachingError as e:
        logger.error(
            "PDF analysis failed",
            user_id=user.user_id,
            subordinate_id=subordinateId,
            error=str(e),
        )
        return error_response(
            500, "Failed to analyze PDF",
            traits=list(coaching.FALLBACK_TRAITS),
        )

    logger.info(
        "PDF analyzed",
        user_id=user.user_id,
        subordinate_id=subordinateId,
        trait_count=len(result["traits"]),
    )
    return result
