"""
Analytics API

所属組織のタグ別分析・感情スコア推移・ダッシュボード集計
"""

from fastapi import APIRouter, Depends

from memento import analytics
from api.app.api.v1.organizations import require_organization_id
from api.app.deps.auth import CurrentUser, get_current_user
from api.app.deps.db import get_user_db_connection

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/tags")
async def tag_analytics(
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """
    タグ別の人数・平均感情スコア・リスク人数

    chartData はグラフ表示用（所属メンバーがいるタグのみ）。
    """
    stats = analytics.get_tag_analytics(conn, require_organization_id(conn, user.user_id))
    return {"tags": stats, "chartData": analytics.tag_chart_data(stats)}


@router.get("/trend")
async def sentiment_trend(
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    """月次の感情スコア推移と傾向"""
    trend = analytics.get_sentiment_trend(conn, require_organization_id(conn, user.user_id))
    return {"trend": trend, "insights": analytics.trend_insights(trend)}


@router.get("/summary")
async def dashboard_summary(
    user: CurrentUser = Depends(get_current_user),
    conn=Depends(get_user_db_connection),
):
    return analytics.get_dashboard_summary(conn, require_organization_id(conn, user.user_id))
