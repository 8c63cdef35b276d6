"""
組織アナリティクス

タグ別の感情スコア・リスク人数、月次の感情スコア推移、
ダッシュボードの集計値を組織単位で提供する。

集計はデータベース関数（get_org_tag_analytics / get_org_sentiment_trend）で行う。
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import text

from memento.logging import get_logger
from memento.repositories import organizations, profiles
from memento.repositories.base import rows_to_dicts

logger = get_logger(__name__)

RECENT_MONTHS = 3
TREND_RISING = "上昇傾向"
TREND_FLAT_OR_FALLING = "横ばいまたは下降傾向"


def _to_float(value: Any) -> float:
    return float(value) if value is not None else 0.0


def _to_int(value: Any) -> int:
    return int(value) if value is not None else 0


def get_tag_analytics(conn, organization_id: str) -> List[Dict[str, Any]]:
    """
    タグ別の集計

    Returns:
        [{"tag_id", "tag_name", "tag_color", "member_count", "avg_sentiment", "risk_count"}, ...]
    """
    result = conn.execute(
        text("SELECT * FROM get_org_tag_analytics(:p_org_id)"),
        {"p_org_id": organization_id},
    )
    return [
        {
            "tag_id": str(row["tag_id"]),
            "tag_name": row.get("tag_name"),
            "tag_color": row.get("tag_color"),
            "member_count": _to_int(row.get("member_count")),
            "avg_sentiment": _to_float(row.get("avg_sentiment")),
            "risk_count": _to_int(row.get("risk_count")),
        }
        for row in rows_to_dicts(result.fetchall())
    ]


def get_sentiment_trend(conn, organization_id: str) -> List[Dict[str, Any]]:
    """
    月次の感情スコア推移（古い月から順）

    Returns:
        [{"month", "avg_sentiment", "session_count"}, ...]
    """
    result = conn.execute(
        text("SELECT * FROM get_org_sentiment_trend(:p_org_id)"),
        {"p_org_id": organization_id},
    )
    return [
        {
            "month": row.get("month"),
            "avg_sentiment": _to_float(row.get("avg_sentiment")),
            "session_count": _to_int(row.get("session_count")),
        }
        for row in rows_to_dicts(result.fetchall())
    ]


def tag_chart_data(tag_stats: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """所属メンバーがいるタグのみ"""
    return [stat for stat in tag_stats if stat["member_count"] > 0]


def trend_insights(trend: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    推移の所見

    直近3ヶ月の実施回数と、最新月が前月より上がったかどうか。
    """
    recent_sessions = sum(month.get("session_count") or 0 for month in trend[-RECENT_MONTHS:])
    rising = len(trend) > 1 and trend[-1]["avg_sentiment"] > trend[-2]["avg_sentiment"]
    return {
        "recentSessionCount": recent_sessions,
        "sentimentDirection": TREND_RISING if rising else TREND_FLAT_OR_FALLING,
    }


def get_dashboard_summary(conn, organization_id: str) -> Dict[str, Any]:
    """ダッシュボードの集計値"""
    tag_stats = get_tag_analytics(conn, organization_id)
    trend = get_sentiment_trend(conn, organization_id)

    result = conn.execute(
        text("""
            SELECT
                COUNT(DISTINCT sub.id) AS member_count,
                COUNT(s.id) AS session_count,
                COUNT(s.id) FILTER (WHERE s.status = 'completed') AS completed_session_count
            FROM profiles p
            JOIN subordinates sub ON sub.user_id = p.id
            LEFT JOIN sessions s ON s.subordinate_id = sub.id
            WHERE p.organization_id = :org_id
        """),
        {"org_id": organization_id},
    )
    counts = result.fetchone()
    member_count = _to_int(counts[0]) if counts else 0
    session_count = _to_int(counts[1]) if counts else 0
    completed_count = _to_int(counts[2]) if counts else 0

    return {
        "memberCount": member_count,
        "sessionCount": session_count,
        "completedSessionCount": completed_count,
        "riskCount": sum(stat["risk_count"] for stat in tag_stats),
        "tagCount": len(tag_stats),
        **trend_insights(trend),
    }


def join_organization(conn, user_id: str, code: str) -> Optional[Dict[str, Any]]:
    """
    招待コードで組織に参加

    Returns:
        参加した組織 {"id", "name"}。コードに一致する組織がなければ None

    Raises:
        OrganizationJoinError: プロフィールの更新に失敗した場合
    """
    organization = organizations.find_by_code(conn, code)
    if organization is None:
        return None

    if not profiles.set_organization_id(conn, user_id, organization["id"]):
        logger.error("Error updating profile", user_id=user_id)
        raise OrganizationJoinError("Failed to join organization")

    logger.info("User joined organization", user_id=user_id, organization_id=organization["id"])
    return organization


class OrganizationJoinError(Exception):
    """組織参加エラー"""
    pass
