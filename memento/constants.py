"""
定数定義

1on1テーマ、通知タイプ、連携プロバイダーなど、
アプリケーション全体で共有する値を定義する。
"""

from enum import Enum


class SessionStatus(str, Enum):
    """セッションの状態"""
    SCHEDULED = "scheduled"
    LIVE = "live"
    COMPLETED = "completed"


class SessionMode(str, Enum):
    """セッションの実施形態"""
    FACE_TO_FACE = "face-to-face"
    WEB = "web"


class MessagingProvider(str, Enum):
    """メッセージング連携プロバイダー"""
    SLACK = "slack"
    CHATWORK = "chatwork"
    LINEWORKS = "lineworks"


class NotificationType(str, Enum):
    """LINE通知タイプ"""
    REMINDER = "reminder"
    SUMMARY = "summary"
    FOLLOW_UP = "follow_up"


class NotificationStatus(str, Enum):
    """通知ログの状態"""
    SENT = "sent"
    FAILED = "failed"


# 1on1テーマ（value → 表示ラベル）
THEME_OPTIONS = {
    "daily_tasks": "日々の業務やタスクの進め方について",
    "health": "コンディションや心身の健康について",
    "workplace_relationships": "職場や周囲の人との関わりについて",
    "career_growth": "将来のキャリアパスや成長について",
    "skill_development": "スキルアップや学びについて",
    "personal_matters": "プライベートな出来事や関心事について",
    "organizational_matters": "組織や会社全体に関することについて",
    "other": "その他、自由に話したいこと（前回の宿題等）",
}
OTHER_THEME_VALUE = "other"

DEFAULT_THEME_LABEL = "General Check-in"

# LINE通知のデフォルト
DEFAULT_NOTIFICATION_TYPES = [NotificationType.REMINDER.value]
DEFAULT_REMIND_BEFORE_MINUTES = 60

# 次回セッションの所要時間（分）
SESSION_DURATION_OPTIONS = (30, 45, 60, 90)

# タグのデフォルト色
DEFAULT_TAG_COLOR = "geekblue"

# リマインダー送信対象の時間窓（分）
REMINDER_WINDOW_START_MINUTES = 25
REMINDER_WINDOW_END_MINUTES = 75

# セッション終了時のフォールバック要約
DEFAULT_SESSION_SUMMARY = (
    "Automatic summary generated by AI based on the session transcript. "
    "The discussion focused on project delays and managing stakeholder expectations."
)
DEFAULT_ACTION_ITEMS = [
    "Schedule a follow-up meeting regarding the specs of Project A.",
    "Share the updated roadmap documentation.",
]

# AIアドバイス・質問に渡す直近の発言数
RECENT_TRANSCRIPT_LIMIT = 10
