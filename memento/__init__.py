"""
Memento 1on1 共通ライブラリ

このモジュールは以下を提供します:
- config: 環境変数・設定管理
- secrets: GCP Secret Manager
- db: Supabase Postgres 接続
- logging: 構造化ログ
- request_context: リクエストユーザーのコンテキスト管理
- repositories: Supabase テーブルの読み書き
- coaching: Gemini による1on1コーチング・要約
- deepgram / livekit: 文字起こし・ビデオ通話の認証情報
- transcription: 話者分離結果の役割マッピング
- mindmap: マインドマップ編集モデル（Undo/Redo 付き）
- google_calendar / line / messaging: 外部サービス連携
- reminders: LINEリマインダー送信（定期実行）
- analytics: 組織分析ダッシュボード

使用例:
    from memento.config import get_settings
    from memento.db import get_db_session
"""

__version__ = "1.0.0"
