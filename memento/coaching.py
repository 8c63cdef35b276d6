"""
1on1 コーチングAI（Gemini）

会話トランスクリプトをもとに、リアルタイム助言・質問応答・要約・
PDF評価シートからの特性抽出を行う。

APIキー未設定時は、開発用のモック応答を返す（PDF解析を除く）。

使用例:
    from memento import coaching

    advice = coaching.analyze(transcript, theme="career_growth", traits=["慎重"])
    result = coaching.summarize(transcript, theme="health")
    print(result["summary"], result["actionItems"])
"""

import json
import re
from typing import Any, Dict, List, Optional, Sequence

from google import genai
from google.genai import types

from memento.config import get_settings
from memento.constants import DEFAULT_THEME_LABEL
from memento.logging import get_logger

logger = get_logger(__name__)

MOCK_ADVICE = "The subordinate seems hesitant. (Mock Advice: Set GEMINI_API_KEY)"
MOCK_ANSWER = (
    "This is a mock answer because GEMINI_API_KEY is not set. "
    "Please set the environment variable to get real AI responses."
)
MOCK_SUMMARY = "Mock Summary: Please set GEMINI_API_KEY to get real AI summaries."
MOCK_ACTION_ITEMS = ["Mock Action Item 1", "Mock Action Item 2"]
FALLBACK_TRAITS = ["Analytical", "Communicative"]

MAX_TRAITS = 10
ORIGINAL_TEXT_LIMIT = 500

ADVICE_SYSTEM_PROMPT = """
You are an expert 1on1 executive coach.
Your goal is to help the manager (user) improve their listening skills.

Current 1on1 Theme: "{theme}"
Subordinate Traits: {traits}

Analyze the recent conversation transcript provided below.
1. Identify if the manager is talking too much.
2. Spot emotional cues from the subordinate that the manager might have missed.
3. Provide one concise, actionable piece of advice for the manager to use IMMEDIATELY.
4. Keep the advice under 100 characters if possible.
5. Output ONLY the advice text, nothing else.
6. Respond in Japanese language only.
"""

ASK_SYSTEM_PROMPT = """
あなたは1on1エグゼクティブコーチです。
あなたの目標は、マネージャー（ユーザー）の質問に答えることで、効果的な1on1ミーティングを支援することです。

現在の1on1テーマ: "{theme}"
部下の特徴: {traits}

以下の会話トランスクリプトを分析し、マネージャーの質問に答えてください。

質問の種類に応じて、以下のように回答してください：

1. **事実確認の質問**（例：「今回の会議のテーマは？」「部下は何と言いましたか？」）:
   - トランスクリプトから関連情報を抽出し、簡潔に事実を答えます。
   - テーマが指定されている場合は、それを伝えます。

2. **解釈や分析の質問**（例：「部下の気持ちはどうですか？」「この会話のポイントは？」）:
   - トランスクリプトに基づいて観察を共有し、解釈を提供します。

3. **アドバイス要請の質問**（例：「どうすればもっと良い聞き手になれますか？」「次に何をすべきですか？」）:
   - 実用的で実行可能なアドバイスを提供します。

ガイドライン：
- 回答は簡潔に（可能なら200文字以内）
- 日本語でのみ回答
- 回答テキストのみを出力（余分な説明は不要）
- トランスクリプトの文脈を考慮
"""

SUMMARY_PROMPT = """
You are an expert secretary for engineering managers.
Summarize the following 1on1 meeting transcript in Japanese.
Theme: "{theme}"

Output valid JSON format with two fields:
1. "summary": A concise paragraph summarizing the discussion in Japanese (3-5 sentences).
2. "actionItems": An array of strings in Japanese, listing specific tasks or follow-ups.

Transcript:
{conversation}
"""

TRAITS_PROMPT = """
You are an expert HR analyst. Analyze this PDF document which contains employee evaluation or personality assessment results.
Extract key personality traits, strengths, weaknesses, and behavioral patterns from the document.
Return ONLY a JSON array of strings representing the extracted traits.
Example: ["Analytical", "Detail-oriented", "Collaborative", "Reserved", "Strategic thinker"]
Focus on traits relevant to 1on1 coaching and management.
"""


def is_configured() -> bool:
    """Gemini APIキーが設定されているか"""
    return bool(get_settings().GEMINI_API_KEY)


def format_transcript(transcript: Sequence[Dict[str, Any]]) -> str:
    """トランスクリプトを "話者: 発言" の行形式に変換"""
    return "\n".join(f"{item.get('speaker')}: {item.get('text')}" for item in transcript)


def _format_traits(traits: Optional[Sequence[str]]) -> str:
    return ", ".join(traits) if traits else "Unknown"


def _generate(contents: Any, config: Optional[Dict[str, Any]] = None) -> str:
    settings = get_settings()
    client = genai.Client(api_key=settings.GEMINI_API_KEY)
    try:
        response = client.models.generate_content(
            model=settings.GEMINI_MODEL,
            contents=contents,
            config=config,
        )
    except Exception as e:
        logger.error("Gemini request failed", error=str(e))
        raise CoachingError(f"Gemini request failed: {type(e).__name__}") from e
    return response.text or ""


def analyze(
    transcript: Sequence[Dict[str, Any]],
    theme: Optional[str] = None,
    traits: Optional[Sequence[str]] = None,
) -> str:
    """
    リアルタイム助言を生成

    Args:
        transcript: TranscriptItem のリスト
        theme: 1on1テーマ
        traits: 部下の特性

    Returns:
        助言テキスト（前後の空白を除去済み）
    """
    if not is_configured():
        logger.warning("Gemini API Key missing. Returning mock advice.")
        return MOCK_ADVICE

    system_prompt = ADVICE_SYSTEM_PROMPT.format(
        theme=theme or DEFAULT_THEME_LABEL,
        traits=_format_traits(traits),
    )
    user_prompt = (
        f"Here is the recent transcript:\n{format_transcript(transcript)}"
        "\n\nProvide your real-time advice:"
    )
    return _generate([system_prompt, user_prompt]).strip()


def ask(
    transcript: Sequence[Dict[str, Any]],
    question: str,
    theme: Optional[str] = None,
    traits: Optional[Sequence[str]] = None,
) -> str:
    """マネージャーの質問に回答"""
    if not is_configured():
        logger.warning("Gemini API Key missing. Returning mock answer.")
        return MOCK_ANSWER

    system_prompt = ASK_SYSTEM_PROMPT.format(
        theme=theme or DEFAULT_THEME_LABEL,
        traits=_format_traits(traits),
    )
    user_prompt = (
        f"Here is the recent transcript:\n{format_transcript(transcript)}"
        f"\n\nManager's Question: {question}\n\nProvide your answer:"
    )
    return _generate([system_prompt, user_prompt]).strip()


def summarize(transcript: Sequence[Dict[str, Any]], theme: Optional[str] = None) -> Dict[str, Any]:
    """
    セッションを要約

    Returns:
        {"summary": str, "actionItems": [str, ...]}

    Raises:
        CoachingError: 生成失敗、またはJSONとして解釈できない応答の場合
    """
    if not is_configured():
        return {"summary": MOCK_SUMMARY, "actionItems": list(MOCK_ACTION_ITEMS)}

    prompt = SUMMARY_PROMPT.format(theme=theme, conversation=format_transcript(transcript))
    text = _generate(prompt, config={"response_mime_type": "application/json"})
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.error("Gemini summary is not valid JSON", body=text[:200])
        raise CoachingError("Invalid summary response") from e


def parse_traits(text: str) -> List[str]:
    """
    モデル応答から特性リストを取り出す

    1. JSON配列ならそのまま
    2. 配列以外のJSONならカンマ区切り
    3. JSONでなければ改行・カンマ区切りで、引用符と括弧を除去
    最大10件。
    """
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        parts = [re.sub(r'["\[\]]', "", part.strip()) for part in re.split(r"[\n,]", text)]
        traits = [part for part in parts if part]
    else:
        if isinstance(parsed, list):
            traits = parsed
        else:
            traits = [part.strip() for part in text.split(",") if part.strip()]
    return traits[:MAX_TRAITS]


def extract_traits(pdf_bytes: bytes) -> Dict[str, Any]:
    """
    評価シート・性格診断PDFから特性を抽出

    Returns:
        {"success": True, "traits": [...], "originalText": 応答の先頭500文字}

    Raises:
        CoachingError: APIキー未設定、または生成失敗の場合
    """
    if not is_configured():
        raise CoachingError("Gemini API Key not configured")

    pdf_part = types.Part.from_bytes(data=pdf_bytes, mime_type="application/pdf")
    text = _generate([TRAITS_PROMPT, pdf_part]).strip()
    return {
        "success": True,
        "traits": parse_traits(text),
        "originalText": text[:ORIGINAL_TEXT_LIMIT],
    }


# =============================================================================
# 例外クラス
# =============================================================================

class CoachingError(Exception):
    """コーチングAIのエラー"""
    pass
