"""
話者分離結果のロール割り当て

Deepgram の diarize 結果（話者番号 0, 1, ...）を、
1on1 の役割（manager / subordinate）に対応付ける。

ルール:
    - 確定結果（is_final）かつ文字起こしが空でないものだけを扱う
    - 話者番号あり・信頼度 0.5 超・空でない単語を話者ごとに数え、
      最多の話者をその発話の話者とする（同数なら番号の大きい方）
    - 最初に現れた話者を manager、以降の新しい話者を subordinate とする
    - 話者情報がなければ manager とする

使用例:
    mapper = SpeakerRoleMapper()
    item = mapper.map_result(deepgram_result)
    if item:
        transcript.append(item)
"""

from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from memento.config import get_settings

MANAGER = "manager"
SUBORDINATE = "subordinate"
MIN_WORD_CONFIDENCE = 0.5


class SpeakerRoleMapper:
    """セッション単位の話者番号→ロール対応表"""

    def __init__(self, mapping: Optional[Dict[int, str]] = None):
        self._mapping: Dict[int, str] = dict(mapping or {})

    @property
    def mapping(self) -> Dict[int, str]:
        return dict(self._mapping)

    def dominant_speaker(self, words: List[Dict[str, Any]]) -> Optional[int]:
        """有効な単語数が最も多い話者番号"""
        counts = Counter(
            word["speaker"]
            for word in words
            if word.get("speaker") is not None
            and (word.get("confidence") or 0) > MIN_WORD_CONFIDENCE
            and str(word.get("word") or "").strip()
        )
        best: Optional[int] = None
        for speaker in sorted(counts):
            if best is None or counts[speaker] >= counts[best]:
                best = speaker
        return best

    def role_for(self, speaker: Optional[int]) -> str:
        """話者番号のロールを返す（未登録なら登録する）"""
        if speaker is None:
            return MANAGER
        if speaker not in self._mapping:
            self._mapping[speaker] = MANAGER if not self._mapping else SUBORDINATE
        return self._mapping[speaker]

    def map_result(self, result: Dict[str, Any], timestamp: Optional[str] = None) -> Optional[Dict[str, str]]:
        """
        Deepgram の Transcript イベント1件を TranscriptItem に変換

        Returns:
            {"speaker", "text", "timestamp"}。出力対象外の場合は None
        """
        if not result.get("is_final"):
            return None

        alternatives = (result.get("channel") or {}).get("alternatives") or []
        alternative = alternatives[0] if alternatives else {}
        text = alternative.get("transcript") or ""
        if not text.strip():
            return None

        speaker = self.dominant_speaker(alternative.get("words") or [])
        return {
            "speaker": self.role_for(speaker),
            "text": text,
            "timestamp": timestamp or current_timestamp(),
        }

    def map_results(self, results: List[Dict[str, Any]]) -> List[Dict[str, str]]:
        """複数イベントを順に変換し、出力対象のみ返す"""
        items = []
        for result in results:
            item = self.map_result(result)
            if item:
                items.append(item)
        return items


def current_timestamp() -> str:
    """表示用の時刻（HH:MM）"""
    return datetime.now(ZoneInfo(get_settings().TIMEZONE)).strftime("%H:%M")
