"""
感情モデル
感情の語彙、スナップショット、危機判定結果
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class PrimaryEmotion(Enum):
    """
    主要感情（閉じた語彙）
    宣言順は同点時の優先順位としても使う
    """

    JOY = "joy"
    SADNESS = "sadness"
    ANGER = "anger"
    FEAR = "fear"
    ANXIETY = "anxiety"
    PEACE = "peace"
    HOPE = "hope"
    LOVE = "love"
    LONELINESS = "loneliness"
    GRIEF = "grief"
    FRUSTRATION = "frustration"
    CONFUSION = "confusion"
    DETERMINATION = "determination"
    GRATITUDE = "gratitude"
    CALM = "calm"

    @classmethod
    def values(cls) -> list[str]:
        return [e.value for e in cls]

    @classmethod
    def normalize(cls, label: str | None, default: "PrimaryEmotion | None" = None) -> str:
        """
        ラベルを語彙に正規化

        語彙外のラベルは default（未指定なら CALM）に置き換える。
        """
        fallback = (default or cls.CALM).value
        if not label:
            return fallback
        candidate = str(label).strip().lower()
        return candidate if candidate in cls._value2member_map_ else fallback


class SecondaryEmotion(Enum):
    """二次感情（プロンプト用の推奨語彙。実際の値は自由記述）"""

    ELATION = "elation"
    CONTENTMENT = "contentment"
    RELIEF = "relief"
    NOSTALGIA = "nostalgia"
    OVERWHELM = "overwhelm"
    BETRAYAL = "betrayal"
    ENVY = "envy"
    PRIDE = "pride"
    UNCERTAINTY = "uncertainty"
    RESILIENCE = "resilience"
    CLARITY = "clarity"
    ANNOYANCE = "annoyance"
    EXCITEMENT = "excitement"
    NEUTRAL = "neutral"


# 感情ベクトル: 感情ラベル -> 強度 (0.0-1.0)
# dict は挿入順を保持するため、同点時は先に現れたラベルが勝つ
EmotionVector = dict[str, float]


def clamp_unit(value: Any, default: float = 0.0) -> float:
    """値を 0.0-1.0 に丸める（数値化できなければ default）"""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return max(0.0, min(1.0, number))


@dataclass(frozen=True)
class EmotionSnapshot:
    """
    1メッセージ分の感情解析結果

    作成後は不変。元になったメッセージが所有する。
    """

    primary_emotion: str
    secondary_emotion: str | None = None
    intensity: float = 0.5
    confidence: float = 0.5
    scene_metaphor: str = ""

    def __post_init__(self):
        object.__setattr__(self, "intensity", clamp_unit(self.intensity, 0.5))
        object.__setattr__(self, "confidence", clamp_unit(self.confidence, 0.5))

    def to_dict(self) -> dict[str, Any]:
        """辞書形式に変換"""
        return {
            "primary_emotion": self.primary_emotion,
            "secondary_emotion": self.secondary_emotion,
            "intensity": self.intensity,
            "confidence": self.confidence,
            "scene_metaphor": self.scene_metaphor,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EmotionSnapshot":
        """辞書から生成"""
        return cls(
            primary_emotion=data.get("primary_emotion") or PrimaryEmotion.CALM.value,
            secondary_emotion=data.get("secondary_emotion"),
            intensity=data.get("intensity", 0.5),
            confidence=data.get("confidence", 0.5),
            scene_metaphor=data.get("scene_metaphor") or "",
        )

    @classmethod
    def neutral(cls) -> "EmotionSnapshot":
        """全プロバイダー失敗時の中性スナップショット"""
        return cls(
            primary_emotion=PrimaryEmotion.CALM.value,
            secondary_emotion=SecondaryEmotion.CLARITY.value,
            intensity=0.1,
            confidence=0.5,
            scene_metaphor="A quiet, fog-covered lake",
        )

    def to_vector(self) -> EmotionVector:
        """
        単一スナップショットを感情ベクトルに変換

        二次感情は主要感情の半分の強度で加える。
        """
        vector: EmotionVector = {self.primary_emotion: self.intensity}
        secondary = (self.secondary_emotion or "").strip().lower()
        if secondary and secondary not in vector:
            vector[secondary] = self.intensity * 0.5
        return vector


@dataclass(frozen=True)
class CrisisResult:
    """危機判定結果（メッセージごとに算出、ログのみで保存しない）"""

    is_crisis: bool
    risk_score: float
    detected_keywords: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_crisis": self.is_crisis,
            "risk_score": self.risk_score,
            "detected_keywords": list(self.detected_keywords),
        }
