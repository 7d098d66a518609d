"""
感情解析カスケード
感情分類器 → 生成モデル → 中性フォールバックの順に試し、
すべての結果を1つの EmotionSnapshot に正規化する
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any

from ...core.exceptions import ExternalServiceError
from ...core.logging import get_logger, log_business_event
from ..models.emotion import (
    EmotionSnapshot,
    PrimaryEmotion,
    SecondaryEmotion,
    clamp_unit,
)
from ..ports.emotion_port import IEmotionProvider
from .retry import RetryPolicy, call_with_retry

if TYPE_CHECKING:
    from ..ports.ai_port import IAIProvider

logger = get_logger("domain.emotion")


ANALYSIS_PROMPT = f"""Analyze the emotional content of the following journal text.
Return a JSON object with these exact fields:
- primary_emotion: One of [{", ".join(PrimaryEmotion.values())}]
- secondary_emotion: One of [{", ".join(e.value for e in SecondaryEmotion if e is not SecondaryEmotion.NEUTRAL)}]
- intensity: A number from 0.0 to 1.0
- confidence: A number from 0.0 to 1.0
- scene_metaphor: A short visual description of a scene matching the emotion (e.g. "a stormy ocean at night" or "a sunlit peaceful meadow")

Return ONLY valid JSON, no markdown or extra text."""

METAPHOR_PROMPT = """Given the user's primary emotion and text, generate a JSON object with:
- scene_metaphor: A vivid visual description of a landscape reflecting this emotion
- secondary_emotion: A nuanced secondary emotion derived from the text
- confidence: A number between 0.8 to 1.0

Return ONLY valid JSON, no markdown or extra text."""


def parse_json_payload(response: str) -> dict[str, Any]:
    """
    LLMレスポンスからJSONオブジェクトを取り出す

    マークダウンのコードブロックで囲まれていても受け付ける。

    Raises:
        ExternalServiceError: JSONとして解釈できない場合
    """
    text = (response or "").strip()
    if text.startswith("```"):
        lines = [line for line in text.split("\n") if not line.startswith("```")]
        text = "\n".join(lines).strip()

    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError) as e:
        raise ExternalServiceError(
            f"Malformed JSON payload: {e}", service_name="generative"
        ) from e

    if not isinstance(data, dict):
        raise ExternalServiceError("JSON payload is not an object", service_name="generative")
    return data


class GenerativeEmotionProvider(IEmotionProvider):
    """
    生成モデルによる感情解析

    IAIProvider（OpenAI / Gemini）をラップし、主要感情・二次感情・強度・
    信頼度・メタファーを1回の呼び出しで求める。
    """

    def __init__(self, ai_provider: IAIProvider):
        self._ai_provider = ai_provider

    @property
    def name(self) -> str:
        return f"generative:{self._ai_provider.model_name}"

    async def analyze(self, text: str) -> EmotionSnapshot:
        response = await self._ai_provider.generate(
            message=f'Text: "{text}"',
            system_prompt=ANALYSIS_PROMPT,
            max_tokens=200,
            json_mode=True,
            temperature=0.7,
        )
        data = parse_json_payload(response)

        primary = PrimaryEmotion.normalize(data.get("primary_emotion"))
        return EmotionSnapshot(
            primary_emotion=primary,
            secondary_emotion=_clean_label(data.get("secondary_emotion")),
            intensity=clamp_unit(data.get("intensity"), 0.5),
            confidence=clamp_unit(data.get("confidence"), 0.5),
            scene_metaphor=str(data.get("scene_metaphor") or f"A landscape representing {primary}"),
        )

    async def enrich(self, primary_emotion: str, text: str) -> dict[str, Any]:
        """
        分類器の結果にメタファーと二次感情を補完

        Returns:
            dict: scene_metaphor / secondary_emotion / confidence（取得できたもののみ）
        """
        response = await self._ai_provider.generate(
            message=f'Primary emotion: {primary_emotion}\nText: "{text}"',
            system_prompt=METAPHOR_PROMPT,
            max_tokens=150,
            json_mode=True,
            temperature=0.8,
        )
        data = parse_json_payload(response)
        return {
            key: data[key]
            for key in ("scene_metaphor", "secondary_emotion", "confidence")
            if data.get(key) is not None
        }


class KeywordEmotionProvider(IEmotionProvider):
    """
    オフラインヒューリスティック

    プロバイダーに一切到達できない場合（認証情報なし等）に使う。
    強度 = 0.3 + 0.1×感嘆符数 + 0.15×大文字語数 + 0.2×キーワード一致数（上限1.0）
    """

    # 宣言順が同点時の優先順位
    EMOTION_KEYWORDS: dict[str, tuple[str, ...]] = {
        "joy": ("happy", "excited", "wonderful", "great", "amazing", "love", "fantastic"),
        "sadness": ("sad", "depressed", "down", "unhappy", "miserable", "crying", "tears"),
        "anxiety": ("anxious", "worried", "nervous", "stressed", "overwhelmed", "panic"),
        "anger": ("angry", "frustrated", "mad", "furious", "annoyed", "irritated"),
        "fear": ("scared", "afraid", "terrified", "frightened", "fearful"),
        "hope": ("hopeful", "optimistic", "looking forward", "better", "improving"),
        "calm": ("calm", "peaceful", "relaxed", "serene", "tranquil"),
        "confusion": ("confused", "lost", "uncertain", "unsure", "don't know"),
    }

    _caps_pattern = re.compile(r"[A-Z]{2,}")

    @property
    def name(self) -> str:
        return "offline-keywords"

    async def analyze(self, text: str) -> EmotionSnapshot:
        return self.analyze_sync(text)

    def analyze_sync(self, text: str) -> EmotionSnapshot:
        """同期版（I/Oなし）"""
        text = text or ""
        lowered = text.lower()

        detected = PrimaryEmotion.CALM.value
        max_hits = 0
        for emotion, keywords in self.EMOTION_KEYWORDS.items():
            hits = sum(1 for kw in keywords if kw in lowered)
            # 厳密に大きい場合のみ更新（同点は先に宣言されたカテゴリが勝つ）
            if hits > max_hits:
                max_hits = hits
                detected = emotion

        exclamations = text.count("!")
        caps_words = len(self._caps_pattern.findall(text))
        intensity = min(1.0, 0.3 + exclamations * 0.1 + caps_words * 0.15 + max_hits * 0.2)

        return EmotionSnapshot(
            primary_emotion=detected,
            secondary_emotion=None,
            intensity=intensity,
            confidence=0.7 if max_hits > 0 else 0.3,
            scene_metaphor=f"A landscape representing {detected}",
        )


class EmotionAnalysisService:
    """
    感情解析カスケード

    1. 感情分類器（1回のみ、リトライなし）→ 成功時は生成モデルでメタファー補完
    2. 分類器が失敗 / 未設定なら生成モデルで一括解析（レート制限時のみリトライ）
    3. 生成モデルが失敗したら中性スナップショット
    生成モデルが未設定ならオフラインヒューリスティック。

    analyze は決して例外を送出しない。
    """

    ML_CONFIDENCE = 0.9

    def __init__(
        self,
        classifier: IEmotionProvider | None = None,
        generator: GenerativeEmotionProvider | None = None,
        retry_policy: RetryPolicy | None = None,
        enrichment_policy: RetryPolicy | None = None,
        offline: IEmotionProvider | None = None,
    ):
        self.classifier = classifier
        self.generator = generator
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=3, base_delay=2.0)
        self.enrichment_policy = enrichment_policy or RetryPolicy(max_attempts=2, base_delay=1.5)
        self.offline = offline or KeywordEmotionProvider()

    async def analyze(self, text: str) -> EmotionSnapshot:
        """
        テキストの感情を解析

        Args:
            text: ユーザーのメッセージ

        Returns:
            EmotionSnapshot: 解析結果（最悪でも中性スナップショット）
        """
        if self.classifier is not None:
            ml_result = await self._try_classifier(text)
            if ml_result is not None:
                return await self._combine_with_metaphor(ml_result, text)
            logger.info("Classifier unavailable, falling back to generative analysis")

        if self.generator is None:
            return await self._analyze_offline(text)

        try:
            snapshot = await call_with_retry(
                lambda: self.generator.analyze(text),
                self.retry_policy,
                logger,
                label="Generative Emotion",
            )
        except Exception as e:
            logger.warning(
                f"Generative analysis failed, falling back to neutral emotion: {e}",
                extra={"provider": self.generator.name},
            )
            return EmotionSnapshot.neutral()

        log_business_event(
            logger,
            "emotion_analyzed",
            provider=self.generator.name,
            primary_emotion=snapshot.primary_emotion,
        )
        return snapshot

    async def _try_classifier(self, text: str) -> EmotionSnapshot | None:
        """分類器を1回だけ呼ぶ（失敗・空の主要感情なら None）"""
        try:
            result = await self.classifier.analyze(text)
        except Exception as e:
            logger.warning(
                f"Classifier error: {e}",
                extra={"provider": self.classifier.name},
            )
            return None

        if not result.primary_emotion or not result.primary_emotion.strip():
            return None
        return result

    async def _combine_with_metaphor(
        self, ml_result: EmotionSnapshot, text: str
    ) -> EmotionSnapshot:
        """分類器の結果にメタファーを補完して1つのスナップショットにまとめる"""
        primary = ml_result.primary_emotion.strip().lower()
        enrichment: dict[str, Any] = {}

        if self.generator is not None:
            try:
                enrichment = await call_with_retry(
                    lambda: self.generator.enrich(primary, text),
                    self.enrichment_policy,
                    logger,
                    label="Generative Metaphor",
                )
            except Exception as e:
                logger.warning(f"Metaphor enrichment failed: {e}")

        secondary = (
            _clean_label(ml_result.secondary_emotion)
            or _clean_label(enrichment.get("secondary_emotion"))
            or (SecondaryEmotion.UNCERTAINTY.value if not enrichment else SecondaryEmotion.NEUTRAL.value)
        )
        metaphor = (
            str(enrichment.get("scene_metaphor") or "")
            or ml_result.scene_metaphor
            or f"A landscape representing {primary}"
        )

        snapshot = EmotionSnapshot(
            primary_emotion=primary,
            secondary_emotion=secondary,
            intensity=ml_result.intensity,
            confidence=self.ML_CONFIDENCE,
            scene_metaphor=metaphor,
        )
        log_business_event(
            logger,
            "emotion_analyzed",
            provider=self.classifier.name,
            primary_emotion=primary,
        )
        return snapshot

    async def _analyze_offline(self, text: str) -> EmotionSnapshot:
        """オフラインヒューリスティック（失敗時は中性）"""
        try:
            snapshot = await self.offline.analyze(text)
        except Exception as e:
            logger.warning(f"Offline heuristic failed: {e}")
            return EmotionSnapshot.neutral()

        logger.info(
            f"No generative provider configured, offline heuristic: {snapshot.primary_emotion}"
        )
        return snapshot


def _clean_label(value: Any) -> str | None:
    """ラベルを小文字に正規化（空なら None）"""
    if value is None:
        return None
    label = str(value).strip().lower()
    return label or None


__all__ = [
    "EmotionAnalysisService",
    "GenerativeEmotionProvider",
    "KeywordEmotionProvider",
    "parse_json_payload",
]
