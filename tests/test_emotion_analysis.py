"""
感情解析カスケードのテスト

- 分類器 → 生成モデル → 中性フォールバックの順序
- レート制限時のみバックオフしてリトライ
- オフラインヒューリスティック（同点は宣言順）
"""

import json
from typing import Optional
from unittest.mock import AsyncMock

import pytest

from echoscape.core.exceptions import (
    ExternalServiceError,
    ProviderUnavailableError,
    RateLimitError,
    error_from_status,
)
from echoscape.domain.models.emotion import EmotionSnapshot
from echoscape.domain.ports.ai_port import ChatMessage, IAIProvider
from echoscape.domain.ports.emotion_port import IEmotionProvider
from echoscape.domain.services.emotion import (
    EmotionAnalysisService,
    GenerativeEmotionProvider,
    KeywordEmotionProvider,
    parse_json_payload,
)
from echoscape.domain.services.retry import RetryPolicy


# === モッククラス ===


class StubAIProvider(IAIProvider):
    """順番に応答（または例外）を返す AI プロバイダー"""

    def __init__(self, *responses):
        self._responses = list(responses)
        self.calls: list[dict] = []

    async def generate(
        self,
        message: str,
        system_prompt: str,
        max_tokens: Optional[int] = None,
        conversation_history: Optional[list[ChatMessage]] = None,
        json_mode: bool = False,
        temperature: Optional[float] = None,
    ) -> str:
        self.calls.append({
            "message": message,
            "system_prompt": system_prompt,
            "max_tokens": max_tokens,
            "json_mode": json_mode,
            "temperature": temperature,
        })
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    async def health_check(self) -> bool:
        return True

    @property
    def model_name(self) -> str:
        return "stub-model"


class StubClassifier(IEmotionProvider):
    """固定の結果（または例外）を返す分類器"""

    def __init__(self, result):
        self._result = result
        self.call_count = 0

    async def analyze(self, text: str) -> EmotionSnapshot:
        self.call_count += 1
        if isinstance(self._result, Exception):
            raise self._result
        return self._result

    @property
    def name(self) -> str:
        return "stub-classifier"


def analysis_json(**overrides) -> str:
    data = {
        "primary_emotion": "joy",
        "secondary_emotion": "excitement",
        "intensity": 0.8,
        "confidence": 0.85,
        "scene_metaphor": "a sunlit peaceful meadow",
    }
    data.update(overrides)
    return json.dumps(data)


def rate_limited() -> RateLimitError:
    return RateLimitError("Rate limit exceeded", service_name="openai", status_code=429)


# === parse_json_payload テスト ===


class TestParseJsonPayload:
    """JSON 取り出しのテスト"""

    def test_plain_json(self):
        assert parse_json_payload('{"a": 1}') == {"a": 1}

    def test_markdown_fenced_json(self):
        """コードブロックで囲まれていても読める"""
        payload = '```json\n{"primary_emotion": "fear"}\n```'
        assert parse_json_payload(payload) == {"primary_emotion": "fear"}

    def test_malformed_json_raises(self):
        with pytest.raises(ExternalServiceError, match="Malformed JSON"):
            parse_json_payload("I feel joyful!")

    def test_non_object_raises(self):
        with pytest.raises(ExternalServiceError):
            parse_json_payload("[1, 2, 3]")


# === GenerativeEmotionProvider テスト ===


class TestGenerativeEmotionProvider:
    """生成モデルによる解析のテスト"""

    @pytest.mark.asyncio
    async def test_analyze_parses_snapshot(self):
        ai = StubAIProvider(analysis_json())
        provider = GenerativeEmotionProvider(ai)

        snapshot = await provider.analyze("I got the job!")

        assert snapshot.primary_emotion == "joy"
        assert snapshot.secondary_emotion == "excitement"
        assert snapshot.intensity == 0.8
        assert snapshot.confidence == 0.85
        assert snapshot.scene_metaphor == "a sunlit peaceful meadow"
        assert ai.calls[0]["json_mode"] is True
        assert ai.calls[0]["temperature"] == 0.7

    @pytest.mark.asyncio
    async def test_unknown_emotion_coerced_to_calm(self):
        """語彙外の主要感情は calm になる"""
        provider = GenerativeEmotionProvider(StubAIProvider(analysis_json(primary_emotion="ennui")))

        snapshot = await provider.analyze("meh")

        assert snapshot.primary_emotion == "calm"

    @pytest.mark.asyncio
    async def test_values_are_clamped(self):
        provider = GenerativeEmotionProvider(
            StubAIProvider(analysis_json(intensity=1.7, confidence=-0.2))
        )

        snapshot = await provider.analyze("!!!")

        assert snapshot.intensity == 1.0
        assert snapshot.confidence == 0.0

    @pytest.mark.asyncio
    async def test_enrich_returns_present_keys(self):
        ai = StubAIProvider(json.dumps({"scene_metaphor": "a rain-soaked pier"}))
        provider = GenerativeEmotionProvider(ai)

        enrichment = await provider.enrich("sadness", "I miss her")

        assert enrichment == {"scene_metaphor": "a rain-soaked pier"}
        assert "Primary emotion: sadness" in ai.calls[0]["message"]

    def test_name_includes_model(self):
        assert GenerativeEmotionProvider(StubAIProvider("{}")).name == "generative:stub-model"


# === KeywordEmotionProvider テスト ===


class TestKeywordEmotionProvider:
    """オフラインヒューリスティックのテスト"""

    def setup_method(self):
        self.provider = KeywordEmotionProvider()

    def test_keyword_hits_and_intensity(self):
        """0.3 + 0.1×感嘆符 + 0.2×一致数"""
        snapshot = self.provider.analyze_sync("I am so happy and excited!!")

        assert snapshot.primary_emotion == "joy"
        assert snapshot.intensity == pytest.approx(0.9)
        assert snapshot.confidence == 0.7
        assert snapshot.scene_metaphor == "A landscape representing joy"

    def test_tie_goes_to_first_declared_category(self):
        """同点は先に宣言されたカテゴリ"""
        snapshot = self.provider.analyze_sync("I feel sad but hopeful")

        assert snapshot.primary_emotion == "sadness"

    def test_no_hits_defaults_to_calm(self):
        snapshot = self.provider.analyze_sync("The meeting is at noon")

        assert snapshot.primary_emotion == "calm"
        assert snapshot.intensity == pytest.approx(0.3)
        assert snapshot.confidence == 0.3

    def test_caps_words_raise_intensity(self):
        """大文字の単語は 0.15 ずつ加算"""
        snapshot = self.provider.analyze_sync("WHY does THIS happen")

        assert snapshot.intensity == pytest.approx(0.6)

    def test_intensity_capped_at_one(self):
        snapshot = self.provider.analyze_sync("ANGRY!!!!! FURIOUS!!!!! MAD!!!!!")

        assert snapshot.primary_emotion == "anger"
        assert snapshot.intensity == 1.0


# === EmotionAnalysisService テスト ===


class TestEmotionAnalysisService:
    """感情解析カスケードのテスト"""

    def setup_method(self):
        self.sleep = AsyncMock()
        self.retry_policy = RetryPolicy(max_attempts=3, base_delay=2.0, sleep=self.sleep)
        self.enrichment_policy = RetryPolicy(max_attempts=2, base_delay=1.5, sleep=self.sleep)

    def make_service(self, classifier=None, ai=None) -> EmotionAnalysisService:
        return EmotionAnalysisService(
            classifier=classifier,
            generator=GenerativeEmotionProvider(ai) if ai else None,
            retry_policy=self.retry_policy,
            enrichment_policy=self.enrichment_policy,
        )

    @pytest.mark.asyncio
    async def test_rate_limit_retried_with_backoff(self):
        """レート制限2回の後に成功 → 2回だけ待機（2秒, 4秒）"""
        ai = StubAIProvider(rate_limited(), rate_limited(), analysis_json())
        service = self.make_service(ai=ai)

        snapshot = await service.analyze("I got the job!")

        assert snapshot.primary_emotion == "joy"
        assert len(ai.calls) == 3
        assert self.sleep.await_count == 2
        assert [c.args[0] for c in self.sleep.await_args_list] == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_rate_limit_detected_from_message(self):
        """メッセージ中の quota 指標でもリトライする"""
        ai = StubAIProvider(
            ExternalServiceError("You exceeded your current quota"),
            analysis_json(primary_emotion="hope"),
        )
        service = self.make_service(ai=ai)

        snapshot = await service.analyze("Tomorrow will be better")

        assert snapshot.primary_emotion == "hope"
        assert self.sleep.await_count == 1

    @pytest.mark.asyncio
    async def test_rate_limit_exhausted_returns_neutral(self):
        """3回ともレート制限 → 中性スナップショット"""
        ai = StubAIProvider(rate_limited())
        service = self.make_service(ai=ai)

        snapshot = await service.analyze("hello")

        assert snapshot == EmotionSnapshot.neutral()
        assert len(ai.calls) == 3
        assert self.sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self):
        """認証エラーはリトライしない"""
        ai = StubAIProvider(ExternalServiceError("Unauthorized", status_code=401))
        service = self.make_service(ai=ai)

        snapshot = await service.analyze("hello")

        assert snapshot.primary_emotion == "calm"
        assert len(ai.calls) == 1
        self.sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_auth_error_mentioning_quota_not_retried(self):
        """本文に 429 や quota を含んでもステータスが 401 ならリトライしない"""
        ai = StubAIProvider(error_from_status(
            "OpenAI API error: HTTP 401 - Incorrect API key provided: sk-abc...4291 (quota)",
            "openai",
            401,
        ))
        service = self.make_service(ai=ai)

        snapshot = await service.analyze("hello")

        assert snapshot.primary_emotion == "calm"
        assert len(ai.calls) == 1
        self.sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_all_providers_unreachable_returns_calm(self):
        """分類器も生成モデルも失敗 → calm（例外なし）"""
        classifier = StubClassifier(ProviderUnavailableError("connection refused"))
        ai = StubAIProvider(ExternalServiceError("Service unavailable", status_code=503))
        service = self.make_service(classifier=classifier, ai=ai)

        snapshot = await service.analyze("Everything is falling apart")

        assert snapshot.primary_emotion == "calm"
        assert snapshot.secondary_emotion == "clarity"
        assert snapshot.intensity == 0.1
        assert snapshot.confidence == 0.5
        assert classifier.call_count == 1

    @pytest.mark.asyncio
    async def test_malformed_generative_output_returns_neutral(self):
        service = self.make_service(ai=StubAIProvider("not json at all"))

        snapshot = await service.analyze("hello")

        assert snapshot == EmotionSnapshot.neutral()
        self.sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_classifier_path_with_enrichment(self):
        """分類器成功 → メタファー補完、信頼度 0.9"""
        classifier = StubClassifier(EmotionSnapshot(
            primary_emotion="Sadness", secondary_emotion=None, intensity=0.7, confidence=0.6,
        ))
        ai = StubAIProvider(json.dumps({
            "scene_metaphor": "a grey harbor at dusk",
            "secondary_emotion": "Nostalgia",
            "confidence": 0.95,
        }))
        service = self.make_service(classifier=classifier, ai=ai)

        snapshot = await service.analyze("I miss my old friends")

        assert snapshot.primary_emotion == "sadness"
        assert snapshot.secondary_emotion == "nostalgia"
        assert snapshot.intensity == 0.7
        assert snapshot.confidence == 0.9
        assert snapshot.scene_metaphor == "a grey harbor at dusk"
        # 一括解析は呼ばれない
        assert len(ai.calls) == 1

    @pytest.mark.asyncio
    async def test_classifier_secondary_takes_precedence(self):
        classifier = StubClassifier(EmotionSnapshot(
            primary_emotion="anger", secondary_emotion="betrayal", intensity=0.9,
        ))
        ai = StubAIProvider(json.dumps({
            "scene_metaphor": "a volcano",
            "secondary_emotion": "annoyance",
        }))
        service = self.make_service(classifier=classifier, ai=ai)

        snapshot = await service.analyze("They lied to me")

        assert snapshot.secondary_emotion == "betrayal"

    @pytest.mark.asyncio
    async def test_enrichment_failure_uses_defaults(self):
        """補完が失敗 → デフォルトのメタファーと uncertainty"""
        classifier = StubClassifier(EmotionSnapshot(primary_emotion="fear", intensity=0.6))
        ai = StubAIProvider(rate_limited())
        service = self.make_service(classifier=classifier, ai=ai)

        snapshot = await service.analyze("Something is wrong")

        assert snapshot.primary_emotion == "fear"
        assert snapshot.secondary_emotion == "uncertainty"
        assert snapshot.scene_metaphor == "A landscape representing fear"
        assert snapshot.confidence == 0.9
        # 補完は2回まで（待機1回、1.5秒）
        assert len(ai.calls) == 2
        assert [c.args[0] for c in self.sleep.await_args_list] == [1.5]

    @pytest.mark.asyncio
    async def test_empty_classifier_result_falls_back_to_generative(self):
        classifier = StubClassifier(EmotionSnapshot(primary_emotion="  "))
        ai = StubAIProvider(analysis_json(primary_emotion="anxiety"))
        service = self.make_service(classifier=classifier, ai=ai)

        snapshot = await service.analyze("What if it goes wrong?")

        assert snapshot.primary_emotion == "anxiety"

    @pytest.mark.asyncio
    async def test_no_generative_provider_uses_offline_heuristic(self):
        """生成モデル未設定 → オフラインヒューリスティック"""
        service = self.make_service()

        snapshot = await service.analyze("I am so worried and anxious")

        assert snapshot.primary_emotion == "anxiety"
        assert snapshot.confidence == 0.7

    @pytest.mark.asyncio
    async def test_classifier_failure_without_generator_uses_offline(self):
        classifier = StubClassifier(ProviderUnavailableError("down"))
        service = self.make_service(classifier=classifier)

        snapshot = await service.analyze("I feel peaceful and relaxed")

        assert snapshot.primary_emotion == "calm"
        assert snapshot.confidence == 0.7
