"""
外部アダプターのテスト

aiohttp.ClientSession をモックして HTTP 応答の変換とエラー分類を確認する
"""

from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from echoscape.adapters.ai.classifier import ClassifierAdapter
from echoscape.adapters.ai.gemini import GeminiAdapter
from echoscape.adapters.ai.openai import OpenAIAdapter
from echoscape.adapters.image.fal import FalImageGenerator
from echoscape.core.exceptions import (
    ExternalServiceError,
    ImageGenerationError,
    ProviderUnavailableError,
    RateLimitError,
)
from echoscape.domain.ports.ai_port import ChatMessage


def mock_response(status=200, data=None, text=""):
    response = AsyncMock()
    response.status = status
    response.json.return_value = data
    response.text.return_value = text
    return response


class TestOpenAIAdapter:
    """OpenAIAdapter のテスト"""

    def setup_method(self):
        self.adapter = OpenAIAdapter(api_key="sk-test", model="gpt-4o-mini")

    @pytest.mark.asyncio
    async def test_generate_success(self):
        data = {"choices": [{"message": {"content": "I hear you."}}]}

        with patch("aiohttp.ClientSession.post") as mock_post:
            mock_post.return_value.__aenter__.return_value = mock_response(data=data)

            result = await self.adapter.generate(
                message="I feel tired",
                system_prompt="You are Echo.",
                max_tokens=300,
                temperature=0.8,
                conversation_history=[ChatMessage(role="assistant", content="Hi")],
            )

            assert result == "I hear you."
            url = mock_post.call_args.args[0]
            body = mock_post.call_args.kwargs["json"]
            headers = mock_post.call_args.kwargs["headers"]
            assert url == "https://api.openai.com/v1/chat/completions"
            assert headers["Authorization"] == "Bearer sk-test"
            assert body["model"] == "gpt-4o-mini"
            assert body["max_tokens"] == 300
            assert body["temperature"] == 0.8
            assert [m["role"] for m in body["messages"]] == ["system", "assistant", "user"]
            assert "response_format" not in body

    @pytest.mark.asyncio
    async def test_json_mode(self):
        data = {"choices": [{"message": {"content": "{}"}}]}

        with patch("aiohttp.ClientSession.post") as mock_post:
            mock_post.return_value.__aenter__.return_value = mock_response(data=data)

            await self.adapter.generate("text", "system", json_mode=True)

            body = mock_post.call_args.kwargs["json"]
            assert body["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_http_429_is_rate_limit(self):
        with patch("aiohttp.ClientSession.post") as mock_post:
            mock_post.return_value.__aenter__.return_value = mock_response(
                status=429, text="Too Many Requests"
            )

            with pytest.raises(RateLimitError) as exc_info:
                await self.adapter.generate("text", "system")

            assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_http_500_is_external_error(self):
        with patch("aiohttp.ClientSession.post") as mock_post:
            mock_post.return_value.__aenter__.return_value = mock_response(
                status=500, text="boom"
            )

            with pytest.raises(ExternalServiceError) as exc_info:
                await self.adapter.generate("text", "system")

            assert not isinstance(exc_info.value, RateLimitError)
            assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_empty_choices(self):
        with patch("aiohttp.ClientSession.post") as mock_post:
            mock_post.return_value.__aenter__.return_value = mock_response(data={"choices": []})

            with pytest.raises(ExternalServiceError):
                await self.adapter.generate("text", "system")

    @pytest.mark.asyncio
    async def test_connection_error(self):
        with patch("aiohttp.ClientSession.post", side_effect=aiohttp.ClientError("refused")):
            with pytest.raises(ExternalServiceError) as exc_info:
                await self.adapter.generate("text", "system")

            assert exc_info.value.service_name == "openai"

    @pytest.mark.asyncio
    async def test_health_check_false_on_error(self):
        with patch("aiohttp.ClientSession.post") as mock_post:
            mock_post.return_value.__aenter__.return_value = mock_response(status=503)

            assert await self.adapter.health_check() is False

    def test_model_name(self):
        assert self.adapter.model_name == "gpt-4o-mini"


class TestGeminiAdapter:
    """GeminiAdapter のテスト"""

    def setup_method(self):
        self.adapter = GeminiAdapter(api_key="g-test", model="gemini-1.5-flash")

    @pytest.mark.asyncio
    async def test_generate_success(self):
        data = {"candidates": [{"content": {"parts": [{"text": "That sounds heavy."}]}}]}

        with patch("aiohttp.ClientSession.post") as mock_post:
            mock_post.return_value.__aenter__.return_value = mock_response(data=data)

            result = await self.adapter.generate(
                "I lost my job",
                "You are Echo.",
                max_tokens=300,
                json_mode=True,
                conversation_history=[
                    ChatMessage(role="user", content="hello"),
                    ChatMessage(role="assistant", content="Hi"),
                ],
            )

            assert result == "That sounds heavy."
            kwargs = mock_post.call_args.kwargs
            assert kwargs["params"] == {"key": "g-test"}
            body = kwargs["json"]
            assert [c["role"] for c in body["contents"]] == ["user", "model", "user"]
            assert body["systemInstruction"]["parts"][0]["text"] == "You are Echo."
            assert body["generationConfig"]["maxOutputTokens"] == 300
            assert body["generationConfig"]["responseMimeType"] == "application/json"

    @pytest.mark.asyncio
    async def test_safety_block(self):
        data = {"candidates": [{"finishReason": "SAFETY"}]}

        with patch("aiohttp.ClientSession.post") as mock_post:
            mock_post.return_value.__aenter__.return_value = mock_response(data=data)

            with pytest.raises(ExternalServiceError) as exc_info:
                await self.adapter.generate("text", "system")

            assert "safety" in str(exc_info.value)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("candidate", [
        {"content": {"parts": []}, "finishReason": "STOP"},
        {"content": {"role": "model"}, "finishReason": None},
        {"content": None},
    ])
    async def test_malformed_candidate(self, candidate):
        with patch("aiohttp.ClientSession.post") as mock_post:
            mock_post.return_value.__aenter__.return_value = mock_response(
                data={"candidates": [candidate]}
            )

            with pytest.raises(ExternalServiceError):
                await self.adapter.generate("text", "system")

    @pytest.mark.asyncio
    async def test_health_check_false_on_empty_parts(self):
        data = {"candidates": [{"content": {"parts": []}, "finishReason": None}]}

        with patch("aiohttp.ClientSession.post") as mock_post:
            mock_post.return_value.__aenter__.return_value = mock_response(data=data)

            assert await self.adapter.health_check() is False

    @pytest.mark.asyncio
    async def test_http_429_is_rate_limit(self):
        with patch("aiohttp.ClientSession.post") as mock_post:
            mock_post.return_value.__aenter__.return_value = mock_response(
                status=429, text="RESOURCE_EXHAUSTED"
            )

            with pytest.raises(RateLimitError):
                await self.adapter.generate("text", "system")

    def test_api_url_contains_model(self):
        assert "gemini-1.5-flash:generateContent" in self.adapter.api_url


class TestClassifierAdapter:
    """ClassifierAdapter のテスト"""

    def setup_method(self):
        self.adapter = ClassifierAdapter(base_url="http://ml.test/", timeout=5)

    @pytest.mark.asyncio
    async def test_analyze_success(self):
        data = {
            "primary_emotion": "Sadness",
            "secondary_emotion": "Grief",
            "intensity": 0.8,
            "all_scores": [
                {"label": "sadness", "score": 0.72},
                {"label": "grief", "score": 0.2},
            ],
        }

        with patch("aiohttp.ClientSession.post") as mock_post:
            mock_post.return_value.__aenter__.return_value = mock_response(data=data)

            snapshot = await self.adapter.analyze("I miss her")

            assert mock_post.call_args.args[0] == "http://ml.test/analyze"
            assert mock_post.call_args.kwargs["json"] == {"text": "I miss her"}
            assert snapshot.primary_emotion == "sadness"
            assert snapshot.secondary_emotion == "grief"
            assert snapshot.intensity == 0.8
            assert snapshot.confidence == 0.72
            assert snapshot.scene_metaphor == ""

    @pytest.mark.asyncio
    async def test_missing_scores_default_confidence(self):
        with patch("aiohttp.ClientSession.post") as mock_post:
            mock_post.return_value.__aenter__.return_value = mock_response(
                data={"primary_emotion": "joy", "intensity": 0.6}
            )

            snapshot = await self.adapter.analyze("yay")

            assert snapshot.confidence == 0.5
            assert snapshot.secondary_emotion is None

    @pytest.mark.asyncio
    async def test_missing_primary_is_unavailable(self):
        with patch("aiohttp.ClientSession.post") as mock_post:
            mock_post.return_value.__aenter__.return_value = mock_response(data={"intensity": 0.6})

            with pytest.raises(ProviderUnavailableError):
                await self.adapter.analyze("text")

    @pytest.mark.asyncio
    async def test_unreachable(self):
        with patch("aiohttp.ClientSession.post", side_effect=aiohttp.ClientError("down")):
            with pytest.raises(ProviderUnavailableError):
                await self.adapter.analyze("text")

            assert await self.adapter.health_check() is False

    def test_name(self):
        assert self.adapter.name == "classifier:http://ml.test"


class TestFalImageGenerator:
    """FalImageGenerator のテスト"""

    def setup_method(self):
        self.generator = FalImageGenerator(api_key="fal-test")

    @pytest.mark.asyncio
    async def test_submit(self):
        with patch("aiohttp.ClientSession.request") as mock_request:
            mock_request.return_value.__aenter__.return_value = mock_response(
                status=202, data={"request_id": "abc"}
            )

            result = await self.generator.submit("a lake", "blurry")

            assert result == {"request_id": "abc"}
            method, url = mock_request.call_args.args
            kwargs = mock_request.call_args.kwargs
            assert method == "POST"
            assert url == "https://queue.fal.run/fal-ai/fast-sdxl"
            assert kwargs["headers"]["Authorization"] == "Key fal-test"
            assert kwargs["json"]["prompt"] == "a lake"
            assert kwargs["json"]["negative_prompt"] == "blurry"
            assert kwargs["json"]["image_size"] == "landscape_16_9"

    @pytest.mark.asyncio
    async def test_status_and_result(self):
        with patch("aiohttp.ClientSession.request") as mock_request:
            mock_request.return_value.__aenter__.return_value = mock_response(
                data={"status": "COMPLETED"}
            )
            assert await self.generator.status("abc") == "COMPLETED"
            assert mock_request.call_args.args[1].endswith("/requests/abc/status")

            mock_request.return_value.__aenter__.return_value = mock_response(
                data={"images": [{"url": "https://fal.media/out.png"}]}
            )
            assert await self.generator.result("abc") == "https://fal.media/out.png"
            assert mock_request.call_args.args[1].endswith("/requests/abc")

    @pytest.mark.asyncio
    async def test_result_without_image(self):
        with patch("aiohttp.ClientSession.request") as mock_request:
            mock_request.return_value.__aenter__.return_value = mock_response(data={"images": []})

            with pytest.raises(ImageGenerationError):
                await self.generator.result("abc")

    @pytest.mark.asyncio
    async def test_http_error(self):
        with patch("aiohttp.ClientSession.request") as mock_request:
            mock_request.return_value.__aenter__.return_value = mock_response(
                status=401, text="unauthorized"
            )

            with pytest.raises(ExternalServiceError) as exc_info:
                await self.generator.submit("a lake")

            assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_health_check(self):
        assert await self.generator.health_check() is True
        assert await FalImageGenerator(api_key="").health_check() is False

    def test_model_name(self):
        assert self.generator.model_name == "fal-ai/fast-sdxl"
