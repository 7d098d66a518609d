"""
Gemini AIアダプター
Google Gemini APIへの接続実装
"""

import asyncio

import aiohttp

from ...core.exceptions import ExternalServiceError, error_from_status
from ...domain.ports.ai_port import ChatMessage, IAIProvider


class GeminiAdapter(IAIProvider):
    """
    Gemini AIアダプター

    Google Gemini APIを使用してAI応答を生成。
    """

    SERVICE_NAME = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        timeout: int = 60,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.api_url = (
            f"https://generativelanguage.googleapis.com/v1beta/models/"
            f"{model}:generateContent"
        )

    async def generate(
        self,
        message: str,
        system_prompt: str,
        max_tokens: int | None = None,
        conversation_history: list[ChatMessage] | None = None,
        json_mode: bool = False,
        temperature: float | None = None,
    ) -> str:
        """
        AI応答を生成

        Raises:
            RateLimitError: HTTP 429 / RESOURCE_EXHAUSTED
            ExternalServiceError: その他のAPI呼び出し失敗時
        """
        contents = []
        if conversation_history:
            for msg in conversation_history:
                # Gemini はアシスタントを "model" と呼ぶ
                role = "model" if msg.role == "assistant" else "user"
                contents.append({"role": role, "parts": [{"text": msg.content}]})
        contents.append({"role": "user", "parts": [{"text": message}]})

        request_body = {
            "contents": contents,
            "systemInstruction": {
                "role": "system",
                "parts": [{"text": system_prompt}]
            }
        }

        generation_config = {}
        if max_tokens:
            generation_config["maxOutputTokens"] = max_tokens
        if temperature is not None:
            generation_config["temperature"] = temperature
        if json_mode:
            generation_config["responseMimeType"] = "application/json"
        if generation_config:
            request_body["generationConfig"] = generation_config

        timeout = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    self.api_url,
                    params={"key": self.api_key},
                    json=request_body,
                ) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise error_from_status(
                            f"Gemini API error: HTTP {response.status} - {error_text}",
                            self.SERVICE_NAME,
                            response.status,
                        )

                    response_data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ExternalServiceError(
                f"Gemini API connection error: {e}", service_name=self.SERVICE_NAME
            ) from e

        if "candidates" not in response_data or not response_data["candidates"]:
            raise ExternalServiceError("No candidates in Gemini response", service_name=self.SERVICE_NAME)

        candidate = response_data["candidates"][0]
        parts = (candidate.get("content") or {}).get("parts") or []
        if not parts:
            # finishReason: SAFETY などで本文が返らない
            reason = candidate.get("finishReason") or "unknown"
            raise ExternalServiceError(
                f"Invalid response structure from Gemini API (finishReason: {str(reason).lower()})",
                service_name=self.SERVICE_NAME,
            )

        response_text = parts[0].get("text") or ""

        if not response_text.strip():
            raise ExternalServiceError("Empty response from Gemini API", service_name=self.SERVICE_NAME)

        return response_text

    async def health_check(self) -> bool:
        """
        Gemini APIの健全性チェック

        Returns:
            bool: 正常に動作しているか
        """
        try:
            response = await self.generate(
                message="Hello",
                system_prompt="Reply with 'OK' only.",
                max_tokens=10,
            )
            return len(response) > 0
        except ExternalServiceError:
            return False

    @property
    def model_name(self) -> str:
        """使用中のモデル名"""
        return self.model
