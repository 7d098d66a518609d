"""
OpenAI AIアダプター
OpenAI Chat Completions API への接続実装
"""

import asyncio

import aiohttp

from ...core.exceptions import ExternalServiceError, error_from_status
from ...domain.ports.ai_port import ChatMessage, IAIProvider


class OpenAIAdapter(IAIProvider):
    """
    OpenAI AIアダプター

    OpenAI APIを使用してAI応答を生成。
    gpt-4o-mini をデフォルトモデルとして使用。
    """

    SERVICE_NAME = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        timeout: int = 60,
        base_url: str = "https://api.openai.com/v1",
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.base_url = base_url

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
            RateLimitError: HTTP 429
            ExternalServiceError: その他のAPI呼び出し失敗時
        """
        # メッセージリストを構築
        messages = [{"role": "system", "content": system_prompt}]

        if conversation_history:
            for msg in conversation_history:
                messages.append({"role": msg.role, "content": msg.content})

        messages.append({"role": "user", "content": message})

        request_body = {
            "model": self.model,
            "messages": messages,
        }

        if max_tokens:
            request_body["max_tokens"] = max_tokens
        if temperature is not None:
            request_body["temperature"] = temperature
        if json_mode:
            request_body["response_format"] = {"type": "json_object"}

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        timeout = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    f"{self.base_url}/chat/completions",
                    headers=headers,
                    json=request_body,
                ) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise error_from_status(
                            f"OpenAI API error: HTTP {response.status} - {error_text}",
                            self.SERVICE_NAME,
                            response.status,
                        )

                    response_data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ExternalServiceError(
                f"OpenAI API connection error: {e}", service_name=self.SERVICE_NAME
            ) from e

        if "choices" not in response_data or not response_data["choices"]:
            raise ExternalServiceError("No choices in OpenAI response", service_name=self.SERVICE_NAME)

        choice = response_data["choices"][0]
        if "message" not in choice or "content" not in choice["message"]:
            raise ExternalServiceError(
                "Invalid response structure from OpenAI API", service_name=self.SERVICE_NAME
            )

        response_text = choice["message"]["content"]

        if not response_text or not response_text.strip():
            raise ExternalServiceError("Empty response from OpenAI API", service_name=self.SERVICE_NAME)

        return response_text

    async def health_check(self) -> bool:
        """
        OpenAI APIの健全性チェック

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
