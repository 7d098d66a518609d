"""
fal.ai 画像生成アダプター
キュー API（submit → status → result）への接続実装
"""

import asyncio
from typing import Any

import aiohttp

from ...core.exceptions import ImageGenerationError, error_from_status
from ...domain.ports.image_port import IImageGenerator


class FalImageGenerator(IImageGenerator):
    """
    fal.ai 画像生成アダプター

    ポーリング自体は行わない。待機とタイムアウトは呼び出し側のポリシーが持つ。
    """

    SERVICE_NAME = "fal"

    def __init__(
        self,
        api_key: str,
        model_url: str = "https://queue.fal.run/fal-ai/fast-sdxl",
        timeout: int = 30,
        image_size: str = "landscape_16_9",
        num_inference_steps: int = 25,
        guidance_scale: float = 7.5,
    ):
        self.api_key = api_key
        self.model_url = model_url.rstrip("/")
        self.timeout = timeout
        self.image_size = image_size
        self.num_inference_steps = num_inference_steps
        self.guidance_scale = guidance_scale

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Key {self.api_key}",
            "Content-Type": "application/json",
        }

    async def submit(self, prompt: str, negative_prompt: str | None = None) -> dict:
        body: dict[str, Any] = {
            "prompt": prompt,
            "image_size": self.image_size,
            "num_inference_steps": self.num_inference_steps,
            "guidance_scale": self.guidance_scale,
        }
        if negative_prompt:
            body["negative_prompt"] = negative_prompt

        return await self._request("POST", self.model_url, json=body)

    async def status(self, request_id: str) -> str:
        data = await self._request("GET", f"{self.model_url}/requests/{request_id}/status")
        return str(data.get("status") or "")

    async def result(self, request_id: str) -> str:
        data = await self._request("GET", f"{self.model_url}/requests/{request_id}")
        images = data.get("images") or []
        if not images or not images[0].get("url"):
            raise ImageGenerationError("No image in fal result", request_id=request_id)
        return images[0]["url"]

    async def _request(self, method: str, url: str, json: dict | None = None) -> dict:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(
                    method, url, headers=self._headers, json=json
                ) as response:
                    if response.status not in (200, 201, 202):
                        error_text = await response.text()
                        raise error_from_status(
                            f"fal API error: HTTP {response.status} - {error_text}",
                            self.SERVICE_NAME,
                            response.status,
                        )
                    return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ImageGenerationError(
                f"fal API connection error: {e}", service_name=self.SERVICE_NAME
            ) from e

    async def health_check(self) -> bool:
        """認証情報の有無のみ確認（生成ジョブは投入しない）"""
        return bool(self.api_key)

    @property
    def model_name(self) -> str:
        return "/".join(self.model_url.split("/")[-2:])
