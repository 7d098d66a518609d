"""
感情分類器アダプター
外部の感情分類マイクロサービス（POST /analyze）への接続実装
"""

import asyncio
from typing import Any

import aiohttp

from ...core.exceptions import (
    ExternalServiceError,
    ProviderUnavailableError,
    error_from_status,
)
from ...domain.models.emotion import EmotionSnapshot, clamp_unit
from ...domain.ports.emotion_port import IEmotionProvider


class ClassifierAdapter(IEmotionProvider):
    """
    感情分類器アダプター

    1回の同期的な呼び出しのみ（リトライはしない）。
    応答: {primary_emotion, secondary_emotion, intensity, all_scores: [{label, score}]}
    """

    SERVICE_NAME = "classifier"

    def __init__(self, base_url: str, timeout: int = 10):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def name(self) -> str:
        return f"classifier:{self.base_url}"

    async def analyze(self, text: str) -> EmotionSnapshot:
        """
        Raises:
            ProviderUnavailableError: 接続失敗、または主要感情が返らない場合
            ExternalServiceError: HTTPエラー
        """
        data = await self._post({"text": text})

        primary = str(data.get("primary_emotion") or "").strip().lower()
        if not primary:
            raise ProviderUnavailableError(
                "Classifier returned no primary emotion", service_name=self.SERVICE_NAME
            )

        secondary = data.get("secondary_emotion")
        return EmotionSnapshot(
            primary_emotion=primary,
            secondary_emotion=str(secondary).strip().lower() if secondary else None,
            intensity=clamp_unit(data.get("intensity"), 0.5),
            confidence=_top_score(data.get("all_scores")),
        )

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(f"{self.base_url}/analyze", json=payload) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise error_from_status(
                            f"Classifier error: HTTP {response.status} - {error_text}",
                            self.SERVICE_NAME,
                            response.status,
                        )
                    data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProviderUnavailableError(
                f"Classifier unreachable: {e}", service_name=self.SERVICE_NAME
            ) from e

        if not isinstance(data, dict):
            raise ExternalServiceError("Invalid classifier response", service_name=self.SERVICE_NAME)
        return data

    async def health_check(self) -> bool:
        """分類器の健全性チェック"""
        try:
            await self._post({"text": "hello"})
            return True
        except ExternalServiceError:
            return False


def _top_score(all_scores: Any) -> float:
    """all_scores の最大スコア（なければ 0.5）"""
    if not all_scores:
        return 0.5
    scores = [
        clamp_unit(item.get("score"), 0.0)
        for item in all_scores
        if isinstance(item, dict)
    ]
    return max(scores) if scores else 0.5
