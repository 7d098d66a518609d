"""
画像生成ポート
非同期キュー型の画像生成 API を抽象化
"""

from abc import ABC, abstractmethod


class IImageGenerator(ABC):
    """
    画像生成インターフェース

    submit でジョブを投入し、status でポーリング、result で最終画像URLを取得する。
    """

    @abstractmethod
    async def submit(self, prompt: str, negative_prompt: str | None = None) -> dict:
        """
        生成ジョブを投入

        Returns:
            dict: {"request_id": ...} または即時結果 {"images": [{"url": ...}]}
        """

    @abstractmethod
    async def status(self, request_id: str) -> str:
        """
        ジョブの状態を取得

        Returns:
            str: プロバイダーの状態文字列（"IN_QUEUE", "IN_PROGRESS", "COMPLETED", "FAILED" など）
        """

    @abstractmethod
    async def result(self, request_id: str) -> str:
        """
        完了したジョブの画像URLを取得

        Returns:
            str: 生成画像URL
        """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """使用中のモデル名"""
