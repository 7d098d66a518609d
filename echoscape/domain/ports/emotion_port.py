"""
感情プロバイダーポート
感情分類器・生成モデル・オフラインヒューリスティックを同じ形で扱う
"""

from abc import ABC, abstractmethod

from ..models.emotion import EmotionSnapshot


class IEmotionProvider(ABC):
    """
    感情プロバイダーインターフェース

    カスケードはこのインターフェースの順序付きリストとして構成される。
    """

    @abstractmethod
    async def analyze(self, text: str) -> EmotionSnapshot:
        """
        テキストの感情を解析

        Args:
            text: 解析するテキスト

        Returns:
            EmotionSnapshot: 解析結果

        Raises:
            ExternalServiceError: プロバイダー失敗時（RateLimitError は一時的エラー）
        """

    @property
    @abstractmethod
    def name(self) -> str:
        """プロバイダー名（ログ用）"""
