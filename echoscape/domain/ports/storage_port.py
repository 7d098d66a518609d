"""
ストレージポート
セッション・メッセージ永続化のインターフェース
"""

from abc import ABC, abstractmethod
from typing import Any

from ..models.emotion import EmotionSnapshot
from ..models.session import JournalMessage, JournalSession


class ISessionStore(ABC):
    """
    セッションストアインターフェース

    パイプラインが会話文脈を読み、感情・ビジュアルの出力を保存するための
    永続化コラボレーター。実装はファイル、PostgreSQL 等で切り替え可能。
    ここで発生したエラーは呼び出し元へ伝播させる。
    """

    @abstractmethod
    async def create_session(
        self, user_id: str | None = None, **fields: Any
    ) -> JournalSession:
        """
        セッションを作成

        Args:
            user_id: ユーザーID（任意）
            **fields: 初期値

        Returns:
            JournalSession: 作成したセッション
        """

    @abstractmethod
    async def get_session(self, session_id: str) -> JournalSession | None:
        """
        セッションを取得

        Returns:
            Optional[JournalSession]: セッション（存在しない場合None）
        """

    @abstractmethod
    async def update_session(
        self, session_id: str, patch: dict[str, Any]
    ) -> JournalSession | None:
        """
        セッションを部分更新

        Returns:
            Optional[JournalSession]: 更新後のセッション（存在しない場合None）
        """

    @abstractmethod
    async def append_message(
        self,
        session_id: str,
        role: str,
        content: str,
        snapshot: EmotionSnapshot | None = None,
        patterns_detected: list[str] | None = None,
    ) -> JournalMessage:
        """
        メッセージを追加

        Raises:
            SessionNotFoundError: セッションが存在しない場合
        """

    @abstractmethod
    async def list_messages(self, session_id: str) -> list[JournalMessage]:
        """
        セッションのメッセージを作成順に取得

        Returns:
            List[JournalMessage]: メッセージリスト（存在しない場合は空）
        """
