"""
セッションモデル
ジャーナリングセッションとメッセージ
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .emotion import EmotionSnapshot


class MessageRole(Enum):
    """メッセージの話者"""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class JournalMessage:
    """個別メッセージ"""

    id: str
    session_id: str
    role: str  # "user" or "assistant"
    content: str
    emotion_snapshot: EmotionSnapshot | None = None
    patterns_detected: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "role": self.role,
            "content": self.content,
            "emotion_snapshot": self.emotion_snapshot.to_dict() if self.emotion_snapshot else None,
            "patterns_detected": list(self.patterns_detected),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JournalMessage":
        snapshot = data.get("emotion_snapshot")
        return cls(
            id=data["id"],
            session_id=data["session_id"],
            role=data["role"],
            content=data["content"],
            emotion_snapshot=EmotionSnapshot.from_dict(snapshot) if snapshot else None,
            patterns_detected=list(data.get("patterns_detected") or []),
            created_at=datetime.fromisoformat(data.get("created_at", datetime.now().isoformat())),
        )


@dataclass
class JournalSession:
    """
    ジャーナリングセッション

    パイプラインの出力（感情・ビジュアル・画像URL）を長期保持する唯一の所有者。
    """

    id: str
    user_id: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    ended_at: datetime | None = None

    # コンテンツ
    summary: str | None = None
    themes: list[str] = field(default_factory=list)
    metaphor: str | None = None
    primary_emotion: str | None = None

    # データ（スナップショットまたは集約済みベクトル）
    emotion_data: dict[str, Any] | None = None
    visual_params: dict[str, Any] | None = None

    # 画像
    original_image_url: str | None = None
    reframed_image_url: str | None = None
    reframe_params: dict[str, Any] | None = None

    # 安全
    crisis_detected: bool = False

    @property
    def is_active(self) -> bool:
        return self.ended_at is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "summary": self.summary,
            "themes": list(self.themes),
            "metaphor": self.metaphor,
            "primary_emotion": self.primary_emotion,
            "emotion_data": self.emotion_data,
            "visual_params": self.visual_params,
            "original_image_url": self.original_image_url,
            "reframed_image_url": self.reframed_image_url,
            "reframe_params": self.reframe_params,
            "crisis_detected": self.crisis_detected,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JournalSession":
        ended_at = data.get("ended_at")
        return cls(
            id=data["id"],
            user_id=data.get("user_id"),
            created_at=datetime.fromisoformat(data.get("created_at", datetime.now().isoformat())),
            updated_at=datetime.fromisoformat(data.get("updated_at", datetime.now().isoformat())),
            ended_at=datetime.fromisoformat(ended_at) if ended_at else None,
            summary=data.get("summary"),
            themes=list(data.get("themes") or []),
            metaphor=data.get("metaphor"),
            primary_emotion=data.get("primary_emotion"),
            emotion_data=data.get("emotion_data"),
            visual_params=data.get("visual_params"),
            original_image_url=data.get("original_image_url"),
            reframed_image_url=data.get("reframed_image_url"),
            reframe_params=data.get("reframe_params"),
            crisis_detected=bool(data.get("crisis_detected", False)),
        )


# update_session で変更可能なフィールド
UPDATABLE_SESSION_FIELDS = frozenset([
    "ended_at",
    "summary",
    "themes",
    "metaphor",
    "primary_emotion",
    "emotion_data",
    "visual_params",
    "original_image_url",
    "reframed_image_url",
    "reframe_params",
    "crisis_detected",
])
