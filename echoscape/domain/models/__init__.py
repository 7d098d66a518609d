"""
Domain Models
パイプライン内で生成・消費される値型
"""

from .emotion import (
    CrisisResult,
    EmotionSnapshot,
    EmotionVector,
    PrimaryEmotion,
    SecondaryEmotion,
)
from .session import (
    JournalMessage,
    JournalSession,
    MessageRole,
)
from .visual import (
    CameraAngle,
    ColorPalette,
    GenerationJob,
    JobStatus,
    ReframeParams,
    SceneDescriptor,
    SceneType,
    VisualParameters,
)

__all__ = [
    # 感情
    "PrimaryEmotion",
    "SecondaryEmotion",
    "EmotionSnapshot",
    "EmotionVector",
    "CrisisResult",
    # ビジュアル
    "SceneType",
    "CameraAngle",
    "ColorPalette",
    "VisualParameters",
    "SceneDescriptor",
    "ReframeParams",
    "GenerationJob",
    "JobStatus",
    # セッション
    "MessageRole",
    "JournalMessage",
    "JournalSession",
]
