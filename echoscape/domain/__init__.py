"""
EchoScape Domain Layer
感情解析・ビジュアル合成のコアロジックとドメインモデル
"""

from __future__ import annotations

from .models import (
    CrisisResult,
    EmotionSnapshot,
    EmotionVector,
    JournalMessage,
    JournalSession,
    PrimaryEmotion,
    ReframeParams,
    SceneDescriptor,
    VisualParameters,
)

__all__ = [
    # 感情
    "PrimaryEmotion",
    "EmotionSnapshot",
    "EmotionVector",
    "CrisisResult",
    # ビジュアル
    "VisualParameters",
    "SceneDescriptor",
    "ReframeParams",
    # セッション
    "JournalSession",
    "JournalMessage",
]
