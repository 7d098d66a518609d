"""
Domain Ports
依存性逆転のためのインターフェース定義
"""

from .ai_port import ChatMessage, IAIProvider
from .emotion_port import IEmotionProvider
from .image_port import IImageGenerator
from .storage_port import ISessionStore

__all__ = [
    "ChatMessage",
    "IAIProvider",
    "IEmotionProvider",
    "IImageGenerator",
    "ISessionStore",
]
