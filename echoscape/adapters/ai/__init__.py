"""
AI Adapters
生成モデル（OpenAI / Gemini）と感情分類器
"""

from .classifier import ClassifierAdapter
from .gemini import GeminiAdapter
from .openai import OpenAIAdapter

__all__ = [
    "OpenAIAdapter",
    "GeminiAdapter",
    "ClassifierAdapter",
]
