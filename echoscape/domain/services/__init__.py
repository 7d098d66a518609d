"""
Domain Services
感情 → ビジュアル パイプラインのビジネスロジック
"""

from .aggregation import aggregate, get_primary_emotion
from .coach import CoachReplyGenerator
from .crisis import CrisisGate
from .emotion import (
    EmotionAnalysisService,
    GenerativeEmotionProvider,
    KeywordEmotionProvider,
)
from .image import ImageSynthesisClient
from .journal import JournalService, MessageResult, VisualResult
from .polling import PollPolicy, submit_then_poll
from .retry import RetryPolicy, call_with_retry
from .visual import apply_deltas, build_scene_descriptor, map_to_visual_params

__all__ = [
    "CrisisGate",
    "EmotionAnalysisService",
    "GenerativeEmotionProvider",
    "KeywordEmotionProvider",
    "aggregate",
    "get_primary_emotion",
    "map_to_visual_params",
    "apply_deltas",
    "build_scene_descriptor",
    "ImageSynthesisClient",
    "CoachReplyGenerator",
    "JournalService",
    "MessageResult",
    "VisualResult",
    "RetryPolicy",
    "call_with_retry",
    "PollPolicy",
    "submit_then_poll",
]
