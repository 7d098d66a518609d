"""
EchoScape - 感情の指紋から風景を描くジャーナリングAIコンパニオン

- 危機ゲート: メッセージごとに決定的なキーワード走査
- 感情解析カスケード: 感情分類器 → 生成モデル → 中性フォールバック
- ビジュアル合成: 感情ベクトル → ビジュアルパラメータ → シーン記述子 → 画像
"""

from importlib import metadata
from pathlib import Path
import tomllib

_pyproject = Path(__file__).resolve().parent.parent / "pyproject.toml"
if _pyproject.exists():
    with _pyproject.open("rb") as _f:
        __version__: str = tomllib.load(_f)["project"]["version"]
else:
    __version__ = metadata.version("echoscape")

# ===== Domain Models =====
from .domain.models import (
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

# ===== Ports (Interfaces) =====
from .domain.ports import (
    IAIProvider,
    IEmotionProvider,
    IImageGenerator,
    ISessionStore,
)

# ===== Domain Services =====
from .domain.services import (
    CrisisGate,
    EmotionAnalysisService,
    ImageSynthesisClient,
    JournalService,
    aggregate,
    apply_deltas,
    build_scene_descriptor,
    get_primary_emotion,
    map_to_visual_params,
)


# ===== Adapters (lazy import) =====
# アダプターは aiohttp に依存するため遅延インポート
def get_openai_adapter():
    from .adapters.ai.openai import OpenAIAdapter

    return OpenAIAdapter


def get_gemini_adapter():
    from .adapters.ai.gemini import GeminiAdapter

    return GeminiAdapter


def get_fal_image_generator():
    from .adapters.image.fal import FalImageGenerator

    return FalImageGenerator


def get_file_session_store():
    from .adapters.storage.file import FileSessionStore

    return FileSessionStore


__all__ = [
    # Version
    "__version__",
    # Domain Models
    "PrimaryEmotion",
    "EmotionSnapshot",
    "EmotionVector",
    "CrisisResult",
    "VisualParameters",
    "SceneDescriptor",
    "ReframeParams",
    "JournalSession",
    "JournalMessage",
    # Domain Services
    "CrisisGate",
    "EmotionAnalysisService",
    "ImageSynthesisClient",
    "JournalService",
    "aggregate",
    "get_primary_emotion",
    "map_to_visual_params",
    "apply_deltas",
    "build_scene_descriptor",
    # Ports
    "IAIProvider",
    "IEmotionProvider",
    "IImageGenerator",
    "ISessionStore",
    # Adapters (lazy)
    "get_openai_adapter",
    "get_gemini_adapter",
    "get_fal_image_generator",
    "get_file_session_store",
]
