"""
ビジュアルモデル
ビジュアルパラメータ、シーン記述子（FIBO JSON）、生成ジョブ
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .emotion import clamp_unit


class SceneType(Enum):
    """シーンタイプ"""

    ABSTRACT_LANDSCAPE = "abstract_landscape"
    SUNLIT_MEADOW = "sunlit_meadow"
    SUNRISE_HORIZON = "sunrise_horizon"
    MISTY_OCEAN = "misty_ocean"
    DARK_FOREST = "dark_forest"
    STORMY_VOLCANIC = "stormy_volcanic"
    SHADOWY_CAVERN = "shadowy_cavern"
    PEACEFUL_LAKE = "peaceful_lake"
    FOGGY_MAZE = "foggy_maze"
    BLOSSOMING_GARDEN = "blossoming_garden"
    EMPTY_SHORELINE = "empty_shoreline"
    RAIN_MEMORIAL = "rain_memorial"
    STORM_CROSSROADS = "storm_crossroads"
    MOUNTAIN_SUMMIT = "mountain_summit"
    GOLDEN_VALLEY = "golden_valley"
    STILL_MOUNTAIN_LAKE = "still_mountain_lake"


class CameraAngle(Enum):
    """カメラアングル"""

    WIDE = "wide"
    MEDIUM = "medium"
    CLOSE = "close"
    DRAMATIC_LOW = "dramatic_low"
    DRAMATIC_UPWARD = "dramatic_upward"
    SOFT_CLOSE = "soft_close"
    TIGHT_CLOSE = "tight_close"
    WIDE_PANORAMIC = "wide_panoramic"


class ColorPalette(Enum):
    """カラーパレット"""

    NEUTRAL = "neutral"
    WARM_GOLD = "warm_gold"
    WARM_AMBER = "warm_amber"
    COOL_BLUE = "cool_blue"
    GRAY_TEAL = "gray_teal"
    HOT_RED = "hot_red"
    DARK_PURPLE = "dark_purple"
    SOFT_BLUE = "soft_blue"
    MUTED_GRAY = "muted_gray"
    PASTEL_WARM = "pastel_warm"
    COOL_WHITE = "cool_white"
    DULL_GRAY = "dull_gray"
    BOLD_ORANGE = "bold_orange"
    SOFT_GREEN = "soft_green"
    EARTH_BROWN = "earth_brown"


class JobStatus(Enum):
    """画像生成ジョブの状態"""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class VisualParameters:
    """
    ビジュアルパラメータ

    感情ベクトル（と任意のデルタ）から導出される値。
    マッパー / デルタ適用以外で直接編集しない。
    """

    scene_type: str = SceneType.ABSTRACT_LANDSCAPE.value
    camera_angle: str = CameraAngle.MEDIUM.value
    light_level: float = 0.5
    color_palette: str = ColorPalette.NEUTRAL.value
    openness: float = 0.5
    contrast: float = 0.5
    warmth: float | None = 0.5
    emotion: str = "calm"

    def __post_init__(self):
        for name in ("light_level", "openness", "contrast"):
            object.__setattr__(self, name, clamp_unit(getattr(self, name), 0.5))
        if self.warmth is not None:
            object.__setattr__(self, "warmth", clamp_unit(self.warmth, 0.5))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VisualParameters":
        known = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class CameraSpec:
    distance: float
    fov: int
    angle: str


@dataclass(frozen=True)
class LightingSpec:
    intensity: float
    direction: str
    color: str
    temperature: float


@dataclass(frozen=True)
class PaletteSpec:
    mood: str
    temperature: float
    saturation: float


@dataclass(frozen=True)
class CompositionSpec:
    tension: float
    openness: float
    balance: str


@dataclass(frozen=True)
class SceneDescriptor:
    """
    シーン記述子（FIBO JSON）

    VisualParameters + メタファーの純粋な射影。独立したライフサイクルは持たない。
    """

    prompt: str
    camera: CameraSpec
    lighting: LightingSpec
    palette: PaletteSpec
    composition: CompositionSpec
    style: str = "cinematic_emotional"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_prompt(self) -> str:
        """画像生成プロバイダー向けのテキストプロンプトに変換"""
        light_desc = "bright, well-lit" if self.lighting.intensity > 0.6 else "dim, atmospheric"
        color_desc = "warm golden tones" if self.lighting.color == "warm" else "cool blue tones"
        open_desc = "vast, expansive" if self.composition.openness > 0.5 else "intimate, enclosed"

        return (
            f"{self.prompt}. {light_desc}, {color_desc}, {open_desc}. "
            "Cinematic photography, ultra detailed, 8k resolution, emotional atmosphere."
        )


@dataclass(frozen=True)
class ReframeParams:
    """リフレーム用パラメータ（0-1 または 0-100 のどちらでも受け付ける）"""

    hope_level: float
    intensity_level: float

    def __post_init__(self):
        for name in ("hope_level", "intensity_level"):
            value = float(getattr(self, name))
            if value > 1.0:
                value = value / 100.0
            object.__setattr__(self, name, clamp_unit(value))

    def mood_prompt(self) -> str:
        """希望度・強度から簡易ムードプロンプトを構築"""
        mood = "hopeful, bright, divine light" if self.hope_level > 0.6 else "moody, atmospheric"
        intensity = (
            "intense, vibrant, high contrast"
            if self.intensity_level > 0.6
            else "soft, muted, pastel"
        )
        return f"A landscape transformation, {mood}, {intensity}, artistic masterpiece, 8k"


@dataclass
class GenerationJob:
    """外部画像生成ジョブのハンドル（1回の合成呼び出しの間だけ存在、保存しない）"""

    request_id: str
    submitted_at: datetime = field(default_factory=datetime.now)
    status: JobStatus = JobStatus.PENDING
    image_url: str | None = None
    attempts: int = 0
