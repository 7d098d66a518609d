"""
ビジュアルパラメータサービス
感情ベクトル → ビジュアルパラメータ → シーン記述子（FIBO JSON）の純粋関数群
"""

import math
import random
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from ..models.emotion import EmotionVector, PrimaryEmotion, clamp_unit
from ..models.visual import (
    CameraAngle,
    CameraSpec,
    ColorPalette,
    CompositionSpec,
    LightingSpec,
    PaletteSpec,
    SceneDescriptor,
    SceneType,
    VisualParameters,
)
from .aggregation import dominant_entry


BASE_PARAMS: dict[str, Any] = {
    "scene_type": SceneType.ABSTRACT_LANDSCAPE.value,
    "camera_angle": CameraAngle.MEDIUM.value,
    "light_level": 0.5,
    "color_palette": ColorPalette.NEUTRAL.value,
    "openness": 0.5,
    "contrast": 0.5,
    "warmth": 0.5,
}

# 感情ごとの部分上書き（語彙外の感情は calm を使う）
EMOTION_MAPPINGS: dict[str, dict[str, Any]] = {
    "joy": {
        "light_level": 0.9, "color_palette": ColorPalette.WARM_GOLD.value, "openness": 0.9,
        "warmth": 0.8, "scene_type": SceneType.SUNLIT_MEADOW.value,
        "camera_angle": CameraAngle.WIDE.value,
    },
    "hope": {
        "light_level": 0.8, "color_palette": ColorPalette.WARM_AMBER.value, "openness": 0.8,
        "warmth": 0.7, "scene_type": SceneType.SUNRISE_HORIZON.value,
        "camera_angle": CameraAngle.WIDE_PANORAMIC.value,
    },
    "sadness": {
        "light_level": 0.3, "color_palette": ColorPalette.COOL_BLUE.value, "openness": 0.4,
        "warmth": 0.3, "scene_type": SceneType.MISTY_OCEAN.value,
    },
    "anxiety": {
        "light_level": 0.2, "color_palette": ColorPalette.GRAY_TEAL.value, "openness": 0.2,
        "contrast": 0.8, "scene_type": SceneType.DARK_FOREST.value,
        "camera_angle": CameraAngle.CLOSE.value,
    },
    "anger": {
        "light_level": 0.4, "color_palette": ColorPalette.HOT_RED.value, "openness": 0.2,
        "contrast": 0.9, "scene_type": SceneType.STORMY_VOLCANIC.value,
        "camera_angle": CameraAngle.DRAMATIC_LOW.value,
    },
    "fear": {
        "light_level": 0.1, "color_palette": ColorPalette.DARK_PURPLE.value, "openness": 0.1,
        "contrast": 0.7, "scene_type": SceneType.SHADOWY_CAVERN.value,
        "camera_angle": CameraAngle.TIGHT_CLOSE.value,
    },
    "calm": {
        "light_level": 0.6, "color_palette": ColorPalette.SOFT_BLUE.value, "openness": 0.7,
        "warmth": 0.5, "scene_type": SceneType.PEACEFUL_LAKE.value,
    },
    "confusion": {
        "light_level": 0.4, "color_palette": ColorPalette.MUTED_GRAY.value, "openness": 0.3,
        "contrast": 0.5, "scene_type": SceneType.FOGGY_MAZE.value,
    },
    "love": {
        "light_level": 0.8, "color_palette": ColorPalette.PASTEL_WARM.value, "openness": 0.7,
        "warmth": 0.9, "scene_type": SceneType.BLOSSOMING_GARDEN.value,
        "camera_angle": CameraAngle.SOFT_CLOSE.value,
    },
    "gratitude": {
        "light_level": 0.85, "color_palette": ColorPalette.WARM_GOLD.value, "openness": 0.8,
        "warmth": 0.8, "scene_type": SceneType.GOLDEN_VALLEY.value,
    },
    "peace": {
        "light_level": 0.7, "color_palette": ColorPalette.SOFT_GREEN.value, "openness": 0.8,
        "warmth": 0.5, "contrast": 0.3, "scene_type": SceneType.STILL_MOUNTAIN_LAKE.value,
        "camera_angle": CameraAngle.WIDE.value,
    },
    "loneliness": {
        "light_level": 0.3, "color_palette": ColorPalette.COOL_WHITE.value, "openness": 0.6,
        "warmth": 0.3, "scene_type": SceneType.EMPTY_SHORELINE.value,
        "camera_angle": CameraAngle.WIDE.value,
    },
    "grief": {
        "light_level": 0.2, "color_palette": ColorPalette.DULL_GRAY.value, "openness": 0.3,
        "warmth": 0.2, "contrast": 0.4, "scene_type": SceneType.RAIN_MEMORIAL.value,
    },
    "frustration": {
        "light_level": 0.4, "color_palette": ColorPalette.BOLD_ORANGE.value, "openness": 0.3,
        "contrast": 0.8, "scene_type": SceneType.STORM_CROSSROADS.value,
    },
    "determination": {
        "light_level": 0.7, "color_palette": ColorPalette.EARTH_BROWN.value, "openness": 0.8,
        "contrast": 0.7, "warmth": 0.6, "scene_type": SceneType.MOUNTAIN_SUMMIT.value,
        "camera_angle": CameraAngle.DRAMATIC_UPWARD.value,
    },
}

HIGH_INTENSITY_THRESHOLD = 0.7
CONTRAST_BOOST = 0.2

# 適用順は契約の一部（hope → intensity → openness → warmth → light_level）
DELTA_ORDER: tuple[str, ...] = ("hope", "intensity", "openness", "warmth", "light_level")


def map_to_visual_params(vector: Mapping[str, float]) -> VisualParameters:
    """
    感情ベクトルをビジュアルパラメータに変換（純粋・全域関数）

    支配的な感情の上書きを基本値にマージし、その値が 0.7 を超えれば
    コントラストを +0.2（上限1.0）する。
    """
    dominant, score = dominant_entry(vector or {})
    mapping = EMOTION_MAPPINGS.get(dominant.lower(), EMOTION_MAPPINGS[PrimaryEmotion.CALM.value])

    params = {**BASE_PARAMS, **mapping}
    if score > HIGH_INTENSITY_THRESHOLD:
        params["contrast"] = min(1.0, params["contrast"] + CONTRAST_BOOST)

    return VisualParameters(emotion=dominant, **params)


def apply_deltas(base: VisualParameters, deltas: Mapping[str, float] | None) -> VisualParameters:
    """
    リフレーム用デルタを適用

    各キーは加算的に効き、毎回 [0,1] に丸める。未知キーは無視。
    値が 0 または非有限（NaN, inf）のキーは何もしない（空マップなら base をそのまま返す）。
    """
    if not deltas:
        return base

    light = base.light_level
    warmth = base.warmth
    openness = base.openness
    contrast = base.contrast
    touched = False

    for key in DELTA_ORDER:
        value = deltas.get(key)
        if value is None:
            continue
        amount = float(value)
        if amount == 0 or not math.isfinite(amount):
            continue
        touched = True

        if key == "hope":
            light = clamp_unit(light + amount * 0.4)
            warmth = clamp_unit(_warmth_or_default(warmth) + amount * 0.3)
            openness = clamp_unit(openness + amount * 0.3)
        elif key == "intensity":
            contrast = clamp_unit(contrast + amount * 0.3)
        elif key == "openness":
            openness = clamp_unit(openness + amount)
        elif key == "warmth":
            warmth = clamp_unit(_warmth_or_default(warmth) + amount)
        elif key == "light_level":
            light = clamp_unit(light + amount)

    if not touched:
        return base

    return replace(
        base,
        light_level=light,
        warmth=warmth,
        openness=openness,
        contrast=contrast,
    )


def build_scene_descriptor(params: VisualParameters, metaphor: str) -> SceneDescriptor:
    """
    ビジュアルパラメータとメタファーからシーン記述子を構築（決定的）
    """
    wide = params.openness > 0.5
    temperature = params.warmth if params.warmth is not None else 0.5
    warm = params.warmth is not None and params.warmth > 0.5

    return SceneDescriptor(
        prompt=f"{params.scene_type} representing {metaphor}. Style: cinematic, emotional, 8k render.",
        camera=CameraSpec(
            distance=0.8 if wide else 0.3,
            fov=70 if wide else 40,
            angle=params.camera_angle,
        ),
        lighting=LightingSpec(
            intensity=params.light_level,
            direction="forward",
            color="warm" if warm else "cool",
            temperature=temperature,
        ),
        palette=PaletteSpec(
            mood=params.color_palette,
            temperature=temperature,
            saturation=0.7,
        ),
        composition=CompositionSpec(
            tension=params.contrast,
            openness=params.openness,
            balance="centered",
        ),
    )


def _warmth_or_default(warmth: float | None) -> float:
    return 0.5 if warmth is None else warmth


_UNSPLASH = "https://images.unsplash.com/photo-{}?w=1600&h=900&fit=crop"

# キュレーション済みフォールバック画像（感情ごとに複数候補）
CURATED_IMAGES: dict[str, list[str]] = {
    "joy": [
        _UNSPLASH.format("1507003211169-0a1dd7228f2d"),
        _UNSPLASH.format("1501854140801-50d01698950b"),
        _UNSPLASH.format("1469474968028-56623f02e42e"),
    ],
    "hope": [
        _UNSPLASH.format("1495616811223-4d98c6e9c869"),
        _UNSPLASH.format("1470252649378-9c29740c9fa8"),
        _UNSPLASH.format("1500534314209-a25ddb2bd429"),
    ],
    "sadness": [
        _UNSPLASH.format("1499346030926-9a72daac6c63"),
        _UNSPLASH.format("1428908728789-d2de25dbd4e2"),
        _UNSPLASH.format("1515224526905-51c7d77c7bb8"),
    ],
    "anxiety": [
        _UNSPLASH.format("1425913397330-cf8af2ff40a1"),
        _UNSPLASH.format("1418065460487-3e41a6c84dc5"),
        _UNSPLASH.format("1502082553048-f009c37129b9"),
    ],
    "anger": [
        _UNSPLASH.format("1509635022432-0220ac12960b"),
        _UNSPLASH.format("1527482937786-6f73e8c33f03"),
        _UNSPLASH.format("1534088568595-a066f410bcda"),
    ],
    "fear": [
        _UNSPLASH.format("1518241353330-0f7941c2d9b5"),
        _UNSPLASH.format("1507400492013-162706c8c05e"),
        _UNSPLASH.format("1478760329108-5c3ed9d495a0"),
    ],
    "calm": [
        _UNSPLASH.format("1506905925346-21bda4d32df4"),
        _UNSPLASH.format("1439066615861-d1af74d74000"),
        _UNSPLASH.format("1507525428034-b723cf961d3e"),
    ],
    "confusion": [
        _UNSPLASH.format("1485236715568-ddc5ee6ca227"),
        _UNSPLASH.format("1531315630201-bb15abeb1653"),
        _UNSPLASH.format("1422393462206-207b0fbd8d6b"),
    ],
    "gratitude": [
        _UNSPLASH.format("1470071459604-3b5ec3a7fe05"),
        _UNSPLASH.format("1501854140801-50d01698950b"),
        _UNSPLASH.format("1447752875215-b2761acb3c5d"),
    ],
    "love": [
        _UNSPLASH.format("1518568814500-bf0f8d125f46"),
        _UNSPLASH.format("1516589178581-6cd7833ae3b2"),
        _UNSPLASH.format("1490750967868-88aa4486c946"),
    ],
    "peace": [
        _UNSPLASH.format("1505765050516-f72dcac9c60e"),
        _UNSPLASH.format("1433086966358-54859d0ed716"),
        _UNSPLASH.format("1418065460487-3e41a6c84dc5"),
    ],
    "loneliness": [
        _UNSPLASH.format("1507400492013-162706c8c05e"),
        _UNSPLASH.format("1476611338391-6f395a0ebc7b"),
        _UNSPLASH.format("1499002238440-d264edd596ec"),
    ],
    "frustration": [
        _UNSPLASH.format("1527482937786-6f73e8c33f03"),
        _UNSPLASH.format("1509635022432-0220ac12960b"),
        _UNSPLASH.format("1428908728789-d2de25dbd4e2"),
    ],
    "determination": [
        _UNSPLASH.format("1464822759023-fed622ff2c3b"),
        _UNSPLASH.format("1454496522488-7a8e488e8606"),
        _UNSPLASH.format("1519681393784-d120267933ba"),
    ],
    "grief": [
        _UNSPLASH.format("1499346030926-9a72daac6c63"),
        _UNSPLASH.format("1515224526905-51c7d77c7bb8"),
        _UNSPLASH.format("1428908728789-d2de25dbd4e2"),
    ],
}


def curated_image(emotion: str | None, rng: random.Random | None = None) -> str:
    """
    感情に対応するキュレーション画像を1つ選ぶ

    候補内の一様ランダム選択（意図的なランダム性はここだけ）。
    未知の感情は calm の候補を使う。
    """
    key = (emotion or "").strip().lower()
    candidates = CURATED_IMAGES.get(key) or CURATED_IMAGES[PrimaryEmotion.CALM.value]
    return (rng or random).choice(candidates)


__all__ = [
    "EmotionVector",
    "map_to_visual_params",
    "apply_deltas",
    "build_scene_descriptor",
    "curated_image",
    "CURATED_IMAGES",
    "EMOTION_MAPPINGS",
    "DELTA_ORDER",
]
