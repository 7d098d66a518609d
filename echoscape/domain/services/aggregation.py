"""
感情の集約
複数スナップショットから頻度重み付きの感情ベクトルを作る
"""

from collections.abc import Iterable, Mapping
from typing import Any

from ..models.emotion import EmotionSnapshot, EmotionVector, PrimaryEmotion


DEFAULT_VECTOR: EmotionVector = {PrimaryEmotion.CALM.value: 0.5}


def aggregate(snapshots: Iterable[EmotionSnapshot | Mapping[str, Any]]) -> EmotionVector:
    """
    スナップショットを感情ベクトルに集約

    ラベルごとに (出現数 / 総数) × 平均強度。単純平均ではなく、
    頻繁かつ強く現れた感情ほど大きくなる。空なら {"calm": 0.5}。
    """
    items = [_as_snapshot(s) for s in snapshots if s is not None]
    if not items:
        return dict(DEFAULT_VECTOR)

    # dict の挿入順 = 初出順
    intensities: dict[str, list[float]] = {}
    for snapshot in items:
        intensities.setdefault(snapshot.primary_emotion, []).append(snapshot.intensity)

    total = len(items)
    return {
        emotion: (len(values) / total) * (sum(values) / len(values))
        for emotion, values in intensities.items()
    }


def get_primary_emotion(vector: Mapping[str, float]) -> str:
    """
    最大値のラベルを返す

    同点は初出（挿入順で先）のラベルが勝つ。正の値がなければ "calm"。
    """
    primary, _ = dominant_entry(vector)
    return primary


def dominant_entry(vector: Mapping[str, float]) -> tuple[str, float]:
    """(最大ラベル, その値) を返す"""
    primary = PrimaryEmotion.CALM.value
    max_score = 0.0
    for emotion, score in vector.items():
        if score > max_score:
            max_score = score
            primary = emotion
    return primary, max_score


def _as_snapshot(value: EmotionSnapshot | Mapping[str, Any]) -> EmotionSnapshot:
    if isinstance(value, EmotionSnapshot):
        return value
    return EmotionSnapshot.from_dict(dict(value))
