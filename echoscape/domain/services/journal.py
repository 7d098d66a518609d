"""
ジャーナリングサービス
危機ゲート → 感情解析 → ビジュアル → 画像 → 返答 のパイプラインを
1メッセージずつ順番に実行し、結果をセッションに保存する
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ...core.exceptions import (
    InvalidStateError,
    SessionNotFoundError,
    ValidationError,
)
from ...core.logging import get_logger, log_business_event
from ..models.emotion import CrisisResult, EmotionSnapshot, EmotionVector
from ..models.session import JournalMessage, JournalSession, MessageRole
from ..models.visual import ReframeParams, SceneDescriptor, VisualParameters
from ..ports.storage_port import ISessionStore
from .aggregation import aggregate, get_primary_emotion
from .coach import CoachReplyGenerator
from .crisis import CrisisGate
from .emotion import EmotionAnalysisService
from .image import ImageSynthesisClient
from .visual import apply_deltas, build_scene_descriptor, map_to_visual_params

logger = get_logger("domain.journal")


SAFETY_MESSAGE = (
    "I hear how much pain you're in, and I want you to be safe. "
    "Please reach out to a professional or a crisis support line right away. "
    "You don't have to carry this alone."
)

DEFAULT_METAPHOR = "A moment of reflection and self-discovery"
HOPE_SUFFIX = " with a sense of hope emerging"
OPENNESS_SUFFIX = ", expanding into possibility"


@dataclass
class MessageResult:
    """1メッセージ分のパイプライン結果"""

    user_message: JournalMessage
    assistant_message: JournalMessage
    snapshot: EmotionSnapshot
    crisis: CrisisResult
    visual_params: VisualParameters
    scene_descriptor: SceneDescriptor
    image_url: str

    @property
    def reply(self) -> str:
        return self.assistant_message.content

    @property
    def is_crisis(self) -> bool:
        return self.crisis.is_crisis

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_message": self.user_message.to_dict(),
            "assistant_message": self.assistant_message.to_dict(),
            "emotion": self.snapshot.to_dict(),
            "crisis": self.crisis.to_dict(),
            "visual_params": self.visual_params.to_dict(),
            "scene_descriptor": self.scene_descriptor.to_dict(),
            "image_url": self.image_url,
        }


@dataclass
class VisualResult:
    """ベース / リフレーム画像の生成結果"""

    session_id: str
    image_url: str
    image_type: str  # "base" or "reframed"
    visual_params: VisualParameters
    scene_descriptor: SceneDescriptor
    metaphor: str
    variant_name: str | None = None
    deltas: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "image_url": self.image_url,
            "image_type": self.image_type,
            "visual_params": self.visual_params.to_dict(),
            "scene_descriptor": self.scene_descriptor.to_dict(),
            "metaphor": self.metaphor,
            "variant_name": self.variant_name,
            "deltas": dict(self.deltas),
        }


class JournalService:
    """
    ジャーナリングサービス

    永続化以外のステージは縮退した結果を返すため、ここで例外になるのは
    入力不正・セッション不在・状態不正・永続化エラーのみ。
    """

    def __init__(
        self,
        store: ISessionStore,
        analyzer: EmotionAnalysisService,
        image_client: ImageSynthesisClient,
        coach: CoachReplyGenerator,
        crisis_gate: CrisisGate | None = None,
    ):
        self.store = store
        self.analyzer = analyzer
        self.image_client = image_client
        self.coach = coach
        self.crisis_gate = crisis_gate or CrisisGate()

    async def start_session(self, user_id: str | None = None) -> JournalSession:
        """中性スナップショットとデフォルトのビジュアルでセッションを作成"""
        session = await self.store.create_session(
            user_id=user_id,
            emotion_data=EmotionSnapshot.neutral().to_dict(),
            visual_params=VisualParameters().to_dict(),
        )
        log_business_event(logger, "session_started", session_id=session.id)
        return session

    async def process_message(self, session_id: str, content: str) -> MessageResult:
        """
        ユーザーメッセージを処理

        危機検出時も解析と画像生成は続け、返答だけを安全メッセージに差し替える。

        Raises:
            ValidationError: content が空の場合
            SessionNotFoundError: セッションが存在しない場合
            PersistenceError: メッセージ保存に失敗した場合
        """
        if not content or not content.strip():
            raise ValidationError("Message content is required", field="content")

        session = await self._require_session(session_id)

        # 1. 危機ゲート
        crisis = self.crisis_gate.evaluate(content)
        if crisis.is_crisis:
            log_business_event(
                logger,
                "crisis_detected",
                session_id=session_id,
                keywords=list(crisis.detected_keywords),
                risk_score=crisis.risk_score,
            )

        # 2. 感情解析
        snapshot = await self.analyzer.analyze(content)

        # 3. ビジュアル
        params = map_to_visual_params(snapshot.to_vector())
        metaphor = snapshot.scene_metaphor or f"A representation of {snapshot.primary_emotion}"
        descriptor = build_scene_descriptor(params, metaphor)

        # 4. 画像
        image_url = await self.image_client.generate(descriptor, snapshot.primary_emotion)

        updated = await self.store.update_session(
            session_id,
            {
                "original_image_url": image_url,
                "visual_params": params.to_dict(),
                "metaphor": metaphor,
                "primary_emotion": snapshot.primary_emotion,
                "emotion_data": snapshot.to_dict(),
                "crisis_detected": session.crisis_detected or crisis.is_crisis,
            },
        )
        if updated is None:
            logger.warning(
                "Session update returned nothing, continuing",
                extra={"session_id": session_id},
            )

        # 5. メッセージ保存と返答
        history = await self.store.list_messages(session_id)
        user_message = await self.store.append_message(
            session_id,
            MessageRole.USER.value,
            content,
            snapshot=snapshot,
            patterns_detected=list(crisis.detected_keywords),
        )

        if crisis.is_crisis:
            reply = SAFETY_MESSAGE
        else:
            reply = await self.coach.reply(history, content)

        assistant_message = await self.store.append_message(
            session_id, MessageRole.ASSISTANT.value, reply
        )

        return MessageResult(
            user_message=user_message,
            assistant_message=assistant_message,
            snapshot=snapshot,
            crisis=crisis,
            visual_params=params,
            scene_descriptor=descriptor,
            image_url=image_url,
        )

    async def generate_visual(self, session_id: str) -> VisualResult:
        """セッション全体の感情からベース画像を生成"""
        session = await self._require_session(session_id)

        vector = _stored_vector(session.emotion_data)
        if vector is None:
            messages = await self.store.list_messages(session_id)
            vector = aggregate(_user_snapshots(messages))

        metaphor = session.metaphor or DEFAULT_METAPHOR
        params = map_to_visual_params(vector)
        descriptor = build_scene_descriptor(params, metaphor)
        image_url = await self.image_client.generate(descriptor, params.emotion)

        await self.store.update_session(
            session_id,
            {
                "original_image_url": image_url,
                "visual_params": params.to_dict(),
            },
        )
        log_business_event(
            logger, "visual_generated", session_id=session_id, emotion=params.emotion
        )

        return VisualResult(
            session_id=session_id,
            image_url=image_url,
            image_type="base",
            visual_params=params,
            scene_descriptor=descriptor,
            metaphor=metaphor,
        )

    async def reframe_visual(
        self,
        session_id: str,
        deltas: Mapping[str, float],
        variant_name: str | None = None,
    ) -> VisualResult:
        """
        ベースのビジュアルにデルタを適用してリフレーム画像を生成

        Raises:
            ValidationError: deltas が空の場合
            InvalidStateError: ベースのビジュアルがまだない場合
        """
        if not deltas:
            raise ValidationError("Reframe deltas are required", field="deltas")

        session = await self._require_session(session_id)
        if not session.visual_params:
            raise InvalidStateError(
                "No base visual found; generate a visual first",
                details={"session_id": session_id},
            )

        base = VisualParameters.from_dict(session.visual_params)
        reframed = apply_deltas(base, deltas)

        metaphor = session.metaphor or DEFAULT_METAPHOR
        if deltas.get("light_level", 0) > 0 or deltas.get("warmth", 0) > 0:
            metaphor += HOPE_SUFFIX
        if deltas.get("openness", 0) > 0:
            metaphor += OPENNESS_SUFFIX

        descriptor = build_scene_descriptor(reframed, metaphor)
        image_url = await self.image_client.generate(descriptor, reframed.emotion)

        await self.store.update_session(
            session_id,
            {
                "reframed_image_url": image_url,
                "reframe_params": {
                    "deltas": dict(deltas),
                    "variant_name": variant_name,
                    "visual_params": reframed.to_dict(),
                    "scene_descriptor": descriptor.to_dict(),
                },
            },
        )
        log_business_event(
            logger,
            "visual_reframed",
            session_id=session_id,
            variant_name=variant_name,
        )

        return VisualResult(
            session_id=session_id,
            image_url=image_url,
            image_type="reframed",
            visual_params=reframed,
            scene_descriptor=descriptor,
            metaphor=metaphor,
            variant_name=variant_name,
            deltas=dict(deltas),
        )

    async def reframe_image(
        self, session_id: str, hope_level: float, intensity_level: float
    ) -> str:
        """希望度・強度だけで簡易リフレーム（失敗時は元画像を維持）"""
        session = await self._require_session(session_id)
        params = ReframeParams(hope_level=hope_level, intensity_level=intensity_level)

        image_url = await self.image_client.reframe(
            params,
            original_url=session.original_image_url,
            emotion_hint=session.primary_emotion,
        )
        await self.store.update_session(
            session_id,
            {
                "reframed_image_url": image_url,
                "reframe_params": {
                    "hope_level": params.hope_level,
                    "intensity_level": params.intensity_level,
                },
            },
        )
        return image_url

    async def complete_session(
        self, session_id: str, summary: str | None = None
    ) -> JournalSession:
        """
        セッションを終了

        ユーザーメッセージのスナップショットを集約して最終的な感情ベクトルと
        主要感情を保存する。

        Raises:
            InvalidStateError: 既に終了している場合
        """
        session = await self._require_session(session_id)
        if not session.is_active:
            raise InvalidStateError(
                "Session already completed", details={"session_id": session_id}
            )

        messages = await self.store.list_messages(session_id)
        vector = aggregate(_user_snapshots(messages))
        primary = get_primary_emotion(vector)

        patch: dict[str, Any] = {
            "ended_at": datetime.now(),
            "emotion_data": vector,
            "primary_emotion": primary,
        }
        if summary:
            patch["summary"] = summary

        updated = await self.store.update_session(session_id, patch)
        if updated is None:
            raise SessionNotFoundError(session_id)

        log_business_event(
            logger,
            "session_completed",
            session_id=session_id,
            primary_emotion=primary,
            message_count=len(messages),
        )
        return updated

    async def _require_session(self, session_id: str) -> JournalSession:
        session = await self.store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session


def _user_snapshots(messages: list[JournalMessage]) -> list[EmotionSnapshot]:
    return [
        m.emotion_snapshot
        for m in messages
        if m.role == MessageRole.USER.value and m.emotion_snapshot is not None
    ]


def _stored_vector(emotion_data: dict[str, Any] | None) -> EmotionVector | None:
    """emotion_data が集約済みベクトル（ラベル -> 数値）ならそれを返す"""
    if not emotion_data:
        return None
    if all(
        isinstance(v, (int, float)) and not isinstance(v, bool)
        for v in emotion_data.values()
    ):
        return {str(k): float(v) for k, v in emotion_data.items()}
    return None
