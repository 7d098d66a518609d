"""
画像合成クライアント
生成ジョブの投入・ポーリングを行い、失敗時はキュレーション画像に縮退する
"""

from ...core.logging import get_logger, log_business_event
from ..models.visual import JobStatus, ReframeParams, SceneDescriptor
from ..ports.image_port import IImageGenerator
from .polling import PollPolicy, submit_then_poll
from .visual import curated_image

logger = get_logger("domain.image")


NEGATIVE_PROMPT = "blurry, low quality, text, watermark, ugly, distorted, nsfw"


class ImageSynthesisClient:
    """
    画像合成クライアント

    generate / reframe は決して例外を送出しない。画像生成は会話の
    付加価値であり、失敗してもキュレーション画像（または元画像）を返す。
    """

    def __init__(
        self,
        generator: IImageGenerator | None = None,
        poll_policy: PollPolicy | None = None,
    ):
        self.generator = generator
        self.poll_policy = poll_policy or PollPolicy()

    @property
    def is_configured(self) -> bool:
        return self.generator is not None

    async def generate(
        self, descriptor: SceneDescriptor, emotion_hint: str | None = None
    ) -> str:
        """
        シーン記述子から画像を生成

        Args:
            descriptor: シーン記述子
            emotion_hint: フォールバック画像選択用の支配的感情

        Returns:
            str: 生成画像URL（失敗時はキュレーション画像URL）
        """
        url = await self._run(descriptor.to_prompt(), label="generate")
        if url:
            return url

        fallback = curated_image(emotion_hint)
        logger.info(
            f"Using curated fallback image for {emotion_hint or 'calm'}",
            extra={"emotion": emotion_hint, "fallback_url": fallback},
        )
        return fallback

    async def reframe(
        self,
        reframe_params: ReframeParams,
        original_url: str | None = None,
        emotion_hint: str | None = None,
    ) -> str:
        """
        希望度・強度のムードプロンプトで画像を再生成

        失敗時は original_url があればそれを、なければキュレーション画像を返す。
        """
        url = await self._run(reframe_params.mood_prompt(), label="reframe")
        if url:
            return url
        if original_url:
            logger.info("Reframe failed, keeping original image")
            return original_url
        return curated_image(emotion_hint)

    async def _run(self, prompt: str, label: str) -> str | None:
        """投入→ポーリングを実行（成功時のみURL、それ以外は None）"""
        if self.generator is None:
            logger.info(f"Image generator not configured, skipping {label}")
            return None

        generator = self.generator
        try:
            job = await submit_then_poll(
                submit=lambda: generator.submit(prompt, NEGATIVE_PROMPT),
                check=generator.status,
                fetch=generator.result,
                policy=self.poll_policy,
                logger=logger,
            )
        except Exception as e:
            logger.warning(
                f"Image {label} failed: {e}",
                extra={"model": generator.model_name},
            )
            return None

        if job.status is JobStatus.COMPLETED and job.image_url:
            log_business_event(
                logger,
                "image_generated",
                request_id=job.request_id,
                attempts=job.attempts,
                operation=label,
            )
            return job.image_url

        logger.warning(
            f"Image {label} ended with status {job.status.value}",
            extra={"request_id": job.request_id, "attempts": job.attempts},
        )
        return None
