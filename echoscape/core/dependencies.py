"""
依存性注入コンテナ
設定から各コンポーネントを組み立てる（認証情報がなければ縮退モード）
"""

from typing import Any

from ..domain.ports.ai_port import IAIProvider
from ..domain.ports.emotion_port import IEmotionProvider
from ..domain.ports.image_port import IImageGenerator
from ..domain.services.coach import CoachReplyGenerator
from ..domain.services.crisis import CrisisGate
from ..domain.services.emotion import EmotionAnalysisService, GenerativeEmotionProvider
from ..domain.services.image import ImageSynthesisClient
from ..domain.services.journal import JournalService
from ..domain.services.polling import PollPolicy
from ..domain.services.retry import RetryPolicy
from .config import EchoScapeSettings, get_settings
from .logging import get_logger

logger = get_logger("core.dependencies")


class DependencyContainer:
    """
    依存性注入コンテナ

    設定は明示的に渡す（省略時のみ get_settings() を使う）。
    プロバイダーは認証情報が存在する場合のみ生成する。
    """

    def __init__(self, settings: EchoScapeSettings | None = None):
        self.settings = settings or get_settings()
        self._instances: dict[str, Any] = {}

    def _get_or_create(self, key: str, factory):
        if key not in self._instances:
            self._instances[key] = factory()
        return self._instances[key]

    # === ポリシー ===

    def get_retry_policy(self) -> RetryPolicy:
        retry = self.settings.retry
        return RetryPolicy(max_attempts=retry.max_attempts, base_delay=retry.base_delay)

    def get_enrichment_policy(self) -> RetryPolicy:
        retry = self.settings.retry
        return RetryPolicy(
            max_attempts=retry.enrichment_max_attempts,
            base_delay=retry.enrichment_base_delay,
        )

    def get_poll_policy(self) -> PollPolicy:
        image = self.settings.image
        return PollPolicy(
            max_attempts=image.poll_max_attempts,
            interval=image.poll_interval,
            timeout=image.poll_timeout,
        )

    # === アダプター ===

    def get_ai_provider(self) -> IAIProvider | None:
        """設定で選択された生成モデル（未設定なら None）"""
        return self._get_or_create("ai_provider", self._create_ai_provider)

    def _create_ai_provider(self) -> IAIProvider | None:
        ai = self.settings.ai

        if ai.generative_provider == "gemini":
            if not ai.gemini_configured:
                logger.info("GEMINI_API_KEY not set, generative features degraded")
                return None
            from ..adapters.ai.gemini import GeminiAdapter

            return GeminiAdapter(
                api_key=ai.gemini_api_key,
                model=ai.gemini_model,
                timeout=ai.request_timeout,
            )

        if not ai.openai_configured:
            logger.info("OPENAI_API_KEY not set, generative features degraded")
            return None
        from ..adapters.ai.openai import OpenAIAdapter

        return OpenAIAdapter(
            api_key=ai.openai_api_key,
            model=ai.openai_model,
            timeout=ai.request_timeout,
        )

    def get_classifier(self) -> IEmotionProvider | None:
        """感情分類器（ML_SERVICE_URL 未設定なら None）"""
        return self._get_or_create("classifier", self._create_classifier)

    def _create_classifier(self) -> IEmotionProvider | None:
        ai = self.settings.ai
        if not ai.classifier_configured:
            return None
        from ..adapters.ai.classifier import ClassifierAdapter

        return ClassifierAdapter(base_url=ai.classifier_url, timeout=ai.classifier_timeout)

    def get_image_generator(self) -> IImageGenerator | None:
        """画像生成（FAL_API_KEY 未設定なら None）"""
        return self._get_or_create("image_generator", self._create_image_generator)

    def _create_image_generator(self) -> IImageGenerator | None:
        image = self.settings.image
        if not image.is_configured:
            logger.info("FAL_API_KEY not set, using curated fallback images")
            return None
        from ..adapters.image.fal import FalImageGenerator

        return FalImageGenerator(
            api_key=image.api_key,
            model_url=image.model_url,
            timeout=image.request_timeout,
        )

    def get_session_store(self):
        def factory():
            from ..adapters.storage.file import FileSessionStore

            return FileSessionStore(data_dir=self.settings.data_dir)

        return self._get_or_create("session_store", factory)

    # === サービス ===

    def get_emotion_service(self) -> EmotionAnalysisService:
        def factory():
            ai_provider = self.get_ai_provider()
            return EmotionAnalysisService(
                classifier=self.get_classifier(),
                generator=GenerativeEmotionProvider(ai_provider) if ai_provider else None,
                retry_policy=self.get_retry_policy(),
                enrichment_policy=self.get_enrichment_policy(),
            )

        return self._get_or_create("emotion_service", factory)

    def get_image_client(self) -> ImageSynthesisClient:
        return self._get_or_create(
            "image_client",
            lambda: ImageSynthesisClient(self.get_image_generator(), self.get_poll_policy()),
        )

    def get_coach(self) -> CoachReplyGenerator:
        return self._get_or_create(
            "coach",
            lambda: CoachReplyGenerator(self.get_ai_provider(), self.get_retry_policy()),
        )

    def get_journal_service(self) -> JournalService:
        return self._get_or_create(
            "journal_service",
            lambda: JournalService(
                store=self.get_session_store(),
                analyzer=self.get_emotion_service(),
                image_client=self.get_image_client(),
                coach=self.get_coach(),
                crisis_gate=CrisisGate(),
            ),
        )

    def reset(self) -> None:
        """インスタンスをリセット（テスト用）"""
        self._instances.clear()


# グローバルコンテナインスタンス
_container: DependencyContainer | None = None


def get_container() -> DependencyContainer:
    """グローバル依存性注入コンテナを取得"""
    global _container
    if _container is None:
        _container = DependencyContainer()
    return _container


def reset_container() -> None:
    """グローバルコンテナをリセット（テスト用）"""
    global _container
    _container = None
