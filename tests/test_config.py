"""
設定と依存性注入コンテナのテスト
"""

import shutil
import tempfile

import pytest

from echoscape.adapters.ai.classifier import ClassifierAdapter
from echoscape.adapters.ai.gemini import GeminiAdapter
from echoscape.adapters.ai.openai import OpenAIAdapter
from echoscape.adapters.image.fal import FalImageGenerator
from echoscape.adapters.storage.file import FileSessionStore
from echoscape.core.config import (
    AISettings,
    EchoScapeSettings,
    ImageSettings,
    RetrySettings,
)
from echoscape.core.dependencies import (
    DependencyContainer,
    get_container,
    reset_container,
)
from echoscape.domain.services.journal import JournalService


ENV_KEYS = [
    "OPENAI_API_KEY", "OPENAI_MODEL", "GEMINI_API_KEY", "GEMINI_MODEL",
    "ECHOSCAPE_GENERATIVE_PROVIDER", "ML_SERVICE_URL", "FAL_API_KEY", "FAL_KEY",
    "FAL_POLL_MAX_ATTEMPTS", "ECHOSCAPE_RETRY_MAX_ATTEMPTS", "ECHOSCAPE_DATA_DIR",
]


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def make_settings(data_dir: str, ai=None, image=None, retry=None) -> EchoScapeSettings:
    return EchoScapeSettings(
        data_dir=data_dir,
        ai=AISettings(**{
            "openai_api_key": "",
            "gemini_api_key": "",
            "classifier_url": "",
            **(ai or {}),
        }),
        image=ImageSettings(**{"api_key": "", **(image or {})}),
        retry=RetrySettings(**(retry or {})),
    )


class TestSettings:
    """pydantic-settings のテスト"""

    def test_defaults(self, clean_env):
        ai = AISettings()
        image = ImageSettings()
        retry = RetrySettings()

        assert ai.openai_model == "gpt-4o-mini"
        assert ai.generative_provider == "openai"
        assert ai.openai_configured is False
        assert ai.classifier_configured is False
        assert image.is_configured is False
        assert image.poll_max_attempts == 20
        assert image.poll_interval == 1.0
        assert retry.max_attempts == 3
        assert retry.base_delay == 2.0
        assert retry.enrichment_max_attempts == 2
        assert retry.enrichment_base_delay == 1.5

    def test_env_aliases(self, clean_env):
        clean_env.setenv("OPENAI_API_KEY", "sk-env")
        clean_env.setenv("ECHOSCAPE_GENERATIVE_PROVIDER", " Gemini ")
        clean_env.setenv("ML_SERVICE_URL", "http://ml:8000")
        clean_env.setenv("FAL_KEY", "fal-env")
        clean_env.setenv("FAL_POLL_MAX_ATTEMPTS", "5")
        clean_env.setenv("ECHOSCAPE_RETRY_MAX_ATTEMPTS", "4")

        settings = EchoScapeSettings.load()

        assert settings.ai.openai_api_key == "sk-env"
        assert settings.ai.generative_provider == "gemini"
        assert settings.ai.classifier_url == "http://ml:8000"
        assert settings.image.api_key == "fal-env"
        assert settings.image.poll_max_attempts == 5
        assert settings.retry.max_attempts == 4

    def test_invalid_provider_rejected(self, clean_env):
        clean_env.setenv("ECHOSCAPE_GENERATIVE_PROVIDER", "llama")

        with pytest.raises(ValueError):
            AISettings()


class TestDependencyContainer:
    """DependencyContainer のテスト"""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        shutil.rmtree(self.temp_dir)
        reset_container()

    def test_degraded_without_credentials(self):
        container = DependencyContainer(make_settings(self.temp_dir))

        assert container.get_ai_provider() is None
        assert container.get_classifier() is None
        assert container.get_image_generator() is None

        service = container.get_journal_service()
        assert isinstance(service, JournalService)
        assert service.image_client.is_configured is False
        assert service.coach.ai_provider is None
        assert service.analyzer.generator is None
        assert isinstance(service.store, FileSessionStore)

    def test_openai_provider(self):
        container = DependencyContainer(make_settings(
            self.temp_dir, ai={"openai_api_key": "sk-test", "openai_model": "gpt-4o"}
        ))

        provider = container.get_ai_provider()

        assert isinstance(provider, OpenAIAdapter)
        assert provider.model_name == "gpt-4o"
        assert container.get_emotion_service().generator is not None

    def test_gemini_provider_selected(self):
        container = DependencyContainer(make_settings(
            self.temp_dir,
            ai={"openai_api_key": "sk-test", "gemini_api_key": "g-test",
                "generative_provider": "gemini"},
        ))

        assert isinstance(container.get_ai_provider(), GeminiAdapter)

    def test_selected_provider_without_key(self):
        """選択したプロバイダーのキーがなければ他方にフォールバックしない"""
        container = DependencyContainer(make_settings(
            self.temp_dir,
            ai={"openai_api_key": "sk-test", "generative_provider": "gemini"},
        ))

        assert container.get_ai_provider() is None

    def test_classifier_and_image_generator(self):
        container = DependencyContainer(make_settings(
            self.temp_dir,
            ai={"classifier_url": "http://ml.test"},
            image={"api_key": "fal-test"},
        ))

        assert isinstance(container.get_classifier(), ClassifierAdapter)
        assert isinstance(container.get_image_generator(), FalImageGenerator)
        assert container.get_image_client().is_configured is True

    def test_policies_follow_settings(self):
        container = DependencyContainer(make_settings(
            self.temp_dir,
            image={"poll_max_attempts": 7, "poll_interval": 0.5, "poll_timeout": 9.0},
            retry={"max_attempts": 5, "base_delay": 1.0},
        ))

        retry = container.get_retry_policy()
        poll = container.get_poll_policy()
        enrichment = container.get_enrichment_policy()

        assert (retry.max_attempts, retry.base_delay) == (5, 1.0)
        assert (poll.max_attempts, poll.interval, poll.timeout) == (7, 0.5, 9.0)
        assert (enrichment.max_attempts, enrichment.base_delay) == (2, 1.5)

    def test_instances_are_cached_until_reset(self):
        container = DependencyContainer(make_settings(self.temp_dir))

        first = container.get_journal_service()
        assert container.get_journal_service() is first

        container.reset()
        assert container.get_journal_service() is not first

    def test_global_container(self, clean_env):
        clean_env.setenv("ECHOSCAPE_DATA_DIR", self.temp_dir)
        reset_container()

        container = get_container()

        assert get_container() is container
        reset_container()
        assert get_container() is not container
