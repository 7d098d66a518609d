"""
統合設定管理

pydantic-settings を使用した型安全な設定管理
- 環境変数から自動読み込み
- バリデーション付き
- デフォルト値対応
- キー未設定は縮退モード（エラーにしない）
"""

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_COMMON_CONFIG = dict(
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore",
    populate_by_name=True,
)


class AISettings(BaseSettings):
    """AI プロバイダー設定"""

    model_config = SettingsConfigDict(env_prefix="", **_COMMON_CONFIG)

    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY", description="OpenAI API キー")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL", description="OpenAI モデル")
    gemini_api_key: str = Field(default="", alias="GEMINI_API_KEY", description="Gemini API キー")
    gemini_model: str = Field(default="gemini-1.5-flash", alias="GEMINI_MODEL", description="Gemini モデル")

    # 生成モデルはどちらか一方を使う（フォールバック順ではなく設定で選択）
    generative_provider: Literal["openai", "gemini"] = Field(
        default="openai",
        alias="ECHOSCAPE_GENERATIVE_PROVIDER",
        description="感情解析・会話に使う生成モデルプロバイダー",
    )

    classifier_url: str = Field(default="", alias="ML_SERVICE_URL", description="感情分類器エンドポイント")
    classifier_timeout: int = Field(default=10, alias="ML_SERVICE_TIMEOUT", description="分類器タイムアウト(秒)")
    request_timeout: int = Field(default=60, alias="AI_REQUEST_TIMEOUT", description="生成モデルタイムアウト(秒)")

    @field_validator("generative_provider", mode="before")
    @classmethod
    def normalize_provider(cls, v: str) -> str:
        """プロバイダー名を小文字に正規化"""
        return v.strip().lower() if isinstance(v, str) else v

    @property
    def openai_configured(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def gemini_configured(self) -> bool:
        return bool(self.gemini_api_key)

    @property
    def classifier_configured(self) -> bool:
        return bool(self.classifier_url)


class ImageSettings(BaseSettings):
    """画像生成（fal.ai）設定"""

    model_config = SettingsConfigDict(env_prefix="FAL_", **_COMMON_CONFIG)

    api_key: str = Field(
        default="",
        validation_alias=AliasChoices("FAL_API_KEY", "FAL_KEY"),
        description="fal.ai API キー",
    )
    model_url: str = Field(
        default="https://queue.fal.run/fal-ai/fast-sdxl",
        description="fal.ai キューエンドポイント",
    )
    request_timeout: int = Field(default=30, description="HTTP タイムアウト(秒)")

    # ポーリング設定（約20回 × 1秒 ⇒ 約20秒が上限）
    poll_max_attempts: int = Field(default=20, ge=1, description="最大ポーリング回数")
    poll_interval: float = Field(default=1.0, ge=0.0, description="ポーリング間隔(秒)")
    poll_timeout: float = Field(default=20.0, gt=0.0, description="ポーリング全体の上限(秒)")

    @property
    def is_configured(self) -> bool:
        """fal.ai が設定済みか"""
        return bool(self.api_key)


class RetrySettings(BaseSettings):
    """リトライ設定"""

    model_config = SettingsConfigDict(env_prefix="ECHOSCAPE_RETRY_", **_COMMON_CONFIG)

    max_attempts: int = Field(default=3, ge=1, description="最大試行回数")
    base_delay: float = Field(default=2.0, ge=0.0, description="バックオフ基準秒（attempt × base_delay）")
    enrichment_max_attempts: int = Field(default=2, ge=1, description="メタファー補完の最大試行回数")
    enrichment_base_delay: float = Field(default=1.5, ge=0.0, description="メタファー補完のバックオフ基準秒")


class EchoScapeSettings(BaseSettings):
    """EchoScape 全体設定"""

    model_config = SettingsConfigDict(**_COMMON_CONFIG)

    # 基本設定
    data_dir: str = Field(default="data", alias="ECHOSCAPE_DATA_DIR", description="データ保存ディレクトリ")
    debug: bool = Field(default=False, alias="ECHOSCAPE_DEBUG", description="デバッグモード")
    log_level: str = Field(default="WARNING", alias="ECHOSCAPE_LOG_LEVEL", description="ログレベル")

    # サブ設定
    ai: AISettings = Field(default_factory=AISettings)
    image: ImageSettings = Field(default_factory=ImageSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)

    @classmethod
    def load(cls) -> "EchoScapeSettings":
        """設定をロード（サブ設定も含む）"""
        return cls(
            ai=AISettings(),
            image=ImageSettings(),
            retry=RetrySettings(),
        )


@lru_cache()
def get_settings() -> EchoScapeSettings:
    """
    設定を取得（キャッシュ付き）

    使用例:
        settings = get_settings()
        print(settings.ai.openai_api_key)
        print(settings.image.poll_max_attempts)
    """
    return EchoScapeSettings.load()


def reload_settings() -> EchoScapeSettings:
    """設定を再読み込み"""
    get_settings.cache_clear()
    return get_settings()
