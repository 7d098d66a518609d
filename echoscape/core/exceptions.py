"""
カスタム例外クラス
階層的な例外処理によるエラーハンドリングの統一
"""

from typing import Any


class EchoScapeException(Exception):
    """EchoScapeアプリケーションのベース例外クラス"""

    def __init__(self, message: str, error_code: str | None = None,
                 details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}


class ConfigurationError(EchoScapeException):
    """設定関連のエラー"""


class ValidationError(EchoScapeException):
    """バリデーションエラー"""

    def __init__(self, message: str, field: str | None = None,
                 value: Any | None = None, **kwargs):
        super().__init__(message, **kwargs)
        if field:
            self.details['field'] = field
        if value is not None:
            self.details['value'] = value


class ExternalServiceError(EchoScapeException):
    """外部サービス（OpenAI / Gemini / fal.ai など）関連のエラー"""

    def __init__(self, message: str, service_name: str = "unknown",
                 status_code: int | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.service_name = service_name
        self.status_code = status_code
        self.details['service_name'] = service_name
        if status_code:
            self.details['status_code'] = status_code


class RateLimitError(ExternalServiceError):
    """レート制限・クォータ超過（一時的なエラー、リトライ対象）"""


class ProviderUnavailableError(ExternalServiceError):
    """プロバイダーが利用できない、または有効な結果を返さない"""


class ImageGenerationError(ExternalServiceError):
    """画像生成ジョブの投入・ポーリング失敗"""

    def __init__(self, message: str, request_id: str | None = None, **kwargs):
        kwargs.setdefault("service_name", "image")
        super().__init__(message, **kwargs)
        if request_id:
            self.details['request_id'] = request_id


class PersistenceError(EchoScapeException):
    """永続化関連のエラー（呼び出し元へ伝播させる）"""


class SessionNotFoundError(PersistenceError):
    """セッションが存在しない"""

    def __init__(self, session_id: str, **kwargs):
        super().__init__(f"Session not found: {session_id}", **kwargs)
        self.details['session_id'] = session_id


class InvalidStateError(EchoScapeException):
    """処理の前提条件を満たしていない状態"""


RATE_LIMIT_MARKERS = (
    "rate limit",
    "rate_limit",
    "ratelimit",
    "too many requests",
    "quota",
    "429",
    "resource has been exhausted",
)


def is_rate_limit_error(error: BaseException) -> bool:
    """
    レート制限エラーかどうかを判定

    RateLimitError、HTTP 429、またはメッセージ中の
    rate / quota 指標で判定する。メッセージはステータス不明の場合のみ見る。
    """
    if isinstance(error, RateLimitError):
        return True

    status_code = getattr(error, "status_code", None)
    if status_code is not None:
        return status_code == 429

    message = str(error).lower()
    return any(
        marker in message
        for marker in RATE_LIMIT_MARKERS
    )


def error_from_status(message: str, service_name: str, status_code: int) -> ExternalServiceError:
    """HTTPステータスから例外を組み立てる（429 はレート制限）"""
    if status_code == 429:
        return RateLimitError(message, service_name=service_name, status_code=status_code)
    return ExternalServiceError(message, service_name=service_name, status_code=status_code)
