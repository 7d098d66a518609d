"""
会話応答生成
ジャーナリングコンパニオン「Echo」の返答を作る
"""

from collections.abc import Sequence

from ...core.exceptions import is_rate_limit_error
from ...core.logging import get_logger, log_error
from ..models.session import JournalMessage, MessageRole
from ..ports.ai_port import ChatMessage, IAIProvider
from .retry import RetryPolicy, call_with_retry

logger = get_logger("domain.coach")


COMPANION_PROMPT = """You are an empathetic, reflective journaling companion named Echo.
Your goal is to help the user explore their thoughts and feelings through conversation.

GUIDELINES:
- Listen attentively and mirror the user's emotions.
- Ask open-ended, reflective questions to deepen the user's understanding.
- Validate their feelings (e.g., "It makes sense that you feel that way").
- Avoid giving advice, fixing problems, or acting as a medical professional.
- Use warm, non-clinical language.
- Keep responses concise (2-4 sentences usually).
- If the user seems overwhelmed, suggest breaking things down.

IMPORTANT:
- You are NOT a licensed therapist. Do not diagnose or prescribe.
- If the user expresses self-harm or severe crisis, gently urge them to seek professional help."""

HISTORY_WINDOW = 20

NOT_CONFIGURED_REPLY = (
    "I apologize, but I'm not properly configured at the moment. "
    "Please check the server configuration."
)
AUTH_FAILURE_REPLY = "I'm having trouble connecting. Please check that the API key is valid."
RATE_LIMIT_REPLY = (
    "I'm a bit overwhelmed right now. The service is experiencing high demand "
    "- please try again in a minute."
)
SAFETY_REJECTION_REPLY = (
    "I want to make sure I respond thoughtfully. Could you rephrase what's on your mind?"
)
DEFAULT_FAILURE_REPLY = (
    "I'm listening, but I'm having a little trouble thinking of a response right now. "
    "Could you tell me more?"
)


class CoachReplyGenerator:
    """
    会話応答ジェネレーター

    直近20件の履歴を文脈として返答を生成する。レート制限のみリトライし、
    最終的に失敗した場合はエラー種別ごとの定型文を返す（例外は送出しない）。
    """

    def __init__(
        self,
        ai_provider: IAIProvider | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.ai_provider = ai_provider
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=3, base_delay=2.0)

    async def reply(self, history: Sequence[JournalMessage], message: str) -> str:
        """
        返答を生成

        Args:
            history: これまでのメッセージ（作成順）
            message: 今回のユーザーメッセージ

        Returns:
            str: 返答テキスト
        """
        if self.ai_provider is None:
            logger.error("Cannot generate reply: no generative provider configured")
            return NOT_CONFIGURED_REPLY

        conversation = [
            ChatMessage(
                role="user" if msg.role == MessageRole.USER.value else "assistant",
                content=msg.content,
            )
            for msg in list(history)[-HISTORY_WINDOW:]
        ]
        logger.debug(f"Reply context size: {len(conversation)} messages")

        provider = self.ai_provider
        try:
            response = await call_with_retry(
                lambda: provider.generate(
                    message=message,
                    system_prompt=COMPANION_PROMPT,
                    max_tokens=300,
                    conversation_history=conversation,
                    temperature=0.8,
                ),
                self.retry_policy,
                logger,
                label="Coach Reply",
            )
        except Exception as e:
            log_error(logger, e, {"provider": provider.model_name})
            return canned_reply_for(e)

        return response.strip()


def canned_reply_for(error: BaseException) -> str:
    """失敗の種類に応じた定型返答"""
    message = str(error)
    lowered = message.lower()

    if getattr(error, "status_code", None) == 401 or "api key" in lowered:
        return AUTH_FAILURE_REPLY
    if is_rate_limit_error(error):
        return RATE_LIMIT_REPLY
    if "content_policy" in lowered or "safety" in lowered:
        return SAFETY_REJECTION_REPLY
    return DEFAULT_FAILURE_REPLY
