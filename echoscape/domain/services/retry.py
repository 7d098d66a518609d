"""
リトライポリシー
レート制限のみを一時的エラーとして attempt × base_delay 秒待って再試行する
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from ...core.exceptions import is_rate_limit_error

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """有限回リトライのポリシー"""

    max_attempts: int = 3
    base_delay: float = 2.0
    sleep: SleepFunc = field(default=asyncio.sleep, compare=False, repr=False)

    def delay_for(self, attempt: int) -> float:
        """attempt 回目の失敗後の待機秒"""
        return attempt * self.base_delay


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    logger: logging.Logger,
    label: str,
    is_retryable: Callable[[BaseException], bool] = is_rate_limit_error,
) -> T:
    """
    operation をポリシーに従って実行

    リトライ可能なエラーは待機して再試行し、それ以外は即座に再送出する。
    試行回数を使い切った場合は最後のエラーを送出する。
    """
    attempt = 1
    while True:
        try:
            logger.debug(f"[{label}] Attempt {attempt}/{policy.max_attempts}")
            return await operation()
        except Exception as e:
            retryable = is_retryable(e)
            logger.warning(
                f"[{label}] Error (attempt {attempt}): {e}",
                extra={"attempt": attempt, "retryable": retryable},
            )
            if not retryable or attempt >= policy.max_attempts:
                raise

            wait_time = policy.delay_for(attempt)
            logger.info(f"[{label}] Rate limited. Waiting {wait_time:.1f}s...")
            await policy.sleep(wait_time)
            attempt += 1
