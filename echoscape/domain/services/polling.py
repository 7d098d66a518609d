"""
投入→ポーリングの汎用ヘルパー
最大試行回数・間隔・全体タイムアウトを持つポリシーで待機する
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from ...core.exceptions import ImageGenerationError
from ..models.visual import GenerationJob, JobStatus
from .retry import SleepFunc


COMPLETED_STATUSES = frozenset(["COMPLETED", "OK", "SUCCEEDED"])
FAILED_STATUSES = frozenset(["FAILED", "ERROR", "CANCELLED"])


@dataclass(frozen=True)
class PollPolicy:
    """ポーリングポリシー"""

    max_attempts: int = 20
    interval: float = 1.0
    timeout: float = 20.0
    sleep: SleepFunc = field(default=asyncio.sleep, compare=False, repr=False)


async def submit_then_poll(
    submit: Callable[[], Awaitable[dict]],
    check: Callable[[str], Awaitable[str]],
    fetch: Callable[[str], Awaitable[str]],
    policy: PollPolicy,
    logger: logging.Logger,
) -> GenerationJob:
    """
    ジョブを投入して完了まで待つ

    Returns:
        GenerationJob: status が COMPLETED / FAILED / TIMED_OUT のいずれか

    Raises:
        ImageGenerationError: 投入に失敗した場合、または応答が不正な場合
    """
    submitted = await submit()
    request_id = submitted.get("request_id")

    if not request_id:
        # 同期的に結果を返すモデルもある
        images = submitted.get("images") or []
        if images and images[0].get("url"):
            return GenerationJob(
                request_id="inline",
                status=JobStatus.COMPLETED,
                image_url=images[0]["url"],
            )
        raise ImageGenerationError("No request ID or image returned")

    job = GenerationJob(request_id=request_id)
    logger.info(f"Generation job submitted: {request_id}")

    try:
        await asyncio.wait_for(_poll(job, check, fetch, policy, logger), timeout=policy.timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Generation job {request_id} exceeded {policy.timeout}s budget")
        job.status = JobStatus.TIMED_OUT

    return job


async def _poll(
    job: GenerationJob,
    check: Callable[[str], Awaitable[str]],
    fetch: Callable[[str], Awaitable[str]],
    policy: PollPolicy,
    logger: logging.Logger,
) -> None:
    """job を完了・失敗・試行回数切れまでポーリング（job を更新する）"""
    for attempt in range(1, policy.max_attempts + 1):
        await policy.sleep(policy.interval)
        job.attempts = attempt

        status = (await check(job.request_id) or "").upper()
        logger.debug(f"Job {job.request_id} status: {status} ({attempt}/{policy.max_attempts})")

        if status in COMPLETED_STATUSES:
            job.image_url = await fetch(job.request_id)
            job.status = JobStatus.COMPLETED
            return
        if status in FAILED_STATUSES:
            job.status = JobStatus.FAILED
            return

    job.status = JobStatus.TIMED_OUT
