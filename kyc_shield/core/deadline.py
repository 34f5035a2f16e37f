"""
First-of {result, deadline} helper.

The work is wrapped in a task and raced against a timer. Exactly one
outcome wins: either the result is returned, or the task is cancelled and
`AnalysisTimeoutError` is raised. The losing task is never awaited again.
"""

import asyncio
import logging
from typing import Awaitable, TypeVar

from kyc_shield.core.errors import AnalysisTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def first_of(work: Awaitable[T], timeout: float) -> T:
    task = asyncio.ensure_future(work)
    done, _ = await asyncio.wait({task}, timeout=timeout)

    if task in done:
        return task.result()

    task.cancel()
    # Swallow the eventual CancelledError without blocking on it.
    task.add_done_callback(_consume_result)
    logger.warning(f"[DEADLINE] Work exceeded {timeout:.1f}s and was cancelled")
    raise AnalysisTimeoutError()


def _consume_result(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"[DEADLINE] Late failure from cancelled work ignored: {exc}")
